# jwst_cosmos/validation/__init__.py
"""Input validation and sanitization utilities."""

from .sanitize import sanitize_image_path, sanitize_model_name, sanitize_output_filename

__all__ = [
    "sanitize_output_filename",
    "sanitize_image_path",
    "sanitize_model_name",
]
