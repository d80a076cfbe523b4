# jwst_cosmos/validation/sanitize.py
"""
Input sanitization and validation utilities.

Remote responses and user paths are untrusted: a server-provided filename
must never place a file outside the output directory.
"""

import logging
import re
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

_MODEL_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:/-]{0,199}$")


def sanitize_output_filename(filename: str) -> str:
    """
    Reduce a server-provided filename to a safe basename.

    Args:
        filename: Filename as reported by the generation server

    Returns:
        Basename with any directory components removed

    Raises:
        ValueError: If nothing usable remains
    """
    name = PurePosixPath(filename.replace("\\", "/")).name.strip()
    if not name or name in (".", "..") or "\x00" in name:
        raise ValueError(f"Unsafe output filename: {filename!r}")
    if name != filename:
        logger.warning(f"Stripped directory components from output filename {filename!r}")
    return name


def sanitize_image_path(user_path: str | Path) -> Path:
    """
    Resolve and validate a local image path.

    Raises:
        FileNotFoundError: If the path doesn't exist
        ValueError: If the path is not a regular file
    """
    resolved = Path(user_path).expanduser().resolve()

    if not resolved.exists():
        raise FileNotFoundError(f"Image does not exist: {resolved}")

    if not resolved.is_file():
        raise ValueError(f"Image path is not a file: {resolved}")

    return resolved


def sanitize_model_name(name: str) -> str:
    """
    Validate an Ollama model reference such as "llava:13b".

    Raises:
        ValueError: If the name is empty or contains unexpected characters
    """
    cleaned = name.strip()
    if not _MODEL_NAME_RE.match(cleaned):
        raise ValueError(f"Invalid model name '{name}'")
    return cleaned
