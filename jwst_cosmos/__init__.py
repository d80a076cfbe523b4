# jwst_cosmos/__init__.py
"""Remote wallpaper generation over SSH tunnels: ComfyUI and Ollama clients."""

__version__ = "0.1.0"
