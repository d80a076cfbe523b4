# jwst_cosmos/__main__.py
"""Entry point for `python -m jwst_cosmos`."""

from jwst_cosmos.cli import app

if __name__ == "__main__":
    app()
