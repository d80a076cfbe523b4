# tests/unit/test_sanitize.py
"""Tests for input sanitization utilities."""

import pytest

from jwst_cosmos.validation import (
    sanitize_image_path,
    sanitize_model_name,
    sanitize_output_filename,
)


class TestSanitizeOutputFilename:
    def test_plain_name_unchanged(self):
        assert sanitize_output_filename("cosmos_00001_.png") == "cosmos_00001_.png"

    @pytest.mark.parametrize(
        "raw", ["../../.bashrc", "/etc/passwd", "sub/dir/x.png", "..\\..\\x.png"]
    )
    def test_directory_components_removed(self, raw):
        name = sanitize_output_filename(raw)

        assert "/" not in name
        assert "\\" not in name
        assert name not in ("", ".", "..")

    @pytest.mark.parametrize("raw", ["", "..", "../", "a\x00b"])
    def test_unusable_rejected(self, raw):
        with pytest.raises(ValueError):
            sanitize_output_filename(raw)


class TestSanitizeImagePath:
    def test_existing_file(self, tmp_path):
        image = tmp_path / "a.png"
        image.write_bytes(b"x")

        assert sanitize_image_path(str(image)) == image.resolve()

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            sanitize_image_path(tmp_path / "nope.png")

    def test_directory(self, tmp_path):
        with pytest.raises(ValueError, match="not a file"):
            sanitize_image_path(tmp_path)


class TestSanitizeModelName:
    @pytest.mark.parametrize("name", ["llava", "llava:13b", "library/qwen2.5:7b-instruct"])
    def test_valid(self, name):
        assert sanitize_model_name(name) == name

    @pytest.mark.parametrize("name", ["", "  ", "-rf", "llava; rm", "a" * 250])
    def test_invalid(self, name):
        with pytest.raises(ValueError):
            sanitize_model_name(name)
