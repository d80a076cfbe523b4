# jwst_cosmos/sizes.py
"""Output size presets and WxH parsing for generation parameters."""

from enum import Enum
from math import gcd

DEFAULT_DIMENSIONS = (5120, 2160)


class SizePreset(Enum):
    """Named output resolutions."""

    HD = "hd"
    QHD = "qhd"
    LAPTOP = "laptop"
    UHD_4K = "4k"
    ULTRAWIDE = "ultrawide"

    @property
    def dimensions(self) -> tuple[int, int]:
        return _PRESET_DIMENSIONS[self]

    @property
    def label(self) -> str:
        width, height = self.dimensions
        return f"{_PRESET_NAMES[self]} ({width}x{height})"

    def __str__(self) -> str:
        width, height = self.dimensions
        return f"{width}x{height}"


_PRESET_DIMENSIONS = {
    SizePreset.HD: (1920, 1080),
    SizePreset.QHD: (2560, 1440),
    SizePreset.LAPTOP: (2560, 1600),
    SizePreset.UHD_4K: (3840, 2160),
    SizePreset.ULTRAWIDE: (5120, 2160),
}

_PRESET_NAMES = {
    SizePreset.HD: "HD",
    SizePreset.QHD: "QHD",
    SizePreset.LAPTOP: "Laptop",
    SizePreset.UHD_4K: "4K UHD",
    SizePreset.ULTRAWIDE: "Ultrawide",
}


def parse_size(text: str) -> tuple[int, int]:
    """
    Parse a preset name or "WIDTHxHEIGHT" string into (width, height).

    Malformed input falls back to the ultrawide default rather than raising,
    since sizes usually come from user config.
    """
    cleaned = text.strip().lower()
    try:
        return SizePreset(cleaned).dimensions
    except ValueError:
        pass

    parts = cleaned.split("x")
    if len(parts) != 2:
        return DEFAULT_DIMENSIONS
    try:
        width, height = int(parts[0]), int(parts[1])
    except ValueError:
        return DEFAULT_DIMENSIONS
    if width <= 0 or height <= 0:
        return DEFAULT_DIMENSIONS
    return width, height


def aspect_ratio(width: int, height: int) -> str:
    """Reduce a resolution to a ratio string such as "16:9" or "21:9"."""
    divisor = gcd(width, height) or 1
    w, h = width // divisor, height // divisor
    # 5120x2160 reduces to 64:27, marketed as 21:9
    if (w, h) == (64, 27):
        return "21:9"
    if (w, h) == (8, 5):
        return "16:10"
    return f"{w}:{h}"
