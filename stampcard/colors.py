# stampcard/colors.py

"""
Color helpers shared by the validator, the descriptor builder and the
compositor. Wallet descriptors only accept ``rgb(r, g, b)``; the editor
also sends ``#RRGGBB``, which is normalised here.
"""

import re
from typing import Tuple

from PIL import ImageColor

RGB_PATTERN = re.compile(r'^rgb\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*\)$')
HEX_PATTERN = re.compile(r'^#[0-9a-fA-F]{6}$')


def is_valid_color(value) -> bool:
    if not isinstance(value, str):
        return False
    match = RGB_PATTERN.match(value.strip())
    if match:
        return all(0 <= int(channel) <= 255 for channel in match.groups())
    return bool(HEX_PATTERN.match(value.strip()))


def parse_color(value: str) -> Tuple[int, int, int]:
    """
    Parse an ``rgb(r, g, b)`` or ``#RRGGBB`` string.

    Raises:
        ValueError: for any other format, including CSS color names
    """
    if not is_valid_color(value):
        raise ValueError(f"Unsupported color value: {value!r}")
    return ImageColor.getrgb(value.strip().replace(' ', ''))[:3]


def to_rgb_string(value: str) -> str:
    r, g, b = parse_color(value)
    return f"rgb({r}, {g}, {b})"


def relative_luminance(rgb: Tuple[int, int, int]) -> float:
    def channel(c):
        c = c / 255.0
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = (channel(c) for c in rgb)
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(first: str, second: str) -> float:
    """WCAG contrast ratio between two color strings (1.0 to 21.0)."""
    lum_a = relative_luminance(parse_color(first))
    lum_b = relative_luminance(parse_color(second))
    lighter, darker = max(lum_a, lum_b), min(lum_a, lum_b)
    return (lighter + 0.05) / (darker + 0.05)
