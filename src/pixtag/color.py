"""Hex color parsing and RGB distance."""

import math
import re
from typing import Tuple

from pixtag.errors import InvalidColor


# sqrt(3 * 255^2)
MAX_COLOR_DISTANCE = math.sqrt(3 * 255 ** 2)
DEFAULT_SIMILARITY_THRESHOLD = 50.0

_HEX_PATTERN = re.compile(r"^#?([0-9a-fA-F]{6})$")


def parse_hex_color(value: str) -> Tuple[int, int, int]:
    """Parse ``#RRGGBB`` (leading ``#`` optional) into an (r, g, b) tuple."""
    if not isinstance(value, str):
        raise InvalidColor(f"Color must be a string, got {type(value).__name__}")
    match = _HEX_PATTERN.match(value.strip())
    if not match:
        raise InvalidColor(f"Invalid hex color: {value!r}")
    digits = match.group(1)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def normalize_hex_color(value: str) -> str:
    """Return the canonical upper-case ``#RRGGBB`` form of a color."""
    r, g, b = parse_hex_color(value)
    return f"#{r:02X}{g:02X}{b:02X}"


def is_valid_hex_color(value: str) -> bool:
    try:
        parse_hex_color(value)
    except InvalidColor:
        return False
    return True


def color_distance(color1: str, color2: str) -> float:
    """Euclidean distance between two hex colors in RGB space (0 to ~441.67)."""
    r1, g1, b1 = parse_hex_color(color1)
    r2, g2, b2 = parse_hex_color(color2)
    return math.sqrt((r1 - r2) ** 2 + (g1 - g2) ** 2 + (b1 - b2) ** 2)


def is_similar_color(
    color1: str,
    color2: str,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> bool:
    """Check if two colors are within ``threshold`` of each other."""
    return color_distance(color1, color2) <= threshold
