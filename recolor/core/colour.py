"""Colour primitives: hex parsing, RGB Euclidean distance, rule validity.

Distance is plain Euclidean distance in RGB space. No colour-space
conversion and no perceptual weighting.
"""

from __future__ import annotations

import math
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from recolor.core.types import ColorRule

RGB = tuple[int, int, int]

_HEX_RE = re.compile(r'#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})')

# sqrt(3 * 255^2)
MAX_DISTANCE = math.sqrt(3 * 255 * 255)


def parse_color(text: object) -> RGB | None:
    """Parse '#rrggbb' or 'rrggbb' (any case). Anything else returns None."""
    if not isinstance(text, str):
        return None
    m = _HEX_RE.fullmatch(text)
    if not m:
        return None
    return (int(m.group(1), 16), int(m.group(2), 16), int(m.group(3), 16))


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return f'#{r:02x}{g:02x}{b:02x}'


def rgb_distance(a: tuple[int, ...], b: tuple[int, ...]) -> float:
    """Euclidean distance between two RGB triples. Uses int, not uint8."""
    dr = int(a[0]) - int(b[0])
    dg = int(a[1]) - int(b[1])
    db = int(a[2]) - int(b[2])
    return math.sqrt(dr * dr + dg * dg + db * db)


def is_valid_rule(rule: ColorRule) -> bool:
    """A rule is usable when its source parses and it has a target or is transparent."""
    if parse_color(rule.source) is None:
        return False
    return rule.make_transparent or parse_color(rule.target) is not None
