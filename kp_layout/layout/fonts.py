"""
Column font sizing.

A column's body font follows its width relative to the default width:
wider columns get larger type, narrower columns shrink, clamped to 7–13.
"""

import math

from kp_layout.core.settings import DEFAULT_COLUMN_WIDTHS, FALLBACK_COLUMN_WIDTH
from kp_layout.layout.models import coerce_float

BASE_FONT_SIZE = 11
MIN_SCALED_FONT = 7
MAX_SCALED_FONT = 13

# Image-dominated columns keep a constant size
FIXED_FONT_COLUMNS = ("name", "image")


def resolve_font_size(key: str, widths: dict, overrides: dict = None) -> float:
    """Effective font size for a column.

    An explicit override is returned as-is (no clamping). Non-numeric
    overrides and widths count as unset.
    """
    override = coerce_float((overrides or {}).get(key), 0)
    if override > 0:
        return override
    if key in FIXED_FONT_COLUMNS:
        return BASE_FONT_SIZE
    default_w = DEFAULT_COLUMN_WIDTHS.get(key) or FALLBACK_COLUMN_WIDTH
    w = coerce_float((widths or {}).get(key), 0) or default_w
    ratio = w / default_w
    size = max(MIN_SCALED_FONT, min(MAX_SCALED_FONT, BASE_FONT_SIZE * ratio))
    return math.floor(size * 10 + 0.5) / 10


def column_font_sizes(keys, widths: dict, overrides: dict = None) -> dict:
    return {k: resolve_font_size(k, widths, overrides) for k in keys}
