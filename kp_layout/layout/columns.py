"""
Column width normalization for the fixed-width KP table.

Every visible column resolves to its configured or default width; the name
column, unless explicitly sized, takes the leftover. If the total overflows
the content width everything is scaled down by the same ratio. Under-filling
is left alone.
"""

from kp_layout.core.settings import (
    DEFAULT_COLUMN_WIDTHS, FALLBACK_COLUMN_WIDTH, NAME_COLUMN,
)
from kp_layout.layout.models import coerce_float
from kp_layout.layout.page import TABLE_CONTENT_WIDTH

MIN_NAME_WIDTH = 60


def declared_width(key: str, widths: dict) -> float:
    w = coerce_float((widths or {}).get(key), 0, minimum=0)
    return w or DEFAULT_COLUMN_WIDTHS.get(key) or FALLBACK_COLUMN_WIDTH


def resolve_column_widths(visible_keys, widths: dict, content_width: float = TABLE_CONTENT_WIDTH) -> list:
    """Widths for visible_keys, in the same order."""
    widths = widths or {}
    keys = list(visible_keys)
    raw = []
    for key in keys:
        if key == NAME_COLUMN and not coerce_float(widths.get(NAME_COLUMN), 0, minimum=0):
            raw.append(0)  # elastic, filled below
        else:
            raw.append(declared_width(key, widths))

    if NAME_COLUMN in keys:
        i = keys.index(NAME_COLUMN)
        if raw[i] == 0:
            raw[i] = max(MIN_NAME_WIDTH, content_width - sum(raw))

    total = sum(raw)
    if total > content_width:
        ratio = content_width / total
        return [w * ratio for w in raw]
    return raw


def column_width_map(visible_keys, widths: dict, content_width: float = TABLE_CONTENT_WIDTH) -> dict:
    keys = list(visible_keys)
    return dict(zip(keys, resolve_column_widths(keys, widths, content_width)))
