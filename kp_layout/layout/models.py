"""
Line item model for KP (commercial proposal) documents.

Items are plain dicts:
    {"id", "name", "slug", "price", "quantity", "description",
     "characteristics": [{"key", "value"}], "image_url", "article"}

Characteristics keyed "code" (any case) are stored but never rendered,
measured or shown in the edit list.
"""

import math
import logging

log = logging.getLogger("kp.models")

HIDDEN_CHARACTERISTIC_KEY = "code"
PRICE_ON_REQUEST = "Цену уточняйте"
CURRENCY_SUFFIX = "тг"


# ═══════════════════════════════════════════════════════════════════════════════
# Coercion
# ═══════════════════════════════════════════════════════════════════════════════

def coerce_float(value, default=0.0, minimum=None):
    """float(value), or default for None/non-numeric/NaN. Floors at minimum."""
    try:
        out = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(out) or math.isinf(out):
        return default
    if minimum is not None and out < minimum:
        out = minimum
    return out


def coerce_int(value, default=0, minimum=None):
    try:
        out = int(float(value))
    except (TypeError, ValueError, OverflowError):
        out = default
    if minimum is not None and out < minimum:
        out = minimum
    return out


def _text(value) -> str:
    return "" if value is None else str(value)


# ═══════════════════════════════════════════════════════════════════════════════
# Characteristics
# ═══════════════════════════════════════════════════════════════════════════════

def is_hidden_characteristic(ch: dict) -> bool:
    return _text(ch.get("key")).lower() == HIDDEN_CHARACTERISTIC_KEY


def visible_characteristics(chars) -> list:
    if not chars:
        return []
    return [ch for ch in chars if not is_hidden_characteristic(ch)]


def _real_index(chars: list, visible_index: int):
    """Map an index into the visible list back to the full list."""
    seen = -1
    for i, ch in enumerate(chars):
        if not is_hidden_characteristic(ch):
            seen += 1
        if seen == visible_index:
            return i
    return None


def add_characteristic(chars) -> list:
    return list(chars or []) + [{"key": "", "value": ""}]


def update_visible_characteristic(chars, visible_index: int, field: str, value: str) -> list:
    """Edit one visible pair; hidden "code" entries keep their place."""
    if field not in ("key", "value"):
        raise ValueError(f"unknown characteristic field: {field!r}")
    out = [dict(ch) for ch in (chars or [])]
    i = _real_index(out, visible_index)
    if i is not None:
        out[i][field] = value
    return out


def remove_visible_characteristic(chars, visible_index: int) -> list:
    out = [dict(ch) for ch in (chars or [])]
    i = _real_index(out, visible_index)
    if i is not None:
        del out[i]
    return out


# ═══════════════════════════════════════════════════════════════════════════════
# Items
# ═══════════════════════════════════════════════════════════════════════════════

def normalize_item(raw: dict) -> dict:
    """Coerce a raw item dict: quantity >= 1, price >= 0, text fields as str."""
    raw = raw or {}
    chars = []
    for ch in raw.get("characteristics") or []:
        if isinstance(ch, dict):
            chars.append({"key": _text(ch.get("key")), "value": _text(ch.get("value"))})
    item = dict(raw)
    item.update({
        "id":              raw.get("id"),
        "name":            _text(raw.get("name")),
        "slug":            _text(raw.get("slug")),
        "price":           coerce_float(raw.get("price"), 0.0, minimum=0.0),
        "quantity":        coerce_int(raw.get("quantity"), 1, minimum=1),
        "description":     _text(raw.get("description")),
        "characteristics": chars,
        "image_url":       _text(raw.get("image_url")),
        "article":         _text(raw.get("article")),
    })
    return item


def normalize_items(raw_items) -> list:
    return [normalize_item(it) for it in (raw_items or []) if isinstance(it, dict)]


def item_total(item: dict) -> float:
    return coerce_float(item.get("price"), 0.0) * coerce_int(item.get("quantity"), 1, minimum=1)


def items_total(items) -> float:
    return sum(item_total(it) for it in items or [])


def format_price(price) -> str:
    """Render as "12 345,5 тг" (NBSP grouping); unknown or zero price → on request."""
    if price is None:
        return PRICE_ON_REQUEST
    value = coerce_float(price, 0.0)
    if value <= 0:
        return PRICE_ON_REQUEST
    s = f"{value:,.3f}".rstrip("0").rstrip(".")
    s = s.replace(",", "\u00a0").replace(".", ",")
    return f"{s} {CURRENCY_SUFFIX}"
