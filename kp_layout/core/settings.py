"""
KP settings — column catalog, defaults and update operations.

Settings are a plain dict persisted in the keyed store under "kp-settings".
Every update_* function returns a new dict and leaves its input untouched.
"""

import copy
import time
import logging

from kp_layout.layout.models import coerce_float

log = logging.getLogger("kp.settings")

ALIGNS = ("left", "center", "right")

# ═══════════════════════════════════════════════════════════════════════════════
# COLUMN CATALOG — fixed order; overrides live in settings, keyed by column key
# ═══════════════════════════════════════════════════════════════════════════════
ALL_COLUMNS = [
    {"key": "number",          "label": "#",            "settings_label": "# (номер)",       "align": "center"},
    {"key": "image",           "label": "Фото",         "settings_label": "Изображение",     "align": "center"},
    {"key": "name",            "label": "Наименование", "settings_label": "Наименование",    "align": "left"},
    {"key": "description",     "label": "Описание",     "settings_label": "Описание",        "align": "left"},
    {"key": "characteristics", "label": "Хар-ки",       "settings_label": "Характеристики",  "align": "left"},
    {"key": "article",         "label": "Артикул",      "settings_label": "Артикул",         "align": "left"},
    {"key": "quantity",        "label": "Кол-во",       "settings_label": "Кол-во",          "align": "center"},
    {"key": "price",           "label": "Цена",         "settings_label": "Цена",            "align": "right"},
    {"key": "total",           "label": "Сумма",        "settings_label": "Сумма",           "align": "right"},
]
COLUMN_KEYS = [c["key"] for c in ALL_COLUMNS]
NAME_COLUMN = "name"
MERGED_NAME_LABEL = "Товар"

# name has no default: it takes whatever width is left
DEFAULT_COLUMN_WIDTHS = {
    "number":          30,
    "image":           60,
    "description":     140,
    "characteristics": 140,
    "article":         65,
    "quantity":        50,
    "price":           75,
    "total":           75,
}
FALLBACK_COLUMN_WIDTH = 50
MIN_COLUMN_WIDTH = 20

DEFAULT_COLUMN_ALIGNS = {
    "number":          "center",
    "image":           "center",
    "name":            "left",
    "description":     "left",
    "characteristics": "left",
    "article":         "left",
    "quantity":        "center",
    "price":           "center",
    "total":           "center",
}

FONT_SIZE_MIN, FONT_SIZE_MAX = 6, 20

DEFAULT_SETTINGS = {
    "columns": {
        "number":          True,
        "name":            True,
        "image":           True,
        "description":     False,
        "characteristics": False,
        "article":         False,
        "quantity":        True,
        "price":           True,
        "total":           True,
    },
    "column_widths":              dict(DEFAULT_COLUMN_WIDTHS),
    "column_font_sizes":          {},
    "column_header_font_sizes":   {},
    "column_aligns":              dict(DEFAULT_COLUMN_ALIGNS),
    "column_header_aligns":       {},
    "merge_image_name":           False,
    "manager_align":              "right",
    "logo": {
        "enabled":    True,
        "width":      150,
        "height":     0,      # 0 = auto
        "custom_url": "",
    },
    "text_elements": [],
    "kp_name":       "",
    "title":         "Коммерческое предложение",
    "footer_note":   "* Цены указаны в тенге. Предложение действительно 14 дней.",
}

_NESTED_KEYS = ("columns", "column_widths", "column_font_sizes",
                "column_header_font_sizes", "column_aligns",
                "column_header_aligns", "logo")


def default_settings() -> dict:
    return copy.deepcopy(DEFAULT_SETTINGS)


def merge_with_defaults(parsed) -> dict:
    """Overlay stored settings on the defaults, one level deep for nested maps."""
    merged = default_settings()
    if not isinstance(parsed, dict):
        return merged
    for key, value in parsed.items():
        if key in _NESTED_KEYS:
            if isinstance(value, dict):
                merged[key].update(value)
        else:
            merged[key] = copy.deepcopy(value)

    # numeric maps: garbage falls back to the default, or is dropped without one
    widths = {}
    for key, w in merged["column_widths"].items():
        w = coerce_float(w, DEFAULT_COLUMN_WIDTHS.get(key))
        if w is None:
            log.debug("Dropping non-numeric width for column %r", key)
            continue
        widths[key] = max(MIN_COLUMN_WIDTH, w)
    merged["column_widths"] = widths
    for fonts_key in ("column_font_sizes", "column_header_font_sizes"):
        sizes = {}
        for key, size in merged[fonts_key].items():
            if coerce_float(size, 0) > 0:  # 0 means "no override"
                sizes[key] = _clamp_font(size)
        merged[fonts_key] = sizes

    logo = merged["logo"]
    logo["width"] = coerce_float(logo.get("width"), DEFAULT_SETTINGS["logo"]["width"], minimum=0)
    logo["height"] = coerce_float(logo.get("height"), DEFAULT_SETTINGS["logo"]["height"], minimum=0)

    elements = []
    for el in merged.get("text_elements") or []:
        if not isinstance(el, dict):
            continue
        el = dict(el)
        if not isinstance(el.get("page"), int) or isinstance(el.get("page"), bool):
            el["page"] = 0
        elements.append(el)
    merged["text_elements"] = elements
    return merged


# ═══════════════════════════════════════════════════════════════════════════════
# Column visibility
# ═══════════════════════════════════════════════════════════════════════════════

def visible_columns(settings: dict) -> list:
    """Columns shown in the table, in catalog order.

    name is always visible; merging image into name hides the image column.
    """
    cols = settings.get("columns", {})
    merge = settings.get("merge_image_name", False)
    out = []
    for col in ALL_COLUMNS:
        key = col["key"]
        if merge and key == "image":
            continue
        if key == NAME_COLUMN or cols.get(key):
            out.append(col)
    return out


def column_label(col: dict, settings: dict) -> str:
    if col["key"] == NAME_COLUMN and settings.get("merge_image_name"):
        return MERGED_NAME_LABEL
    return col["label"]


def column_align(key: str, settings: dict) -> str:
    return (settings.get("column_aligns", {}).get(key)
            or DEFAULT_COLUMN_ALIGNS.get(key) or "left")


def column_header_align(key: str, settings: dict) -> str:
    return (settings.get("column_header_aligns", {}).get(key)
            or settings.get("column_aligns", {}).get(key)
            or DEFAULT_COLUMN_ALIGNS.get(key) or "center")


# ═══════════════════════════════════════════════════════════════════════════════
# Update operations
# ═══════════════════════════════════════════════════════════════════════════════

def _with(settings: dict, key: str, sub_key: str, value) -> dict:
    out = copy.deepcopy(settings)
    out.setdefault(key, {})[sub_key] = value
    return out


def update_settings(settings: dict, updates: dict) -> dict:
    out = copy.deepcopy(settings)
    out.update(copy.deepcopy(updates or {}))
    return out


def update_columns(settings: dict, updates: dict) -> dict:
    """Toggle column visibility. The name column cannot be hidden."""
    out = copy.deepcopy(settings)
    for key, on in (updates or {}).items():
        if key not in COLUMN_KEYS:
            log.debug("Ignoring unknown column %r", key)
            continue
        out.setdefault("columns", {})[key] = True if key == NAME_COLUMN else bool(on)
    return out


def update_column_width(settings: dict, key: str, width) -> dict:
    w = coerce_float(width, None)
    if w is None:
        return settings
    return _with(settings, "column_widths", key, max(MIN_COLUMN_WIDTH, int(round(w))))


def _clamp_font(size):
    s = coerce_float(size, None)
    if s is None:
        return None
    return max(FONT_SIZE_MIN, min(FONT_SIZE_MAX, round(s, 1)))


def update_column_font_size(settings: dict, key: str, size) -> dict:
    s = _clamp_font(size)
    if s is None:
        return settings
    return _with(settings, "column_font_sizes", key, s)


def update_column_header_font_size(settings: dict, key: str, size) -> dict:
    s = _clamp_font(size)
    if s is None:
        return settings
    return _with(settings, "column_header_font_sizes", key, s)


def update_column_align(settings: dict, key: str, align: str) -> dict:
    if align not in ALIGNS:
        return settings
    return _with(settings, "column_aligns", key, align)


def update_column_header_align(settings: dict, key: str, align: str) -> dict:
    if align not in ALIGNS:
        return settings
    return _with(settings, "column_header_aligns", key, align)


def update_logo(settings: dict, updates: dict) -> dict:
    out = copy.deepcopy(settings)
    out.setdefault("logo", {}).update(updates or {})
    return out


# ── Text elements ─────────────────────────────────────────────────────────────

DEFAULT_TEXT = "Новый текст"


def add_text_element(settings: dict, text: str = None, page: int = 0, element_id: str = None) -> dict:
    element = {
        "id":          element_id or f"text-{int(time.time() * 1000)}",
        "text":        text or DEFAULT_TEXT,
        "x":           48,
        "y":           500,
        "font_size":   14,
        "font_weight": "normal",
        "text_align":  "left",
        "page":        page or 0,
    }
    out = copy.deepcopy(settings)
    out["text_elements"] = list(out.get("text_elements") or []) + [element]
    return out


def update_text_element(settings: dict, element_id: str, updates: dict) -> dict:
    out = copy.deepcopy(settings)
    out["text_elements"] = [
        {**el, **(updates or {})} if el.get("id") == element_id else el
        for el in out.get("text_elements") or []
    ]
    return out


def remove_text_element(settings: dict, element_id: str) -> dict:
    out = copy.deepcopy(settings)
    out["text_elements"] = [el for el in out.get("text_elements") or []
                            if el.get("id") != element_id]
    return out
