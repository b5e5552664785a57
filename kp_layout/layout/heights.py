"""
Row height resolution.

A row's height comes from a real measurement when one is available and
still matches the current item order; otherwise from a heuristic lower
bound built from text length, column width and font size.

Measurements are produced by a provider, any object with
    measure_row(item, column_widths, font_sizes) -> float | None
where None means "can't measure this row". ReportlabMeasurer line-breaks
with reportlab's font metrics, which is what the PDF renderer draws with.
"""

import math
import logging

from reportlab.lib.utils import simpleSplit

from kp_layout.core.kp_items import item_signature
from kp_layout.core.settings import visible_columns
from kp_layout.layout.cells import EMPTY_CELL, cell_text, characteristic_lines
from kp_layout.layout.columns import column_width_map
from kp_layout.layout.fonts import BASE_FONT_SIZE, column_font_sizes, resolve_font_size
from kp_layout.layout.models import coerce_float
from kp_layout.layout.page import MIN_ROW_H
from kp_layout.layout.typeface import resolve_fonts

log = logging.getLogger("kp.heights")

# Heuristic constants
CHAR_WIDTH_FACTOR = 0.55     # average glyph width as a fraction of font size
MIN_CHARS_PER_LINE = 4
LINE_GAP = 3                 # leading added to font size per wrapped line
IMAGE_PAD = 12               # image column padding around the picture
MIN_IMAGE = 16
DEFAULT_DESC_WIDTH = 140
DEFAULT_CHARS_WIDTH = 140
DEFAULT_IMAGE_WIDTH = 60

# Measurement feedback guard
HEIGHT_TOLERANCE = 1


# ═══════════════════════════════════════════════════════════════════════════════
# Heuristic estimate
# ═══════════════════════════════════════════════════════════════════════════════

def chars_per_line(col_w: float, font_size: float) -> int:
    return max(MIN_CHARS_PER_LINE, math.floor(col_w / (font_size * CHAR_WIDTH_FACTOR)))


def wrapped_lines(text: str, col_w: float, font_size: float) -> int:
    return math.ceil(len(text) / chars_per_line(col_w, font_size))


def _width(widths: dict, key: str, default: float) -> float:
    return coerce_float(widths.get(key), 0, minimum=0) or default


def estimate_row_height(item: dict, columns: dict, widths: dict, font_sizes: dict = None) -> float:
    """Lower bound for a row. Drivers render side by side, so take the max."""
    widths = widths or {}
    h = MIN_ROW_H

    if columns.get("image") and item.get("image_url"):
        img = max(MIN_IMAGE, _width(widths, "image", DEFAULT_IMAGE_WIDTH) - IMAGE_PAD)
        h = max(h, img + 10)

    desc = item.get("description")
    if columns.get("description") and desc:
        col_w = _width(widths, "description", DEFAULT_DESC_WIDTH)
        fs = resolve_font_size("description", widths, font_sizes)
        lines = wrapped_lines(desc, col_w, fs)
        h = max(h, lines * (fs + LINE_GAP) + fs + 10)  # +fs: blank line under the text

    if columns.get("characteristics") and item.get("characteristics"):
        pairs = characteristic_lines(item)
        if pairs:
            col_w = _width(widths, "characteristics", DEFAULT_CHARS_WIDTH)
            fs = resolve_font_size("characteristics", widths, font_sizes)
            char_h = 10
            for key, value in pairs:
                char_h += wrapped_lines(f"{key}: {value}", col_w, fs) * (fs + LINE_GAP)
            char_h += fs
            h = max(h, char_h)

    return h


# ═══════════════════════════════════════════════════════════════════════════════
# Measured heights
# ═══════════════════════════════════════════════════════════════════════════════

def empty_measurements() -> dict:
    return {"signature": [], "heights": []}


def is_fresh(measured, items) -> bool:
    """Measurements apply only to the item order they were taken for."""
    if not isinstance(measured, dict):
        return False
    return measured.get("signature") == item_signature(items)


def resolve_row_height(items: list, index: int, columns: dict, widths: dict,
                       measured: dict = None, font_sizes: dict = None) -> float:
    if is_fresh(measured, items):
        heights = measured.get("heights")
        heights = heights if isinstance(heights, list) else []
        h = coerce_float(heights[index], 0) if index < len(heights) else 0
        if h > 0:
            return h
    return estimate_row_height(items[index], columns, widths, font_sizes)


def heights_changed(old: list, new: list, tolerance: float = HEIGHT_TOLERANCE) -> bool:
    if len(old or []) != len(new or []):
        return True
    return any(abs(coerce_float(n, 0) - coerce_float(o, 0)) > tolerance for o, n in zip(old, new))


def reconcile_measurements(previous: dict, current: dict, tolerance: float = HEIGHT_TOLERANCE) -> dict:
    """Keep previous unless current moved by more than tolerance.

    Re-measuring after every layout pass would otherwise feed back into
    another layout pass forever.
    """
    if not previous:
        return current
    if previous.get("signature") != current.get("signature"):
        return current
    if heights_changed(previous.get("heights"), current.get("heights"), tolerance):
        log.debug("Row measurements changed beyond %spx, updating", tolerance)
        return current
    return previous


# ═══════════════════════════════════════════════════════════════════════════════
# reportlab measurement provider
# ═══════════════════════════════════════════════════════════════════════════════

class ReportlabMeasurer:
    """Measures rows by line-breaking cell text with reportlab font metrics.

    Cell geometry matches the renderer: 4px padding on every side, 1.2 line
    height, a blank font-size line under description and characteristics.
    """

    CELL_PAD = 4
    LINE_HEIGHT = 1.2
    BORDER = 1

    def __init__(self, merge_image_name: bool = False, font_name: str = None, bold_font_name: str = None):
        regular, bold = resolve_fonts()
        self.font_name = font_name or regular
        self.bold_font_name = bold_font_name or bold
        self.merge_image_name = merge_image_name

    def lines(self, text: str, width: float, font_size: float, bold: bool = False) -> list:
        font = self.bold_font_name if bold else self.font_name
        out = []
        for para in str(text).split("\n"):
            out.extend(simpleSplit(para, font, font_size, max(1, width)) or [""])
        return out

    def _text_h(self, n_lines: int, font_size: float) -> float:
        return n_lines * font_size * self.LINE_HEIGHT

    def cell_height(self, key: str, item: dict, index: int, col_w: float, font_size: float) -> float:
        inner = col_w - 2 * self.CELL_PAD
        if key == "image":
            if item.get("image_url"):
                return max(MIN_IMAGE, col_w - IMAGE_PAD)
            return self._text_h(1, font_size)
        if key == "name":
            h = self._text_h(len(self.lines(item.get("name", ""), inner, font_size, bold=True)), font_size)
            if self.merge_image_name and item.get("image_url"):
                h += 4 + inner
            return h
        if key == "description":
            n = len(self.lines(cell_text(key, item, index), inner, font_size))
            return self._text_h(n, font_size) + font_size
        if key == "characteristics":
            blocks = self.characteristic_blocks(item, inner, font_size)
            if not blocks:
                return self._text_h(1, font_size)
            offset, lines = blocks[-1]
            return offset + self._text_h(len(lines), font_size) + font_size
        n = len(self.lines(cell_text(key, item, index) or EMPTY_CELL, inner, font_size))
        return self._text_h(n, font_size)

    def characteristic_blocks(self, item: dict, width: float, font_size: float) -> list:
        """[(top offset, lines)] per visible characteristic, stacked with no gap."""
        blocks = []
        offset = 0
        for key, value in characteristic_lines(item):
            lines = self.lines(f"{key}: {value}", width, font_size)
            blocks.append((offset, lines))
            offset += self._text_h(len(lines), font_size)
        return blocks

    def measure_row(self, item: dict, column_widths: dict, font_sizes: dict, index: int = 0):
        """Row height in px, or None without column geometry. index only feeds the # cell."""
        if not column_widths:
            return None
        tallest = 0
        for key, col_w in column_widths.items():
            fs = font_sizes.get(key) or BASE_FONT_SIZE
            tallest = max(tallest, self.cell_height(key, item, index, col_w, fs))
        return tallest + 2 * self.CELL_PAD + self.BORDER


def render_geometry(settings: dict) -> tuple:
    """(column_widths, font_sizes) for the visible columns, as the table is drawn."""
    keys = [c["key"] for c in visible_columns(settings)]
    widths = settings.get("column_widths", {})
    return (column_width_map(keys, widths),
            column_font_sizes(keys, widths, settings.get("column_font_sizes")))


def measure_rows(items: list, settings: dict, provider) -> dict:
    """Measure every row with provider; unmeasurable rows are stored as 0."""
    col_widths, font_sizes = render_geometry(settings)
    heights = []
    for item in items:
        h = provider.measure_row(item, col_widths, font_sizes)
        heights.append(h if h and h > 0 else 0)
    return {"signature": item_signature(items), "heights": heights}
