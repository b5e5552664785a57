"""
KP pagination — split line items into fixed-size A4 pages.

Greedy fill, one page at a time:
  1. Budget = first-page budget (title block, logo, table header) or the
     continuation budget (table header + "continued" marker).
  2. Take items while they fit. A page always takes at least one item, so an
     oversized row sits alone on its page instead of looping forever.
  3. The page that consumes the last item is the last page.
  4. If that last page holds more than one item and can't fit the trailing
     block (totals row, footer note, manager info), its final item moves to
     a new page, which becomes the last page.

Every item lands on exactly one page, in input order.
"""

import logging

from kp_layout.layout.heights import resolve_row_height
from kp_layout.layout.models import coerce_float
from kp_layout.layout.page import (
    CONTINUED_MARKER_H, FOOTER_NOTE_H, MANAGER_INFO_H, TABLE_HEADER_H,
    TOTAL_ROW_H, USABLE_HEIGHT,
)

log = logging.getLogger("kp.paginator")

HEADER_H_WITH_LOGO = 100
HEADER_H_NO_LOGO = 80
LOGO_HEADER_FACTOR = 0.25


# ═══════════════════════════════════════════════════════════════════════════════
# Budgets
# ═══════════════════════════════════════════════════════════════════════════════

def first_page_header_height(logo_enabled: bool, logo_width: float) -> float:
    if logo_enabled:
        return HEADER_H_WITH_LOGO + coerce_float(logo_width, 0, minimum=0) * LOGO_HEADER_FACTOR
    return HEADER_H_NO_LOGO


def first_page_budget(logo_enabled: bool, logo_width: float) -> float:
    return USABLE_HEIGHT - first_page_header_height(logo_enabled, logo_width) - TABLE_HEADER_H


def continuation_budget() -> float:
    return USABLE_HEIGHT - TABLE_HEADER_H - CONTINUED_MARKER_H


def trailing_block_height(footer_note: bool = True, manager_info: bool = True) -> float:
    """Space the last page keeps free under its final row."""
    h = TOTAL_ROW_H
    if footer_note:
        h += FOOTER_NOTE_H
    if manager_info:
        h += MANAGER_INFO_H
    return h


# ═══════════════════════════════════════════════════════════════════════════════
# Page builder
# ═══════════════════════════════════════════════════════════════════════════════

def build_pages(items: list, columns: dict, widths: dict,
                logo_enabled: bool = True, logo_width: float = 0,
                measured: dict = None, font_sizes: dict = None,
                trailing: float = None) -> list:
    """Split items into page slices.

    Returns [{"items": [{"item", "index", "height"}], "is_first", "is_last"}].
    """
    if not items:
        return []

    first_avail = first_page_budget(logo_enabled, logo_width)
    other_avail = continuation_budget()
    if trailing is None:
        trailing = trailing_block_height()

    row_h = [resolve_row_height(items, i, columns, widths, measured, font_sizes)
             for i in range(len(items))]

    pages = []
    idx = 0
    is_first = True

    while idx < len(items):
        available = first_avail if is_first else other_avail
        page_items = []

        while idx < len(items):
            rh = row_h[idx]
            if page_items and available < rh:
                break
            page_items.append({"item": items[idx], "index": idx, "height": rh})
            available -= rh
            idx += 1

        is_last = idx >= len(items)

        if is_last and len(page_items) > 1 and available < trailing:
            evicted = page_items.pop()
            idx -= 1
            log.debug("Page %d: %.0fpx left < %.0fpx trailing block, moving item %d to next page",
                      len(pages) + 1, available, trailing, evicted["index"])
            pages.append({"items": page_items, "is_first": is_first, "is_last": False})
            is_first = False
            continue

        pages.append({"items": page_items, "is_first": is_first, "is_last": is_last})
        is_first = False

    log.debug("Paginated %d items into %d pages", len(items), len(pages))
    return pages


def paginate(items: list, settings: dict, measured: dict = None, manager_info: bool = True) -> list:
    """build_pages driven by a settings dict."""
    logo = settings.get("logo")
    logo = logo if isinstance(logo, dict) else {}
    trailing = trailing_block_height(
        footer_note=bool(settings.get("footer_note")),
        manager_info=manager_info,
    )
    return build_pages(
        items,
        settings.get("columns", {}),
        settings.get("column_widths", {}),
        logo_enabled=bool(logo.get("enabled")),
        logo_width=coerce_float(logo.get("width"), 0, minimum=0),
        measured=measured,
        font_sizes=settings.get("column_font_sizes"),
        trailing=trailing,
    )


def page_indexes(pages: list) -> list:
    """[[original index, ...] per page]"""
    return [[entry["index"] for entry in page["items"]] for page in pages]
