"""
KP (commercial proposal) PDF Generator
=======================================
Draws paginated KP tables onto fixed A4 pages with reportlab.

Layout decisions (what goes on which page) come from the pagination engine;
this module only draws them:
  - First page: date, title, draggable logo
  - Later pages: "continued" marker
  - Every page: table header + the page's rows at their resolved heights
  - Last page: totals row, footer note, manager block
  - Free text elements on the page they are attached to
"""

import io
import os
import base64
import logging
from datetime import datetime

import requests
from reportlab.lib.colors import HexColor
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from kp_layout.core import paths
from kp_layout.core.settings import (
    column_align, column_header_align, column_label, merge_with_defaults,
    visible_columns,
)
from kp_layout.layout.cells import EMPTY_CELL, cell_text
from kp_layout.layout.fonts import column_font_sizes, resolve_font_size
from kp_layout.layout.heights import ReportlabMeasurer, measure_rows, render_geometry
from kp_layout.layout.models import coerce_float, format_price, items_total, normalize_items
from kp_layout.layout.overlay import (
    DEFAULT_LOGO_POS, DEFAULT_MANAGER_POS, TEXT_FOOTPRINT, orphaned_text_elements,
    text_elements_for_page,
)
from kp_layout.layout.page import (
    A4_HEIGHT, A4_WIDTH, CONTINUED_MARKER_H, FOOTER_NOTE_H, MANAGER_INFO_H,
    PADDING, PX, TABLE_HEADER_H, TOTAL_ROW_H,
)
from kp_layout.layout.paginator import first_page_header_height, paginate
from kp_layout.layout.typeface import resolve_fonts

log = logging.getLogger("kp.generator")

# ═══════════════════════════════════════════════════════════════════════════════
# COLORS
# ═══════════════════════════════════════════════════════════════════════════════
BLACK     = HexColor("#000000")
GRID      = HexColor("#d1d5db")   # cell borders
HEADER_BG = HexColor("#f3f4f6")   # table header fill
TOTAL_BG  = HexColor("#f9fafb")   # totals row fill
MUTED     = HexColor("#6b7280")   # description / article / date
NOTE      = HexColor("#9ca3af")   # footer note
MANAGER   = HexColor("#4b5563")
MARKER    = HexColor("#d1d5db")   # "continued"
PAGE_NUM  = HexColor("#888888")

TOTAL_LABEL = "Итого:"
CONTINUED_LABEL = "Продолжение"
DEFAULT_KP_NAME = "КП"
IMAGE_TIMEOUT = 10

# Trailing block text, sized to fit FOOTER_NOTE_H and MANAGER_INFO_H
NOTE_SIZE = 10
NOTE_GAP = 4
MANAGER_SIZE = 11
MANAGER_GAP = 8
MANAGER_LINE_H = 14

MONTHS_RU = ["января", "февраля", "марта", "апреля", "мая", "июня", "июля",
             "августа", "сентября", "октября", "ноября", "декабря"]


def format_date_ru(d: datetime) -> str:
    return f"{d.day} {MONTHS_RU[d.month - 1]} {d.year} г."


def export_filename(kp_name: str = "", now: datetime = None) -> str:
    """<name>_HH-MM-DD-MM-YY.pdf"""
    now = now or datetime.now()
    stamp = now.strftime("%H-%M-%d-%m-%y")
    return f"{kp_name or DEFAULT_KP_NAME}_{stamp}.pdf"


def footer_note_lines(measurer, note: str, width: float) -> list:
    """Wrapped footer note, cut to the lines that fit FOOTER_NOTE_H."""
    lines = measurer.lines(note, width, NOTE_SIZE)
    fit = int((FOOTER_NOTE_H - NOTE_GAP) // (NOTE_SIZE * measurer.LINE_HEIGHT))
    if len(lines) > fit:
        log.debug("Footer note cut from %d to %d lines", len(lines), fit)
    return lines[:fit]


# ═══════════════════════════════════════════════════════════════════════════════
# Images
# ═══════════════════════════════════════════════════════════════════════════════

def load_image(ref: str, cache: dict = None):
    """ImageReader for a data: URL, http(s) URL or local path; None if unusable."""
    if not ref:
        return None
    if cache is not None and ref in cache:
        return cache[ref]
    img = None
    try:
        if ref.startswith("data:"):
            _, _, payload = ref.partition(",")
            img = ImageReader(io.BytesIO(base64.b64decode(payload)))
        elif ref.startswith(("http://", "https://")):
            resp = requests.get(ref, timeout=IMAGE_TIMEOUT)
            resp.raise_for_status()
            img = ImageReader(io.BytesIO(resp.content))
        elif os.path.exists(ref):
            img = ImageReader(ref)
        else:
            log.debug("Image not found: %s", ref[:80])
    except Exception as e:
        log.warning(f"Image load failed ({ref[:60]}): {e}")
        img = None
    if cache is not None:
        cache[ref] = img
    return img


def _fit(img, max_w, max_h):
    iw, ih = img.getSize()
    s = min(max_w / iw, max_h / ih)
    return iw * s, ih * s


# ═══════════════════════════════════════════════════════════════════════════════
# PDF GENERATOR
# ═══════════════════════════════════════════════════════════════════════════════

def generate_kp_pdf(
    items: list,
    settings: dict,
    output_path: str,
    manager: dict = None,
    positions: dict = None,
    measurer=None,
    measured: dict = None,
    logo_path: str = None,
    date: datetime = None,
) -> dict:
    """
    Render a KP to a multi-page A4 PDF.

    Args:
        items: line item dicts (normalized here)
        settings: KP settings (merged with defaults here)
        manager: {"full_name", "email", "phone"}; no block (and no reserved
                 space) when None
        positions: {"logo": {x, y}, "manager": {x, y}}
        measurer: row measurement provider; defaults to ReportlabMeasurer
        measured: precomputed measurements, skips the measuring pass
        logo_path: overrides settings.logo.custom_url and assets/logo.*
    Returns:
        {ok, path, pages, items_count, total, orphaned_text_elements}
    """
    items = normalize_items(items)
    settings = merge_with_defaults(settings)
    positions = positions or {}
    date = date or datetime.now()

    if not items:
        log.info("KP export skipped: no items")
        return {"ok": False, "error": "KP has no items", "pages": 0, "items_count": 0}

    # ── Pagination ─────────────────────────────────────────────────────────────
    if measured is None:
        measurer = measurer or ReportlabMeasurer(merge_image_name=settings.get("merge_image_name", False))
        measured = measure_rows(items, settings, measurer)
    pages = paginate(items, settings, measured, manager_info=bool(manager))
    total_pages = len(pages)
    total_amount = items_total(items)

    log.info("Generating KP %s (%d items, %d pages)",
             settings.get("kp_name") or DEFAULT_KP_NAME, len(items), total_pages,
             extra={"items": len(items), "pages": total_pages, "kp_name": settings.get("kp_name", "")})

    font, bold = resolve_fonts()
    cols = visible_columns(settings)
    keys = [c["key"] for c in cols]
    col_w_map, font_sizes = render_geometry(settings)
    widths_cfg = settings.get("column_widths", {})
    header_sizes = column_font_sizes(keys, widths_cfg, settings.get("column_header_font_sizes"))
    text_wrap = ReportlabMeasurer(merge_image_name=settings.get("merge_image_name", False),
                                  font_name=font, bold_font_name=bold)
    image_cache = {}

    # Column x positions
    col_x = {}
    x = PADDING
    for k in keys:
        col_x[k] = x
        x += col_w_map[k]
    table_w = x - PADDING

    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    c = canvas.Canvas(output_path, pagesize=(A4_WIDTH * PX, A4_HEIGHT * PX))
    c.setTitle(settings.get("title") or DEFAULT_KP_NAME)
    c.setAuthor((manager or {}).get("full_name", ""))

    # px top-origin → reportlab bottom-origin (drawing is done in px under c.scale)
    def Y(top_y):
        return A4_HEIGHT - top_y

    def text(x, yt, txt, fnt=None, size=12, color=BLACK, align="left"):
        c.setFont(fnt or font, size)
        c.setFillColor(color)
        s = str(txt) if txt is not None else ""
        if align == "right":
            c.drawRightString(x, Y(yt), s)
        elif align == "center":
            c.drawCentredString(x, Y(yt), s)
        else:
            c.drawString(x, Y(yt), s)

    def cell_box(x, yt, w, h, fill=None):
        if fill is not None:
            c.setFillColor(fill)
            c.rect(x, Y(yt) - h, w, h, fill=1, stroke=0)
        c.setStrokeColor(GRID)
        c.setLineWidth(1)
        c.rect(x, Y(yt) - h, w, h, fill=0, stroke=1)

    def aligned_x(x, w, align, pad=4):
        if align == "right":
            return x + w - pad
        if align == "center":
            return x + w / 2
        return x + pad

    def lines_block(x, yt, w, lines, size, align, fnt=None, color=BLACK):
        """Draw wrapped lines from the top of a cell. Returns y under the block."""
        ty = yt + size
        for ln in lines:
            text(aligned_x(x, w, align), ty, ln, fnt, size, color, align)
            ty += size * text_wrap.LINE_HEIGHT
        return ty - size

    # ── Page header blocks ─────────────────────────────────────────────────────
    def draw_first_header():
        logo = settings.get("logo", {})
        text(A4_WIDTH - PADDING, PADDING + 14, format_date_ru(date), size=14, color=MUTED, align="right")
        header_h = first_page_header_height(bool(logo.get("enabled")), logo.get("width") or 0)
        text(A4_WIDTH / 2, PADDING + header_h - 24, settings.get("title", ""), bold, 20, BLACK, "center")
        if logo.get("enabled"):
            ref = logo_path or logo.get("custom_url") or paths.find_default_logo()
            img = load_image(ref, image_cache) if ref else None
            if img:
                pos = positions.get("logo") or DEFAULT_LOGO_POS
                lw = logo.get("width") or 150
                iw, ih = img.getSize()
                lh = logo.get("height") or lw * ih / iw
                lx = coerce_float(pos.get("x"), DEFAULT_LOGO_POS["x"])
                ly = coerce_float(pos.get("y"), DEFAULT_LOGO_POS["y"])
                c.drawImage(img, lx, Y(ly) - lh, width=lw, height=lh, mask="auto")
            else:
                log.debug("Logo enabled but no image available")
        return PADDING + header_h

    def draw_continued_marker():
        text(A4_WIDTH - PADDING, PADDING + 10, CONTINUED_LABEL, size=10, color=MARKER, align="right")
        return PADDING + CONTINUED_MARKER_H

    def draw_table_header(ty):
        for col in cols:
            k = col["key"]
            cell_box(col_x[k], ty, col_w_map[k], TABLE_HEADER_H, fill=HEADER_BG)
            size = header_sizes[k]
            align = column_header_align(k, settings)
            text(aligned_x(col_x[k], col_w_map[k], align), ty + TABLE_HEADER_H / 2 + size / 3,
                 column_label(col, settings), bold, size, BLACK, align)
        return ty + TABLE_HEADER_H

    # ── Rows ───────────────────────────────────────────────────────────────────
    def draw_cell(k, item, index, x, yt, w, row_h):
        size = font_sizes[k]
        align = column_align(k, settings)
        inner = w - 2 * text_wrap.CELL_PAD
        top = yt + text_wrap.CELL_PAD
        cell_box(x, yt, w, row_h)

        if k == "image":
            img = load_image(item.get("image_url"), image_cache)
            if img:
                side = max(16, w - 12)
                dw, dh = _fit(img, side, side)
                ix = aligned_x(x, w, align) - (dw / 2 if align == "center" else dw if align == "right" else 0)
                c.drawImage(img, ix, Y(top) - dh, width=dw, height=dh, mask="auto")
            else:
                text(aligned_x(x, w, align), top + size, EMPTY_CELL, size=size, color=GRID, align=align)
            return

        if k == "name":
            lines = text_wrap.lines(item.get("name", ""), inner, size, bold=True)
            by = lines_block(x, top, w, lines, size, align, bold)
            if settings.get("merge_image_name"):
                img = load_image(item.get("image_url"), image_cache)
                if img:
                    dw, dh = _fit(img, inner, inner)
                    c.drawImage(img, x + text_wrap.CELL_PAD, Y(by + 4) - dh, width=dw, height=dh, mask="auto")
            return

        if k == "characteristics":
            blocks = text_wrap.characteristic_blocks(item, inner, size)
            if not blocks:
                text(aligned_x(x, w, align), top + size, EMPTY_CELL, size=size, color=GRID, align=align)
                return
            for offset, lines in blocks:
                lines_block(x, top + offset, w, lines, size, align)
            return

        color = MUTED if k in ("description", "article") else BLACK
        fnt = bold if k == "total" else None
        lines = text_wrap.lines(cell_text(k, item, index), inner, size)
        lines_block(x, top, w, lines, size, align, fnt, color)

    def draw_rows(page, ty):
        for entry in page["items"]:
            row_h = entry["height"]
            for k in keys:
                draw_cell(k, entry["item"], entry["index"], col_x[k], ty, col_w_map[k], row_h)
            ty += row_h
        return ty

    # ── Trailing block ────────────────────────────────────────────────────────
    def draw_totals(ty):
        show_total = "total" in keys
        label_w = table_w - (col_w_map["total"] if show_total else 0)
        cell_box(PADDING, ty, label_w, TOTAL_ROW_H, fill=TOTAL_BG)
        text(PADDING + label_w - 6, ty + TOTAL_ROW_H / 2 + 4, TOTAL_LABEL, bold, 11, BLACK, "right")
        if show_total:
            tx = col_x["total"]
            cell_box(tx, ty, col_w_map["total"], TOTAL_ROW_H, fill=TOTAL_BG)
            size = resolve_font_size("total", widths_cfg, settings.get("column_font_sizes"))
            text(tx + col_w_map["total"] / 2, ty + TOTAL_ROW_H / 2 + size / 3,
                 format_price(total_amount), bold, size, BLACK, "center")
        return ty + TOTAL_ROW_H

    def draw_footer_note(ty):
        note = settings.get("footer_note")
        if not note:
            return ty
        lines = footer_note_lines(text_wrap, note, table_w - 2 * text_wrap.CELL_PAD)
        lines_block(PADDING, ty + NOTE_GAP, table_w, lines, NOTE_SIZE, "left", color=NOTE)
        return ty + FOOTER_NOTE_H

    def draw_manager(ty):
        if not manager:
            return ty
        pos = positions.get("manager") or DEFAULT_MANAGER_POS
        mx = PADDING + coerce_float(pos.get("x"), 0)
        my = ty + MANAGER_GAP + coerce_float(pos.get("y"), 0)
        rows = []
        if manager.get("full_name"):
            rows.append((f"Менеджер: {manager['full_name']}", bold))
        if manager.get("email"):
            rows.append((f"Mail: {manager['email']}", font))
        if manager.get("phone"):
            rows.append((f"Телефон: {manager['phone']}", font))
        align = settings.get("manager_align", "right")
        for label, fnt in rows:
            text(aligned_x(mx, table_w, align, pad=6), my + MANAGER_SIZE, label, fnt, MANAGER_SIZE, MANAGER, align)
            my += MANAGER_LINE_H
        return ty + MANAGER_INFO_H

    def draw_text_elements(page_idx):
        for el in text_elements_for_page(settings.get("text_elements"), page_idx):
            size = coerce_float(el.get("font_size"), 0, minimum=0) or 14
            fnt = bold if el.get("font_weight") == "bold" else font
            align = el.get("text_align", "left")
            tx = aligned_x(coerce_float(el.get("x"), 0), TEXT_FOOTPRINT[0], align)
            text(tx, coerce_float(el.get("y"), 0) + 2 + size, el.get("text", ""), fnt, size, BLACK, align)

    # ══════════════════════════════════════════════════════════════════════════
    # PAGES
    # ══════════════════════════════════════════════════════════════════════════
    for page_idx, page in enumerate(pages):
        c.saveState()
        c.scale(PX, PX)

        cur_y = draw_first_header() if page["is_first"] else draw_continued_marker()
        cur_y = draw_table_header(cur_y)
        cur_y = draw_rows(page, cur_y)

        if page["is_last"]:
            cur_y = draw_totals(cur_y)
            cur_y = draw_footer_note(cur_y)
            draw_manager(cur_y)

        draw_text_elements(page_idx)

        text(A4_WIDTH - PADDING, A4_HEIGHT - 20, f"{page_idx + 1} of {total_pages}",
             size=8, color=PAGE_NUM, align="right")
        c.restoreState()
        c.showPage()

    c.save()

    orphans = orphaned_text_elements(settings.get("text_elements"), total_pages)
    if orphans:
        log.warning("%d text element(s) attached to pages beyond %d were not drawn: %s",
                    len(orphans), total_pages, ", ".join(str(el.get("id")) for el in orphans))

    return {
        "ok": True,
        "path": output_path,
        "pages": total_pages,
        "items_count": len(items),
        "total": total_amount,
        "orphaned_text_elements": [el.get("id") for el in orphans],
    }
