"""
Free-floating page elements: logo, text annotations, manager-info block.

Positions are top-left corners in page pixels. Everything here is pure; the
editor that owns the elements decides what to do with text annotations whose
page no longer exists.
"""

from kp_layout.layout.page import A4_HEIGHT, A4_WIDTH, MANAGER_INFO_H

PAGE_BOUNDS = (A4_WIDTH, A4_HEIGHT)

TEXT_FOOTPRINT = (100, 30)
LOGO_FOOTPRINT = (50, 50)
MANAGER_DEFAULT_WIDTH = 200

DEFAULT_LOGO_POS = {"x": 48, "y": 48}
DEFAULT_MANAGER_POS = {"x": 0, "y": 0}

LOGO_WIDTH_RANGE = (30, 500)
LOGO_HEIGHT_RANGE = (20, 400)
LOGO_AUTO_HEIGHT = 80


def clamp_point(point: dict, footprint: tuple, bounds: tuple = PAGE_BOUNDS) -> dict:
    """Keep an element of size footprint fully inside bounds."""
    w, h = footprint
    max_x = max(0, bounds[0] - w)
    max_y = max(0, bounds[1] - h)
    return {
        "x": max(0, min(max_x, point.get("x", 0))),
        "y": max(0, min(max_y, point.get("y", 0))),
    }


def element_footprint(width=None, height=None, default: tuple = TEXT_FOOTPRINT) -> tuple:
    """(w, h); a missing width or an unset/auto (0) height uses the default."""
    return (width or default[0], height or default[1])


def manager_footprint(width=None) -> tuple:
    return (width or MANAGER_DEFAULT_WIDTH, MANAGER_INFO_H)


def move_element(start: dict, delta: tuple, footprint: tuple, scale: float = 1.0,
                 bounds: tuple = PAGE_BOUNDS) -> dict:
    """Drag from start by a screen-pixel delta on a preview shown at scale."""
    scale = scale or 1.0
    dx, dy = delta
    moved = {"x": start.get("x", 0) + dx / scale, "y": start.get("y", 0) + dy / scale}
    return clamp_point(moved, footprint, bounds)


def resize_logo(width, height, dx: float, dy: float, corner: str = "bottom-right",
                scale: float = 1.0) -> dict:
    """Corner-drag resize. height 0 means auto, resized from LOGO_AUTO_HEIGHT."""
    scale = scale or 1.0
    sign_x = 1 if "right" in corner else -1
    sign_y = 1 if "bottom" in corner else -1
    start_h = height if height and height > 0 else LOGO_AUTO_HEIGHT
    new_w = round(width + dx / scale * sign_x)
    new_h = round(start_h + dy / scale * sign_y)
    return {
        "width": max(LOGO_WIDTH_RANGE[0], min(LOGO_WIDTH_RANGE[1], new_w)),
        "height": max(LOGO_HEIGHT_RANGE[0], min(LOGO_HEIGHT_RANGE[1], new_h)),
    }


# ── Text annotation ↔ page association ───────────────────────────────────────

def element_page(el: dict) -> int:
    page = el.get("page")
    return page if isinstance(page, int) and not isinstance(page, bool) else 0


def text_elements_for_page(elements, page_index: int) -> list:
    return [el for el in elements or [] if element_page(el) == page_index]


def orphaned_text_elements(elements, page_count: int) -> list:
    """Annotations pointing at a page that was not produced."""
    return [el for el in elements or []
            if not 0 <= element_page(el) < page_count]
