"""
A4 page geometry, in CSS pixels at 96 dpi.

The pagination engine budgets in these units; the PDF renderer converts
to points with PX.
"""

A4_WIDTH = 794
A4_HEIGHT = 1123
PAGE_GAP = 24
PADDING = 48
USABLE_HEIGHT = A4_HEIGHT - PADDING * 2        # 1027
TABLE_CONTENT_WIDTH = A4_WIDTH - PADDING * 2   # 698

# Height estimates (fallback when measurement unavailable)
TABLE_HEADER_H = 30
CONTINUED_MARKER_H = 16
TOTAL_ROW_H = 32
FOOTER_NOTE_H = 28
MANAGER_INFO_H = 52
MIN_ROW_H = 28

# px → pt
PX = 0.75


def stacked_preview_height(page_count: int) -> int:
    """Total height of the preview column: pages stacked with PAGE_GAP between."""
    return A4_HEIGHT * page_count + PAGE_GAP * max(0, page_count - 1)
