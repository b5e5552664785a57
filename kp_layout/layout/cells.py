"""
Cell content shared by the row measurer and the PDF renderer, so both wrap
exactly the same text.
"""

from kp_layout.layout.models import (
    format_price, item_total, visible_characteristics,
)

EMPTY_CELL = "—"


def cell_text(key: str, item: dict, index: int) -> str:
    """Plain text of a single-block cell. index is the item's position in the KP."""
    if key == "number":
        return str(index + 1)
    if key == "name":
        return item.get("name", "")
    if key == "description":
        return item.get("description") or EMPTY_CELL
    if key == "article":
        return item.get("article") or EMPTY_CELL
    if key == "quantity":
        return str(item.get("quantity", 1))
    if key == "price":
        return format_price(item.get("price"))
    if key == "total":
        return format_price(item_total(item))
    return ""


def characteristic_lines(item: dict) -> list:
    """[(key, value)] pairs to render; "code" entries already dropped."""
    return [(ch.get("key", ""), ch.get("value", ""))
            for ch in visible_characteristics(item.get("characteristics"))]
