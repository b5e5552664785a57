"""
KP item list operations.

The list is owned by the catalog-selection UI and persisted under
"kp-items". Functions return a new list; inputs are never mutated.
"""

import time
import logging

from kp_layout.layout.models import normalize_item, coerce_int

log = logging.getLogger("kp.items")


def add_item(items: list, item: dict) -> list:
    """Append with quantity 1. An id already in the list is ignored."""
    if any(it.get("id") == item.get("id") for it in items):
        log.info("Item %s already in KP", item.get("id"))
        return list(items)
    new = normalize_item({**item, "quantity": 1})
    new["added_at"] = int(time.time() * 1000)
    log.info("Added %s to KP", new.get("name", "")[:60])
    return list(items) + [new]


def remove_item(items: list, item_id) -> list:
    return [it for it in items if it.get("id") != item_id]


def update_item_quantity(items: list, item_id, quantity) -> list:
    """Set quantity; anything below 1 (or non-numeric) leaves the list as is."""
    q = coerce_int(quantity, 0)
    if q < 1:
        return list(items)
    return [{**it, "quantity": q} if it.get("id") == item_id else it for it in items]


def update_item(items: list, item_id, updates: dict) -> list:
    return [normalize_item({**it, **(updates or {})}) if it.get("id") == item_id else it
            for it in items]


def clear_items() -> list:
    return []


def item_signature(items) -> list:
    """Current item ordering, used to tell stale row measurements apart."""
    return [it.get("id") for it in items or []]
