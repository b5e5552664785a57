"""
Keyed stores for KP state (items, settings, element positions).

A store is anything with get(key, default=None) and set(key, value).
JsonFileStore keeps one JSON document on disk; MemoryStore is for tests
and throwaway previews.
"""

import os
import copy
import json
import logging
import tempfile
import threading

from kp_layout.core import paths
from kp_layout.core.settings import merge_with_defaults
from kp_layout.layout.models import normalize_items
from kp_layout.layout.overlay import DEFAULT_LOGO_POS, DEFAULT_MANAGER_POS

log = logging.getLogger("kp.store")

# serializes read-modify-write across store instances (one per request)
_write_lock = threading.Lock()

ITEMS_KEY = "kp-items"
SETTINGS_KEY = "kp-settings"
LOGO_POS_KEY = "kp-logo-pos"
MANAGER_POS_KEY = "kp-manager-pos"

POSITION_KEYS = {
    "logo":    (LOGO_POS_KEY, DEFAULT_LOGO_POS),
    "manager": (MANAGER_POS_KEY, DEFAULT_MANAGER_POS),
}


class MemoryStore:
    def __init__(self, data: dict = None):
        self._data = copy.deepcopy(data or {})

    def get(self, key, default=None):
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key, value):
        self._data[key] = copy.deepcopy(value)


class JsonFileStore:
    """All keys in one JSON file. Writes go to a temp file, then replace."""

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> dict:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            log.warning("Store %s unreadable, starting empty: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key, default=None):
        return self._load().get(key, default)

    def set(self, key, value):
        folder = os.path.dirname(self.path) or "."
        os.makedirs(folder, exist_ok=True)
        with _write_lock:
            data = self._load()
            data[key] = value
            fd, tmp = tempfile.mkstemp(dir=folder, prefix=".kp-store-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, default=str, ensure_ascii=False)
                os.replace(tmp, self.path)
            except Exception:
                if os.path.exists(tmp):
                    os.remove(tmp)
                raise


def default_store() -> JsonFileStore:
    return JsonFileStore(paths.store_path())


# ═══════════════════════════════════════════════════════════════════════════════
# Typed accessors
# ═══════════════════════════════════════════════════════════════════════════════

def load_settings(store) -> dict:
    return merge_with_defaults(store.get(SETTINGS_KEY))


def save_settings(store, settings: dict) -> dict:
    merged = merge_with_defaults(settings)
    store.set(SETTINGS_KEY, merged)
    return merged


def load_items(store) -> list:
    raw = store.get(ITEMS_KEY)
    if not isinstance(raw, list):
        return []
    return normalize_items(raw)


def save_items(store, items: list) -> list:
    items = normalize_items(items)
    store.set(ITEMS_KEY, items)
    return items


def load_position(store, key: str, default: dict) -> dict:
    """Stored {"x", "y"}; anything without a numeric x falls back to default."""
    pos = store.get(key)
    if isinstance(pos, dict) and isinstance(pos.get("x"), (int, float)) \
            and not isinstance(pos.get("x"), bool):
        y = pos.get("y")
        return {"x": pos["x"], "y": y if isinstance(y, (int, float)) else default["y"]}
    return dict(default)


def save_position(store, key: str, pos: dict) -> dict:
    pos = {"x": pos.get("x", 0), "y": pos.get("y", 0)}
    store.set(key, pos)
    return pos


def load_positions(store) -> dict:
    return {name: load_position(store, key, default)
            for name, (key, default) in POSITION_KEYS.items()}
