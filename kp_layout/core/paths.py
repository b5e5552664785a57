"""
kp_layout/core/paths.py — Centralized Path Configuration

Single source of truth for directory paths. Every module imports from here
instead of computing its own DATA_DIR.
"""

import os
import logging

log = logging.getLogger("kp.paths")

# ── Project Root ──────────────────────────────────────────────────────────────
_THIS_FILE = os.path.abspath(__file__)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(_THIS_FILE)))

_DEFAULT_DATA_DIR = os.path.join(PROJECT_ROOT, "data")


# Priority: KP_DATA_DIR env → project data/
def _resolve_data_dir() -> str:
    """Find the data directory for stores, logs and exported PDFs."""
    env_dir = os.environ.get("KP_DATA_DIR", "")
    if env_dir:
        return env_dir
    return _DEFAULT_DATA_DIR


DATA_DIR = _resolve_data_dir()

# ── Core Directories ─────────────────────────────────────────────────────────
ASSETS_DIR = os.path.join(PROJECT_ROOT, "assets")
OUTPUT_DIR = os.path.join(DATA_DIR, "output")

# ── Key File Paths ───────────────────────────────────────────────────────────
STORE_FILENAME = "kp_store.json"


def store_path(data_dir: str = None) -> str:
    return os.path.join(data_dir or DATA_DIR, STORE_FILENAME)


def find_default_logo(assets_dir: str = None):
    """First logo.* image in the assets dir, or None."""
    base = assets_dir or ASSETS_DIR
    for ext in ("png", "jpg", "jpeg", "gif"):
        p = os.path.join(base, f"logo.{ext}")
        if os.path.exists(p):
            return p
    return None


def validate_paths() -> dict:
    """Runtime validation — call at app startup to catch path issues early.

    Returns:
        {"ok": bool, "errors": [str], "warnings": [str], "resolved": {name: path}}
    """
    result = {"ok": True, "errors": [], "warnings": [], "resolved": {}}

    result["resolved"]["PROJECT_ROOT"] = PROJECT_ROOT
    result["resolved"]["DATA_DIR"] = DATA_DIR
    result["resolved"]["ASSETS_DIR"] = ASSETS_DIR

    try:
        os.makedirs(DATA_DIR, exist_ok=True)
        test_file = os.path.join(DATA_DIR, ".write_test")
        with open(test_file, "w") as f:
            f.write("ok")
        os.remove(test_file)
    except OSError as e:
        result["errors"].append(f"DATA_DIR not writable: {e}")
        result["ok"] = False

    if not find_default_logo():
        result["warnings"].append(f"No logo.* found in {ASSETS_DIR}; logo will be skipped")

    return result
