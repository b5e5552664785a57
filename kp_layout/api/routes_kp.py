# routes_kp.py — KP settings, item list, element positions, page preview, PDF export
import os
import logging
import functools

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from kp_layout.core import paths
from kp_layout.core import store as kp_store
from kp_layout.core.kp_items import add_item, clear_items, remove_item, update_item_quantity
from kp_layout.forms.kp_generator import export_filename, generate_kp_pdf
from kp_layout.layout.heights import ReportlabMeasurer, measure_rows
from kp_layout.layout.models import items_total, normalize_items
from kp_layout.layout.overlay import LOGO_FOOTPRINT, clamp_point, orphaned_text_elements
from kp_layout.layout.page import stacked_preview_height
from kp_layout.layout.paginator import paginate
from kp_layout.core.settings import merge_with_defaults

log = logging.getLogger("kp.api")

bp = Blueprint("kp", __name__)

# ═══════════════════════════════════════════════════════════════════════
# Password Protection
# ═══════════════════════════════════════════════════════════════════════

def check_auth(username, password):
    return (username == os.environ.get("KP_USER", "kp")
            and password == os.environ.get("KP_PASS", "changeme"))


def auth_required(f):
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        auth = request.authorization
        if not auth or not check_auth(auth.username, auth.password):
            return Response(
                "KP Layout — Login Required",
                401, {"WWW-Authenticate": 'Basic realm="KP Layout"'})
        return f(*args, **kwargs)
    return decorated


def _store():
    return current_app.config.get("KP_STORE") or kp_store.default_store()


def _json_body():
    """Request JSON as a dict, or None if the body is not a JSON object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _bad_request(msg):
    return jsonify({"ok": False, "success": False, "error": msg}), 400


def _state(body: dict, store) -> tuple:
    """(items, settings) from the request body, falling back to the store."""
    items = body.get("items")
    items = normalize_items(items) if isinstance(items, list) else kp_store.load_items(store)
    settings = body.get("settings")
    settings = merge_with_defaults(settings) if isinstance(settings, dict) else kp_store.load_settings(store)
    return items, settings


# ═══════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════

@bp.route("/api/kp-settings")
@auth_required
def api_get_settings():
    return jsonify({"success": True, "settings": kp_store.load_settings(_store())})


@bp.route("/api/kp-settings", methods=["PUT"])
@auth_required
def api_put_settings():
    data = _json_body()
    if data is None:
        return _bad_request("settings must be a JSON object")
    if isinstance(data.get("settings"), dict):
        data = data["settings"]
    saved = kp_store.save_settings(_store(), data)
    log.info("KP settings saved", extra={"kp_name": saved.get("kp_name", "")})
    return jsonify({"success": True, "settings": saved})


# ═══════════════════════════════════════════════════════════════════════
# Item list
# ═══════════════════════════════════════════════════════════════════════

def _find_id(items, url_id):
    """Stored id matching a URL segment (ids arrive as strings)."""
    return next((it["id"] for it in items if str(it.get("id")) == url_id), None)


def _items_response(items):
    return jsonify({"ok": True, "items": items, "count": len(items), "total": items_total(items)})


@bp.route("/api/kp/items")
@auth_required
def api_get_items():
    return _items_response(kp_store.load_items(_store()))


@bp.route("/api/kp/items", methods=["PUT"])
@auth_required
def api_put_items():
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        return _bad_request("items must be a list")
    return _items_response(kp_store.save_items(_store(), data))


@bp.route("/api/kp/items", methods=["POST"])
@auth_required
def api_add_item():
    """Add one catalog product to the KP (quantity 1, duplicates ignored)."""
    data = _json_body()
    if data is None or data.get("id") in (None, ""):
        return _bad_request("item must be a JSON object with an id")
    store = _store()
    items = add_item(kp_store.load_items(store), data)
    return _items_response(kp_store.save_items(store, items))


@bp.route("/api/kp/items/<item_id>", methods=["PATCH"])
@auth_required
def api_update_quantity(item_id):
    data = _json_body()
    if data is None or "quantity" not in data:
        return _bad_request("quantity required")
    store = _store()
    items = kp_store.load_items(store)
    match = _find_id(items, item_id)
    if match is None:
        return jsonify({"ok": False, "error": "Item not found"}), 404
    items = update_item_quantity(items, match, data["quantity"])
    return _items_response(kp_store.save_items(store, items))


@bp.route("/api/kp/items/<item_id>", methods=["DELETE"])
@auth_required
def api_remove_item(item_id):
    store = _store()
    items = kp_store.load_items(store)
    match = _find_id(items, item_id)
    if match is None:
        return jsonify({"ok": False, "error": "Item not found"}), 404
    return _items_response(kp_store.save_items(store, remove_item(items, match)))


@bp.route("/api/kp/items", methods=["DELETE"])
@auth_required
def api_clear_items():
    return _items_response(kp_store.save_items(_store(), clear_items()))


# ═══════════════════════════════════════════════════════════════════════
# Element positions
# ═══════════════════════════════════════════════════════════════════════

@bp.route("/api/kp/positions/<name>")
@auth_required
def api_get_position(name):
    if name not in kp_store.POSITION_KEYS:
        return jsonify({"ok": False, "error": f"Unknown element: {name}"}), 404
    key, default = kp_store.POSITION_KEYS[name]
    return jsonify({"ok": True, "position": kp_store.load_position(_store(), key, default)})


@bp.route("/api/kp/positions/<name>", methods=["PUT"])
@auth_required
def api_put_position(name):
    if name not in kp_store.POSITION_KEYS:
        return jsonify({"ok": False, "error": f"Unknown element: {name}"}), 404
    data = _json_body()
    if data is None:
        return _bad_request("position must be a JSON object")
    x, y = data.get("x"), data.get("y", 0)
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (x, y)):
        return _bad_request("x and y must be numbers")
    pos = {"x": x, "y": y}
    if name == "logo":
        pos = clamp_point(pos, LOGO_FOOTPRINT)
    key, _ = kp_store.POSITION_KEYS[name]
    return jsonify({"ok": True, "position": kp_store.save_position(_store(), key, pos)})


# ═══════════════════════════════════════════════════════════════════════
# Pagination preview
# ═══════════════════════════════════════════════════════════════════════

@bp.route("/api/kp/pages", methods=["POST"])
@auth_required
def api_pages():
    """Page split for the current (or posted) items and settings.

    Body (all optional): items, settings, measured {signature, heights},
    manager (truthy when the manager block is shown).
    """
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return _bad_request("body must be a JSON object")
    items, settings = _state(body, _store())

    measured = body.get("measured")
    if not isinstance(measured, dict):
        measurer = ReportlabMeasurer(merge_image_name=settings.get("merge_image_name", False))
        measured = measure_rows(items, settings, measurer)

    pages = paginate(items, settings, measured, manager_info=bool(body.get("manager")))
    orphans = orphaned_text_elements(settings.get("text_elements"), len(pages))

    log.debug("Preview: %d items → %d pages", len(items), len(pages),
              extra={"items": len(items), "pages": len(pages)})
    return jsonify({
        "ok": True,
        "page_count": len(pages),
        "pages": [{
            "is_first": p["is_first"],
            "is_last": p["is_last"],
            "indexes": [e["index"] for e in p["items"]],
            "heights": [e["height"] for e in p["items"]],
        } for p in pages],
        "preview_height": stacked_preview_height(len(pages)),
        "orphaned_text_elements": [el.get("id") for el in orphans],
    })


# ═══════════════════════════════════════════════════════════════════════
# PDF export
# ═══════════════════════════════════════════════════════════════════════

@bp.route("/api/kp/export", methods=["POST"])
@auth_required
def api_export():
    """Render the KP to PDF and return it as a download.

    Body (all optional): items, settings, manager {full_name, email, phone},
    positions {logo, manager}.
    """
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return _bad_request("body must be a JSON object")
    store = _store()
    items, settings = _state(body, store)
    positions = body.get("positions") if isinstance(body.get("positions"), dict) \
        else kp_store.load_positions(store)
    manager = body.get("manager") if isinstance(body.get("manager"), dict) else None

    filename = export_filename(settings.get("kp_name"))
    output_path = os.path.join(paths.OUTPUT_DIR, filename)
    try:
        result = generate_kp_pdf(items, settings, output_path,
                                 manager=manager, positions=positions)
    except Exception as e:
        log.error("KP export failed: %s", e, exc_info=True)
        return jsonify({"ok": False, "error": str(e)}), 500

    if not result.get("ok"):
        return _bad_request(result.get("error", "Export failed"))

    log.info("KP exported: %s (%d pages)", filename, result["pages"],
             extra={"pages": result["pages"], "items": result["items_count"],
                    "kp_name": settings.get("kp_name", "")})
    return send_file(output_path, mimetype="application/pdf",
                     as_attachment=True, download_name=filename)
