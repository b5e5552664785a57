"""
Tests for the KP blueprint: auth, settings, items, positions, preview, export.
"""
import json


def _items(n):
    return [{"id": f"p-{i}", "name": f"Item {i}", "price": 100, "quantity": 1} for i in range(n)]


def _flat_measured(items, h=28):
    return {"signature": [it["id"] for it in items], "heights": [h] * len(items)}


# ═══════════════════════════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════════════════════════

class TestAuth:

    def test_anonymous_rejected(self, anon_client):
        r = anon_client.get("/api/kp-settings")
        assert r.status_code == 401
        assert "WWW-Authenticate" in r.headers

    def test_wrong_password_rejected(self, anon_client):
        import base64
        creds = base64.b64encode(b"kp:wrong").decode()
        r = anon_client.get("/api/kp/items", headers={"Authorization": f"Basic {creds}"})
        assert r.status_code == 401

    def test_authenticated_ok(self, client):
        assert client.get("/api/kp-settings").status_code == 200

    def test_health_open(self, anon_client):
        assert anon_client.get("/api/health").get_json() == {"ok": True}


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════

class TestSettingsRoutes:

    def test_defaults(self, client):
        data = client.get("/api/kp-settings").get_json()
        assert data["success"] is True
        assert data["settings"]["columns"]["name"] is True
        assert data["settings"]["logo"]["width"] == 150

    def test_put_merges_and_persists(self, client):
        r = client.put("/api/kp-settings", json={"title": "Offer", "columns": {"article": True}})
        assert r.get_json()["settings"]["title"] == "Offer"
        s = client.get("/api/kp-settings").get_json()["settings"]
        assert s["title"] == "Offer"
        assert s["columns"]["article"] is True
        assert s["columns"]["price"] is True

    def test_put_wrapped_settings(self, client):
        client.put("/api/kp-settings", json={"settings": {"kp_name": "Q1"}})
        assert client.get("/api/kp-settings").get_json()["settings"]["kp_name"] == "Q1"

    def test_put_non_object_400(self, client):
        r = client.put("/api/kp-settings", json=[1, 2])
        assert r.status_code == 400
        assert r.get_json()["success"] is False

    def test_seeded_store_read(self, client, seed_store):
        s = client.get("/api/kp-settings").get_json()["settings"]
        assert s["title"] == "Commercial Offer"


# ═══════════════════════════════════════════════════════════════════════════════
# Items
# ═══════════════════════════════════════════════════════════════════════════════

class TestItemRoutes:

    def test_empty(self, client):
        data = client.get("/api/kp/items").get_json()
        assert data["items"] == []
        assert data["total"] == 0

    def test_put_list(self, client):
        data = client.put("/api/kp/items", json=_items(3)).get_json()
        assert data["count"] == 3
        assert data["total"] == 300

    def test_put_wrapped(self, client):
        assert client.put("/api/kp/items", json={"items": _items(2)}).get_json()["count"] == 2

    def test_put_bad_body(self, client):
        assert client.put("/api/kp/items", json={"items": "x"}).status_code == 400

    def test_add_and_duplicate(self, client):
        client.post("/api/kp/items", json={"id": 7, "name": "Lamp", "price": 50, "quantity": 9})
        data = client.post("/api/kp/items", json={"id": 7, "name": "Lamp"}).get_json()
        assert data["count"] == 1
        assert data["items"][0]["quantity"] == 1

    def test_add_without_id(self, client):
        assert client.post("/api/kp/items", json={"name": "x"}).status_code == 400

    def test_patch_quantity(self, client):
        client.put("/api/kp/items", json=_items(2))
        data = client.patch("/api/kp/items/p-1", json={"quantity": 4}).get_json()
        assert data["items"][1]["quantity"] == 4
        assert data["total"] == 500

    def test_patch_quantity_below_one_ignored(self, client):
        client.put("/api/kp/items", json=_items(1))
        data = client.patch("/api/kp/items/p-0", json={"quantity": 0}).get_json()
        assert data["items"][0]["quantity"] == 1

    def test_numeric_id_from_url(self, client):
        client.post("/api/kp/items", json={"id": 42, "name": "x"})
        data = client.delete("/api/kp/items/42").get_json()
        assert data["count"] == 0

    def test_delete_unknown_404(self, client):
        assert client.delete("/api/kp/items/nope").status_code == 404

    def test_clear(self, client):
        client.put("/api/kp/items", json=_items(3))
        assert client.delete("/api/kp/items").get_json()["count"] == 0


# ═══════════════════════════════════════════════════════════════════════════════
# Positions
# ═══════════════════════════════════════════════════════════════════════════════

class TestPositionRoutes:

    def test_defaults(self, client):
        assert client.get("/api/kp/positions/logo").get_json()["position"] == {"x": 48, "y": 48}
        assert client.get("/api/kp/positions/manager").get_json()["position"] == {"x": 0, "y": 0}

    def test_logo_clamped(self, client):
        r = client.put("/api/kp/positions/logo", json={"x": 5000, "y": -5})
        assert r.get_json()["position"] == {"x": 744, "y": 0}
        assert client.get("/api/kp/positions/logo").get_json()["position"] == {"x": 744, "y": 0}

    def test_manager_offset_saved(self, client):
        client.put("/api/kp/positions/manager", json={"x": -20, "y": 35})
        assert client.get("/api/kp/positions/manager").get_json()["position"] == {"x": -20, "y": 35}

    def test_non_numeric_400(self, client):
        assert client.put("/api/kp/positions/logo", json={"x": "a", "y": 1}).status_code == 400

    def test_unknown_element_404(self, client):
        assert client.get("/api/kp/positions/footer").status_code == 404
        assert client.put("/api/kp/positions/footer", json={"x": 1, "y": 1}).status_code == 404


# ═══════════════════════════════════════════════════════════════════════════════
# Pagination preview
# ═══════════════════════════════════════════════════════════════════════════════

class TestPagesRoute:

    def test_no_items_no_pages(self, client):
        data = client.post("/api/kp/pages", json={}).get_json()
        assert data["page_count"] == 0
        assert data["pages"] == []

    def test_thirty_rows_one_page(self, client):
        items = _items(30)
        data = client.post("/api/kp/pages", json={
            "items": items,
            "settings": {"logo": {"width": 0}, "footer_note": ""},
            "measured": _flat_measured(items),
        }).get_json()
        assert data["page_count"] == 1
        assert data["pages"][0]["indexes"] == list(range(30))
        assert data["pages"][0]["is_first"] and data["pages"][0]["is_last"]

    def test_trailing_block_spills_last_row(self, client):
        items = _items(30)
        data = client.post("/api/kp/pages", json={
            "items": items,
            "settings": {"logo": {"width": 0}},
            "measured": _flat_measured(items),
            "manager": True,
        }).get_json()
        assert data["page_count"] == 2
        assert data["pages"][1]["indexes"] == [29]
        assert data["preview_height"] == 1123 * 2 + 24

    def test_uses_stored_items_and_measures(self, client):
        client.put("/api/kp/items", json=_items(5))
        data = client.post("/api/kp/pages").get_json()
        assert data["page_count"] == 1
        assert all(h > 0 for h in data["pages"][0]["heights"])

    def test_orphans_reported(self, client):
        items = _items(2)
        data = client.post("/api/kp/pages", json={
            "items": items,
            "settings": {"text_elements": [{"id": "t1", "page": 0}, {"id": "t2", "page": 2}]},
        }).get_json()
        assert data["orphaned_text_elements"] == ["t2"]

    def test_stored_string_width_still_paginates(self, client):
        client.put("/api/kp/items", json=_items(3))
        client.put("/api/kp-settings", json={"column_widths": {"price": "80", "total": "wide"}})
        r = client.post("/api/kp/pages")
        assert r.status_code == 200
        assert r.get_json()["page_count"] == 1
        stored = client.get("/api/kp-settings").get_json()["settings"]
        assert stored["column_widths"]["price"] == 80
        assert stored["column_widths"]["total"] == 75

    def test_string_measured_heights(self, client):
        items = _items(3)
        data = client.post("/api/kp/pages", json={
            "items": items,
            "measured": {"signature": [it["id"] for it in items], "heights": ["500", "500", "500"]},
            "settings": {"logo": {"enabled": False}},
        }).get_json()
        assert data["page_count"] == 3
        assert data["pages"][0]["heights"] == [500]


# ═══════════════════════════════════════════════════════════════════════════════
# Export
# ═══════════════════════════════════════════════════════════════════════════════

class TestExportRoute:

    def test_pdf_download(self, client, sample_items, sample_settings, sample_manager):
        r = client.post("/api/kp/export", json={
            "items": sample_items, "settings": sample_settings, "manager": sample_manager,
        })
        assert r.status_code == 200
        assert r.mimetype == "application/pdf"
        assert r.data.startswith(b"%PDF")
        disposition = r.headers["Content-Disposition"]
        assert "attachment" in disposition
        assert "Offer_" in disposition

    def test_export_from_store(self, client, seed_store, temp_data_dir):
        import os
        r = client.post("/api/kp/export")
        assert r.status_code == 200
        out = os.listdir(os.path.join(temp_data_dir, "output"))
        assert len(out) == 1 and out[0].startswith("Offer_")

    def test_export_with_string_numbers(self, client, sample_items, sample_settings):
        settings = dict(sample_settings, column_widths={"price": "80"},
                        logo={"enabled": True, "width": "150"})
        r = client.post("/api/kp/export", json={"items": sample_items, "settings": settings})
        assert r.status_code == 200
        assert r.data.startswith(b"%PDF")

    def test_export_empty_400(self, client):
        r = client.post("/api/kp/export", json={"items": []})
        assert r.status_code == 400
        assert "no items" in json.loads(r.data)["error"]
