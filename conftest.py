"""
Shared pytest fixtures for the KP Layout test suite.
"""
import json
import os
import sys
import base64
import pytest

_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)


# ── Temp data directory (per-test isolation) ──────────────────────────────────

@pytest.fixture(autouse=True)
def temp_data_dir(tmp_path, monkeypatch):
    """Redirect DATA_DIR (store, logs, exported PDFs) to an isolated tmp directory."""
    data = str(tmp_path / "data")
    os.makedirs(data, exist_ok=True)

    from kp_layout.core import paths
    monkeypatch.setattr(paths, "DATA_DIR", data)
    monkeypatch.setattr(paths, "OUTPUT_DIR", os.path.join(data, "output"))
    monkeypatch.delenv("KP_FONT_PATH", raising=False)
    return data


# ── Flask test client ─────────────────────────────────────────────────────────

def _basic_auth_header(user="kp", pw="changeme"):
    creds = base64.b64encode(f"{user}:{pw}".encode()).decode()
    return {"Authorization": f"Basic {creds}"}


class AuthenticatedClient:
    """Wraps Flask test client to add Basic Auth headers to every request."""
    def __init__(self, client, headers):
        self._client = client
        self._headers = headers

    def _call(self, method, *args, **kwargs):
        kwargs.setdefault("headers", {}).update(self._headers)
        return getattr(self._client, method)(*args, **kwargs)

    def get(self, *args, **kwargs):
        return self._call("get", *args, **kwargs)

    def post(self, *args, **kwargs):
        return self._call("post", *args, **kwargs)

    def put(self, *args, **kwargs):
        return self._call("put", *args, **kwargs)

    def patch(self, *args, **kwargs):
        return self._call("patch", *args, **kwargs)

    def delete(self, *args, **kwargs):
        return self._call("delete", *args, **kwargs)


@pytest.fixture
def app(temp_data_dir, monkeypatch):
    """Create Flask app configured for testing."""
    monkeypatch.setenv("KP_USER", "kp")
    monkeypatch.setenv("KP_PASS", "changeme")

    from app import create_app
    return create_app({"TESTING": True})


@pytest.fixture
def client(app):
    """Authenticated Flask test client (HTTP Basic Auth on every request)."""
    with app.test_client() as c:
        yield AuthenticatedClient(c, _basic_auth_header())


@pytest.fixture
def anon_client(app):
    """Unauthenticated test client."""
    with app.test_client() as c:
        yield c


# ── Seed helpers ──────────────────────────────────────────────────────────────

def _write_json(path, obj):
    with open(path, "w") as f:
        json.dump(obj, f, default=str, ensure_ascii=False)


@pytest.fixture
def seed_store(temp_data_dir, sample_items, sample_settings):
    """Write sample items + settings to the on-disk store, return its path."""
    from kp_layout.core.paths import STORE_FILENAME
    path = os.path.join(temp_data_dir, STORE_FILENAME)
    _write_json(path, {"kp-items": sample_items, "kp-settings": sample_settings})
    return path


# ── Sample data factories ─────────────────────────────────────────────────────

def make_item(i, **overrides):
    item = {
        "id": f"p-{i}",
        "name": f"Product {i}",
        "price": 1000.0 + i,
        "quantity": 1,
    }
    item.update(overrides)
    return item


@pytest.fixture
def sample_items():
    """Typical KP line items: plain, described, with characteristics."""
    return [
        make_item(1, name="Office chair", price=45990, quantity=2),
        make_item(2, name="Standing desk", price=129000,
                  description="Electric height adjustment, oak top, 140x70 cm"),
        make_item(3, name="Monitor arm", price=0, article="MA-200",
                  characteristics=[
                      {"key": "code", "value": "000123"},
                      {"key": "Color", "value": "Black"},
                      {"key": "Load", "value": "2-9 kg"},
                  ]),
    ]


@pytest.fixture
def sample_settings():
    """Settings with ASCII-only text so pdfplumber can read it back with Helvetica."""
    from kp_layout.core.settings import default_settings
    s = default_settings()
    s["title"] = "Commercial Offer"
    s["kp_name"] = "Offer"
    s["footer_note"] = "Prices include VAT"
    s["logo"]["enabled"] = False
    return s


@pytest.fixture
def sample_manager():
    return {"full_name": "Ivan Petrov", "email": "ivan@example.com", "phone": "+7 700 000 00 00"}
