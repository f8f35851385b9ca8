"""Bulk optimize and preview routes."""

import pytest
from fastapi.testclient import TestClient

from app.api.v1.deps import get_workflow
from app.core.config import settings
from app.main import app
from app.services.metafield_store import ResourceRef


P = settings.API_PREFIX


@pytest.fixture
def api(workflow):
    app.dependency_overrides[get_workflow] = lambda: workflow
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_bulk_products_reports_per_item(api, resources):
    resources.add(ResourceRef.of("product", "1"), "Kettle", "<p>Boils water fast.</p>")
    r = api.post(f"{P}/optimize/products", json={"productIds": [1, "2"], "settings": {"tone": "friendly"}})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["succeeded"] == 1
    assert body["failed"] == 1
    assert body["results"][0]["id"] == "1"
    assert body["results"][1]["success"] is False


def test_bulk_blogs_accepts_blog_ids(api, resources):
    resources.add(ResourceRef.of("article", "8"), "Care guide", "<p>Wash cold.</p>")
    r = api.post(f"{P}/optimize/blogs", json={"blogIds": ["8"]})
    assert r.status_code == 200, r.text
    assert r.json()["succeeded"] == 1


@pytest.mark.parametrize("ids", [[], list(range(51))])
def test_bulk_size_limits(api, ids):
    assert api.post(f"{P}/optimize/products", json={"productIds": ids}).status_code == 422


def test_preview_accepts_plain_text(api, store):
    r = api.post(f"{P}/optimize/preview", json={"type": "blog", "content": "Short note about tea."})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["source"] == "fallback"
    assert body["result"]["optimizedTitle"] == "Untitled"
    assert store.calls == []


def test_preview_unknown_type_is_422(api):
    r = api.post(f"{P}/optimize/preview", json={"type": "page", "content": {"title": "x"}})
    assert r.status_code == 422
