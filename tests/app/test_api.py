"""Integration tests for the FastAPI endpoints.

These tests verify:
- Autofill success and the 502 error contract
- Item publishing, listing and deletion
- The admin-token gate
- Health check endpoint

The enrichment service is replaced by a fake after startup; the item store
uses a temporary SQLite database.
"""

import inspect

import pytest
from fastapi.testclient import TestClient

import app.api.main as main_module
from app.api.main import app
from catalog.enrichment.config import EnrichmentConfig
from catalog.enrichment.exceptions import GenerationFailed
from catalog.enrichment.models import EnrichedRecord, EntityType, SUMMARY_NOT_ESTABLISHED


class FakeEnrichmentService:
    """Stands in for EnrichmentService; records references it was given."""

    def __init__(self, record=None, error=None):
        self.config = EnrichmentConfig(openai_api_key="sk-test")
        self.record = record
        self.error = error
        self.references = []

    async def enrich(self, reference):
        self.references.append(reference)
        if self.error is not None:
            raise self.error
        return self.record

    async def aclose(self):
        pass


def _record():
    return EnrichedRecord(
        type=EntityType.PERSON,
        title="Jane Doe",
        href="https://en.wikipedia.org/wiki/Jane_Doe",
        image="jane-doe.jpg",
        summary=SUMMARY_NOT_ESTABLISHED,
        tags=["physics", "person"],
        birth_year=1950,
        death_year=None,
    )


@pytest.fixture(scope="function")
def client(tmp_path, monkeypatch):
    """Create FastAPI test client with isolated item store.

    Yields:
        TestClient instance
    """
    monkeypatch.setenv("ITEMS_DB_PATH", str(tmp_path / "items.db"))
    monkeypatch.delenv("CATALOG_CONFIG", raising=False)
    monkeypatch.delenv("ADMIN_TOKEN", raising=False)

    # Reset global state
    main_module.enrichment_service = None
    main_module.item_store = None

    # Create test client (triggers startup event)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def fake_service(client):
    service = FakeEnrichmentService(record=_record())
    main_module.enrichment_service = service
    return service


def test_health_check(client):
    """Test /health endpoint reports item store status."""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] in ["healthy", "degraded", "unhealthy"]
    assert data["item_store_ok"] is True
    assert "generation_configured" in data


def test_autofill_returns_record(client, fake_service):
    response = client.post(
        "/autofill",
        json={"title": "Jane Doe", "type": "person", "current": {"birthYear": 1900, "summary": ""}},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["birthYear"] == 1950
    assert "deathYear" in data and data["deathYear"] is None
    assert data["tags"] == ["physics", "person"]

    reference = fake_service.references[0]
    assert reference.type == EntityType.PERSON
    assert reference.known_fields == {"birthYear": 1900}


def test_autofill_defaults_to_topic(client, fake_service):
    client.post("/autofill", json={"title": "Entropy"})
    assert fake_service.references[0].type == EntityType.TOPIC


def test_autofill_generation_failure_is_502(client, fake_service):
    fake_service.error = GenerationFailed.from_api_error(500, '{"error": "boom"}')

    response = client.post("/autofill", json={"title": "Jane Doe", "type": "person"})

    assert response.status_code == 502
    data = response.json()
    assert data["upstream_status"] == 500
    assert data["upstream_body"] == '{"error": "boom"}'
    assert "HTTP 500" in data["error"]


@pytest.mark.parametrize("body", [{"title": ""}, {"title": "   "}, {"title": "x", "type": "planet"}, {}])
def test_autofill_invalid_request(client, fake_service, body):
    response = client.post("/autofill", json=body)

    assert response.status_code == 422
    assert fake_service.references == []


def test_items_roundtrip(client):
    response = client.post("/items", json={
        "type": "person",
        "title": "Ada Lovelace",
        "href": "https://en.wikipedia.org/wiki/Ada_Lovelace",
        "tags": [" math ", ""],
    })
    assert response.status_code == 200
    item_id = response.json()["id"]

    listed = client.get("/items").json()
    assert listed["ok"] is True
    assert listed["items"][0]["id"] == item_id
    assert listed["items"][0]["tags"] == ["math"]
    key = listed["items"][0]["_key"]

    response = client.delete("/items", params={"key": key})
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert client.get("/items").json()["items"] == []


def test_delete_item_by_id(client):
    item_id = client.post("/items", json={"type": "topic", "title": "Entropy", "href": "#"}).json()["id"]

    response = client.delete("/items", params={"id": item_id})

    assert response.status_code == 200


def test_create_item_missing_fields(client):
    response = client.post("/items", json={"type": "topic", "title": "Entropy"})

    assert response.status_code == 400
    assert "href" in response.json()["detail"]


def test_delete_item_without_key_or_id(client):
    assert client.delete("/items").status_code == 400


def test_delete_unknown_item_is_noop(client):
    client.post("/items", json={"type": "topic", "title": "Entropy", "href": "#"})

    response = client.delete("/items", params={"key": "items/nope.json"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert len(client.get("/items").json()["items"]) == 1


def test_item_endpoints_run_in_threadpool():
    # SQLite calls must not block the event loop
    for endpoint in (main_module.list_items, main_module.create_item, main_module.delete_item):
        assert not inspect.iscoroutinefunction(endpoint)


def test_admin_token_gate(client, monkeypatch):
    monkeypatch.setenv("ADMIN_TOKEN", "secret")
    item = {"type": "topic", "title": "Entropy", "href": "#"}

    assert client.post("/items", json=item).status_code == 401
    assert client.post("/items", json=item, headers={"x-admin-token": "wrong"}).status_code == 401
    assert client.delete("/items", params={"key": "items/x.json"}).status_code == 401

    response = client.post("/items", json=item, headers={"x-admin-token": "secret"})
    assert response.status_code == 200

    # Reads stay open
    assert client.get("/items").status_code == 200
