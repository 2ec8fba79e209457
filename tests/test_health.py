import pytest
from fastapi.testclient import TestClient

import c2.config as config
from app.main import create_app
from c2.context import AppContext
from c2.db import _ensure_schema_up_to_date, create_db_engine, create_session_factory
from c2.mcp import TOOL_NAMES, create_mcp_server
from c2.services.contact_service import ContactService


@pytest.fixture
def migrated_factory(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "AUTO_MIGRATE_ON_STARTUP", True)
    url = f"sqlite:///{tmp_path / 'health.sqlite'}"
    engine = create_db_engine(url)
    _ensure_schema_up_to_date(engine, url)
    try:
        yield create_session_factory(engine)
    finally:
        engine.dispose()


def _client(session_factory, embedder=None):
    context = AppContext(
        session_factory=session_factory,
        embedder=embedder,
        embeddings_enabled=embedder is not None,
        vector_backend="json",
    )
    service = ContactService(context)
    return TestClient(create_app(service, create_mcp_server(service)))


def test_root_reports_service_metadata(migrated_factory, embedder):
    response = _client(migrated_factory, embedder).get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["service"] == config.SERVICE_NAME
    assert body["embeddings_enabled"] is True
    assert body["embedding_model"] == "fake-embed"
    assert body["endpoints"]["mcp"] == "/mcp"


def test_health_ok_on_migrated_database(migrated_factory, embedder):
    response = _client(migrated_factory, embedder).get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"]["schema_up_to_date"] is True
    assert body["embedding_provider"]["status"] == "ready"


def test_health_reports_disabled_embeddings(migrated_factory):
    body = _client(migrated_factory).get("/health").json()

    assert body["embedding_provider"]["status"] == "disabled"


def test_health_unavailable_when_schema_not_migrated(server_db):
    response = _client(server_db).get("/health")

    assert response.status_code == 503
    assert response.json()["detail"]["database"]["schema_up_to_date"] is False


def test_health_tools_lists_inventory(migrated_factory):
    response = _client(migrated_factory).get("/health/tools")

    assert response.status_code == 200
    inventory = response.json()["tool_inventory"]
    assert inventory["tool_count"] == len(TOOL_NAMES)
    assert set(inventory["tools"]) == set(TOOL_NAMES)
