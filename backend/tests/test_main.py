from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from forge.core.config import BUILTIN_GEN_TEMPLATES, BUILTIN_ZCL_PROPERTIES
from forge.db import resolve_main_database
from forge.main import create_app
from loaders.template_loader import load_templates
from loaders.zcl_loader import load_individual_file, load_zcl


@pytest.fixture
def loaded_db(db):
    load_zcl(db, BUILTIN_ZCL_PROPERTIES)
    load_templates(db, BUILTIN_GEN_TEMPLATES)
    resolve_main_database(db)
    return db


@pytest.fixture
def client():
    return TestClient(create_app())


def test_healthcheck(client):
    """Verify the healthcheck endpoint returns a successful response."""
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_database_endpoints_unavailable_before_startup(client):
    response = client.get("/packages")
    assert response.status_code == 503


def test_list_packages(client, loaded_db):
    response = client.get("/packages")
    assert response.status_code == 200
    payload = response.json()
    assert payload["total"] == 2
    assert [item["type"] for item in payload["items"]] == ["zcl-properties", "gen-templates-json"]

    filtered = client.get("/packages", params={"type": "gen-templates-json"})
    assert filtered.json()["total"] == 1


def test_landing_page_lists_packages(client, loaded_db):
    response = client.get("/index.html")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "zcl-properties" in response.text


def test_list_clusters_by_manufacturer_code(client, loaded_db, data_dir):
    assert client.get("/clusters", params={"manufacturer_code": 0xBEAD}).json()["total"] == 0

    result = load_individual_file(loaded_db, data_dir / "custom-cluster.yaml")
    assert result.succeeded

    payload = client.get("/clusters", params={"manufacturer_code": 0xBEAD}).json()
    assert payload["total"] == 1
    (cluster,) = payload["items"]
    assert cluster["name"] == "Sample Custom"
    assert len(cluster["attributes"]) == 2
    assert len(cluster["commands"]) == 1


def test_create_session_binds_default_packages(client, loaded_db):
    response = client.post("/sessions", json={"user_key": "USER", "session_key": "SESSION"})
    assert response.status_code == 201
    payload = response.json()
    assert payload["user_id"] is not None
    assert sorted(item["type"] for item in payload["packages"]) == [
        "gen-templates-json",
        "zcl-properties",
    ]

    again = client.get(f"/sessions/{payload['session_id']}/packages")
    assert again.status_code == 200
    assert again.json() == payload


def test_create_session_without_metadata_conflicts(client, db):
    resolve_main_database(db)

    response = client.post("/sessions", json={})
    assert response.status_code == 409


def test_unknown_session_not_found(client, loaded_db):
    response = client.get("/sessions/999/packages")
    assert response.status_code == 404
