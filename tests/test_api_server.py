"""Tests for the profile directory HTTP API."""

import pytest
from fastapi.testclient import TestClient

from profiledir.api_server import app

ALICE = "uhCAkAlice"
BOB = "uhCAkBob"


@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setenv("PROFILEDIR_BACKEND", "sqlite")
    monkeypatch.setenv("PROFILEDIR_DB_PATH", str(tmp_path / "api.db"))
    with TestClient(app) as test_client:
        yield test_client


def publish(client, identity, nickname, fields=None):
    return client.post(
        "/api/v1/profiles",
        json={"nickname": nickname, "fields": fields or {}},
        headers={"X-Agent-Pubkey": identity},
    )


@pytest.mark.integration
class TestProfilesApi:
    """Test the profile endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["store_initialized"] is True

    def test_publish(self, client):
        response = publish(client, ALICE, "Alice", {"bio": "hi"})

        assert response.status_code == 201
        assert response.json() == {
            "identity": ALICE,
            "profile": {"nickname": "Alice", "fields": {"bio": "hi"}},
        }

    def test_publish_requires_identity(self, client):
        response = client.post("/api/v1/profiles", json={"nickname": "Alice"})

        assert response.status_code == 401

    def test_publish_short_nickname(self, client):
        assert publish(client, ALICE, "Al").status_code == 422

    def test_get_by_identity(self, client):
        publish(client, ALICE, "Alice")

        response = client.get(f"/api/v1/profiles/{ALICE}")

        assert response.status_code == 200
        assert response.json()["profile"]["nickname"] == "Alice"

    def test_get_by_identity_missing(self, client):
        assert client.get("/api/v1/profiles/nobody").status_code == 404

    def test_me(self, client):
        publish(client, BOB, "Bobby")

        response = client.get("/api/v1/profiles/me", headers={"X-Agent-Pubkey": BOB})

        assert response.status_code == 200
        assert response.json()["identity"] == BOB

    def test_me_without_profile(self, client):
        response = client.get("/api/v1/profiles/me", headers={"X-Agent-Pubkey": BOB})

        assert response.status_code == 404

    def test_search(self, client):
        publish(client, ALICE, "Alice")
        publish(client, BOB, "Bobby")

        response = client.get("/api/v1/profiles/search", params={"prefix": "ALI"})

        assert response.status_code == 200
        assert [p["identity"] for p in response.json()] == [ALICE]

    def test_search_prefix_too_short(self, client):
        response = client.get("/api/v1/profiles/search", params={"prefix": "al"})

        assert response.status_code == 400

    def test_list_all(self, client):
        publish(client, ALICE, "Alice")
        publish(client, BOB, "Bobby")

        response = client.get("/api/v1/profiles")

        assert response.status_code == 200
        assert {p["profile"]["nickname"] for p in response.json()} == {"Alice", "Bobby"}

    def test_batch(self, client):
        publish(client, ALICE, "Alice")

        response = client.post("/api/v1/profiles/batch", json={"identities": [ALICE, BOB]})

        assert response.status_code == 200
        assert [p["identity"] for p in response.json()] == [ALICE]


@pytest.mark.integration
def test_overwrite_policy_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("PROFILEDIR_BACKEND", "memory")
    monkeypatch.setenv("PROFILEDIR_REPUBLISH_POLICY", "overwrite")

    with TestClient(app) as client:
        publish(client, ALICE, "Alice")
        publish(client, ALICE, "Alicia")

        response = client.get(f"/api/v1/profiles/{ALICE}")
        listed = client.get("/api/v1/profiles").json()

    assert response.json()["profile"]["nickname"] == "Alicia"
    assert [p["profile"]["nickname"] for p in listed] == ["Alicia"]
