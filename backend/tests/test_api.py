"""
Tests for the HTTP service.
"""
import pytest
from fastapi.testclient import TestClient

from routefuzz.core.config import settings
from routefuzz.main import app
from routefuzz.models import InjectResponse
from routefuzz.services.servers import OpenAPIServer


SPEC = {
    "openapi": "3.0.0",
    "info": {"title": "Users", "version": "1.0.0"},
    "paths": {
        "/users/{id}": {
            "get": {
                "operationId": "getUser",
                "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}],
                "responses": {"200": {"description": "Success"}},
            },
        },
        "/avatars": {
            "post": {
                "operationId": "uploadAvatar",
                "requestBody": {
                    "content": {
                        "multipart/form-data": {
                            "schema": {
                                "type": "object",
                                "properties": {"image": {"type": "string", "format": "binary"}},
                                "required": ["image"],
                            }
                        }
                    }
                },
                "responses": {"201": {"description": "Created"}},
            },
        },
    },
}


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_corpus_listing(client):
    response = client.get("/api/v1/corpus")

    assert response.status_code == 200
    body = response.json()
    assert body["categories"]["file"] == ["image", "zip"]
    assert "string.generic" in body["keys"]
    assert "file.all" in body["keys"]


def test_generate_records(client):
    response = client.post("/api/v1/generate", json={"spec": SPEC, "permutations": 3, "seed": 1})

    assert response.status_code == 200
    body = response.json()
    assert body["routes"] == 2
    assert body["total"] == 6
    assert {record["path"] for record in body["records"]} == {"/users/{id}", "/avatars"}


def test_generate_with_file_corpus(client):
    response = client.post(
        "/api/v1/generate",
        json={
            "spec": SPEC,
            "permutations": 2,
            "use_payloads": ["file.all"],
            "selected_routes": [{"path": "/avatars", "method": "POST"}],
        },
    )

    assert response.status_code == 200
    records = response.json()["records"]
    assert len(records) == 2
    assert all(set(record["payload"]["image"]) == {"$binary"} for record in records)


def test_generate_validates_request(client):
    assert client.post("/api/v1/generate", json={"permutations": 3}).status_code == 422
    response = client.post(
        "/api/v1/generate",
        json={"spec": SPEC, "permutations": settings.MAX_PERMUTATIONS + 1},
    )
    assert response.status_code == 422


def test_generate_unknown_corpus_key(client):
    response = client.post("/api/v1/generate", json={"spec": SPEC, "use_payloads": ["string.nope"]})

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "ASSET_001"


def test_generate_invalid_document(client):
    response = client.post("/api/v1/generate", json={"spec": {"openapi": "3.0.0", "paths": {}}})

    assert response.status_code == 400


def test_execute_collects_results(client, monkeypatch):
    async def fake_inject(self, request):
        if request.method == "POST":
            return InjectResponse(status_code=503, payload="unavailable")
        return InjectResponse(status_code=200, payload="ok")

    monkeypatch.setattr(OpenAPIServer, "inject", fake_inject)

    response = client.post(
        "/api/v1/execute",
        json={"spec": SPEC, "base_url": "http://api.test", "permutations": 2},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 4
    assert body["passed"] == 2
    assert body["failed"] == 2
    assert all(failure["group"] == "Fuzzing POST /avatars" for failure in body["failures"])
    assert all(failure["message"].startswith("Failed calling route with data:") for failure in body["failures"])


def test_execute_keeps_running_after_case_errors(client, monkeypatch):
    async def fake_inject(self, request):
        if request.method == "POST":
            raise TypeError("unencodable payload")
        return InjectResponse(status_code=200, payload="ok")

    monkeypatch.setattr(OpenAPIServer, "inject", fake_inject)

    response = client.post(
        "/api/v1/execute",
        json={"spec": SPEC, "base_url": "http://api.test", "permutations": 3},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 6
    assert body["passed"] == 3
    assert [failure["message"] for failure in body["failures"]] == ["Case raised TypeError: unencodable payload"] * 3


def test_metrics(client):
    client.post("/api/v1/generate", json={"spec": SPEC, "permutations": 1})

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "fuzz_records_generated_total" in response.text
