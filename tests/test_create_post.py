"""
tests/test_create_post.py — POST /api/create-post
"""
from __future__ import annotations

import pytest


def test_creates_approved_secret(client, backend):
    before = len(backend.tables["secrets"])
    response = client.post("/api/create-post", json={"content": "hello", "schoolId": "5", "titulo": "t"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["titulo"] == "t"
    assert body["data"]["content"] == "hello"
    assert body["data"]["school"] == 5
    assert body["data"]["approved"] is True
    assert len(backend.tables["secrets"]) == before + 1


def test_numeric_school_id_accepted(client):
    response = client.post("/api/create-post", json={"content": "c", "schoolId": 2, "titulo": "t"})
    assert response.status_code == 200
    assert response.json()["data"]["school"] == 2


@pytest.mark.parametrize("body", [
    {"schoolId": "5", "titulo": "t"},
    {"content": "", "schoolId": "5", "titulo": "t"},
    {"content": "c", "titulo": "t"},
    {"content": "c", "schoolId": "", "titulo": "t"},
    {"content": "c", "schoolId": "5"},
    {"content": "c", "schoolId": "5", "titulo": "   "},
    {},
])
def test_missing_fields_rejected_without_write(client, backend, body):
    before = len(backend.tables["secrets"])
    response = client.post("/api/create-post", json=body)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "All fields are required"}
    assert len(backend.tables["secrets"]) == before
    assert ("insert", "secrets") not in backend.calls


@pytest.mark.parametrize("school_id", ["abc", "5.5", "1e", True])
def test_non_numeric_school_id_rejected(client, backend, school_id):
    response = client.post("/api/create-post", json={"content": "c", "schoolId": school_id, "titulo": "t"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid school ID"
    assert ("insert", "secrets") not in backend.calls


def test_unknown_school_returns_not_found_without_write(client, backend):
    before = len(backend.tables["secrets"])
    response = client.post("/api/create-post", json={"content": "c", "schoolId": "999", "titulo": "t"})

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "School not found"}
    assert len(backend.tables["secrets"]) == before


def test_backend_insert_failure_relays_message(client, backend):
    backend.fail("insert", "permission denied for table secrets", status_code=403)
    response = client.post("/api/create-post", json={"content": "c", "schoolId": "1", "titulo": "t"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "permission denied for table secrets"}


def test_invalid_json_body(client, backend):
    response = client.post(
        "/api/create-post",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert backend.calls == []


def test_unexpected_error_is_generic(client, backend):
    def explode(operation, target):
        if operation == "insert":
            raise RuntimeError("internal detail")

    backend.on_call = explode
    response = client.post("/api/create-post", json={"content": "c", "schoolId": "1", "titulo": "t"})
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Server error"}
