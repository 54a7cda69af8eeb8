"""
tests/test_supabase_client.py — BackendClient request shapes and error mapping
"""
from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from schoolsecrets.clients.supabase_client import BackendClient, BackendError


def _client(handler) -> tuple[BackendClient, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return BackendClient("https://proj.supabase.co/", "anon", http=http), seen


def test_select_builds_postgrest_query():
    backend, seen = _client(lambda r: httpx.Response(200, json=[{"id": 1}]))
    rows = asyncio.run(backend.select("secrets", filters={"id": 1}, order="created_at", descending=True))

    assert rows == [{"id": 1}]
    request = seen[0]
    assert request.url.path == "/rest/v1/secrets"
    assert request.url.params["id"] == "eq.1"
    assert request.url.params["order"] == "created_at.desc"
    assert request.headers["apikey"] == "anon"
    assert request.headers["authorization"] == "Bearer anon"


def test_session_client_uses_user_token():
    backend, seen = _client(lambda r: httpx.Response(200, json=[]))
    asyncio.run(backend.with_session("user-token").update("secrets", {"approved": True}, {"id": 2}))

    request = seen[0]
    assert request.method == "PATCH"
    assert request.headers["authorization"] == "Bearer user-token"
    assert request.headers["prefer"] == "return=representation"
    assert json.loads(request.content) == {"approved": True}


def test_sign_in_returns_session():
    body = {"access_token": "a", "refresh_token": "r", "user": {"email": "x@y.z"}}
    backend, seen = _client(lambda r: httpx.Response(200, json=body))
    session = asyncio.run(backend.sign_in_with_password("x@y.z", "pw"))

    assert session.access_token == "a"
    assert session.user_email == "x@y.z"
    assert seen[0].url.params["grant_type"] == "password"


def test_error_body_is_mapped():
    body = {"code": 400, "error_code": "invalid_credentials", "msg": "Invalid login credentials"}
    backend, _ = _client(lambda r: httpx.Response(400, json=body))
    with pytest.raises(BackendError) as info:
        asyncio.run(backend.sign_in_with_password("x@y.z", "bad"))

    assert info.value.status_code == 400
    assert info.value.code == "invalid_credentials"
    assert info.value.message == "Invalid login credentials"


def test_transport_failure_is_bad_gateway():
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    backend, _ = _client(refuse)
    with pytest.raises(BackendError) as info:
        asyncio.run(backend.select("schools"))
    assert info.value.status_code == 502


def test_upload_posts_raw_bytes():
    backend, seen = _client(lambda r: httpx.Response(200, json={"Key": "attachments/public/x.jpg"}))
    path = asyncio.run(backend.upload("attachments", "public/x.jpg", b"\xff\xd8", "image/jpeg"))

    assert path == "public/x.jpg"
    assert seen[0].url.path == "/storage/v1/object/attachments/public/x.jpg"
    assert seen[0].headers["content-type"] == "image/jpeg"
    assert seen[0].content == b"\xff\xd8"
    assert backend.public_url("attachments", path) == (
        "https://proj.supabase.co/storage/v1/object/public/attachments/public/x.jpg"
    )
