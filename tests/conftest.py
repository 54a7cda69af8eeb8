"""
tests/conftest.py — Shared pytest fixtures
"""
from __future__ import annotations

import os

# Settings are read at import time; give them test values first.
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("ENVIRONMENT", "testing")

import io
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from schoolsecrets.clients.supabase_client import BackendError, get_backend
from schoolsecrets.core.rate_limiter import UploadRateLimiter
from schoolsecrets.main import app
from schoolsecrets.models import AuthSession


SCHOOL_ROWS = [
    {"id": 1, "nombre": "ESCUELA NORMAL", "departamento": "CONCORDIA", "localidad": "CONCORDIA"},
    {"id": 2, "nombre": "ESCUELA 5", "departamento": "CONCORDIA", "localidad": "LA CRIOLLA"},
    {"id": 3, "nombre": "COLEGIO NACIONAL", "departamento": "CONCORDIA", "localidad": "CONCORDIA"},
    {"id": 4, "nombre": "ESCUELA 10", "departamento": "PARANA", "localidad": "PARANA"},
    {"id": 5, "nombre": "ESCUELA TECNICA 2", "departamento": "CONCORDIA", "localidad": "LOS CHARRUAS"},
]


class FakeBackend:
    """In-memory stand-in for BackendClient (same method names and errors)."""

    base_url = "https://test-project.supabase.co"

    def __init__(self) -> None:
        base = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        self.tables: dict[str, list[dict[str, Any]]] = {
            "schools": [dict(row) for row in SCHOOL_ROWS],
            "secrets": [
                {"id": 1, "created_at": base.isoformat(), "content": "primero",
                 "titulo": "Hola", "school": 1, "approved": True},
                {"id": 2, "created_at": (base + timedelta(days=1)).isoformat(), "content": "segundo",
                 "titulo": "Otro secreto", "school": 2, "approved": False},
                {"id": 3, "created_at": (base + timedelta(days=2)).isoformat(), "content": "tercero",
                 "titulo": "hola de nuevo", "school": 5, "approved": True},
            ],
            "secret_images": [],
        }
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.users = {"admin@example.com": "s3cret"}
        self.valid_access_tokens = {"access-1"}
        self.refresh_tokens = {"refresh-1": "access-2"}
        self.failures: dict[str, BackendError] = {}
        self.calls: list[tuple[str, str]] = []
        self.on_call = None

    def fail(self, operation: str, message: str = "boom", status_code: int = 500, code: Optional[str] = None) -> None:
        self.failures[operation] = BackendError(message, status_code=status_code, code=code)

    async def _enter(self, operation: str, target: str) -> None:
        self.calls.append((operation, target))
        if self.on_call is not None:
            self.on_call(operation, target)
        if operation in self.failures:
            raise self.failures[operation]

    def with_session(self, access_token: str) -> "FakeBackend":
        return self

    # ── Auth ────────────────────────────────────────────────────────────────

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        await self._enter("sign_in", email)
        if self.users.get(email) != password:
            raise BackendError("Invalid login credentials", status_code=400, code="invalid_credentials")
        return AuthSession(access_token="access-1", refresh_token="refresh-1", user_email=email)

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        await self._enter("refresh", refresh_token)
        if refresh_token not in self.refresh_tokens:
            raise BackendError("Invalid Refresh Token", status_code=400, code="refresh_token_not_found")
        access = self.refresh_tokens[refresh_token]
        self.valid_access_tokens.add(access)
        return AuthSession(access_token=access, refresh_token="refresh-2", user_email="admin@example.com")

    async def get_user(self, access_token: str) -> dict[str, Any]:
        await self._enter("get_user", access_token)
        if access_token not in self.valid_access_tokens:
            raise BackendError("JWT expired", status_code=401, code="bad_jwt")
        return {"email": "admin@example.com"}

    # ── Tables ──────────────────────────────────────────────────────────────

    @staticmethod
    def _matches(row: dict[str, Any], filters: Optional[dict[str, Any]]) -> bool:
        return all(str(row.get(k)) == str(v) for k, v in (filters or {}).items())

    async def select(self, table, columns="*", filters=None, order=None, descending=False):
        await self._enter("select", table)
        rows = [dict(r) for r in self.tables[table] if self._matches(r, filters)]
        if order:
            rows.sort(key=lambda r: r[order], reverse=descending)
        return rows

    async def insert(self, table, rows):
        await self._enter("insert", table)
        inserted = []
        for row in rows:
            new = dict(row)
            new.setdefault("id", max((r["id"] for r in self.tables[table]), default=0) + 1)
            new.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            self.tables[table].append(new)
            inserted.append(dict(new))
        return inserted

    async def update(self, table, values, filters):
        await self._enter("update", table)
        updated = []
        for row in self.tables[table]:
            if self._matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    async def delete(self, table, filters):
        await self._enter("delete", table)
        self.tables[table] = [r for r in self.tables[table] if not self._matches(r, filters)]

    # ── Storage ─────────────────────────────────────────────────────────────

    async def upload(self, bucket, path, data, content_type):
        await self._enter("upload", f"{bucket}/{path}")
        self.objects[f"{bucket}/{path}"] = (data, content_type)
        return path

    def public_url(self, bucket, path):
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"


def make_image_bytes(fmt: str = "PNG", size: tuple[int, int] = (64, 48), mode: str = "RGB") -> bytes:
    color = {"RGB": (200, 30, 30), "RGBA": (200, 30, 30, 128), "L": 128, "P": 1}[mode]
    image = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def client(backend) -> TestClient:
    app.dependency_overrides[get_backend] = lambda: backend
    app.state.upload_limiter = UploadRateLimiter()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client) -> TestClient:
    client.cookies.set("sb-access-token", "access-1")
    client.cookies.set("sb-refresh-token", "refresh-1")
    return client


@pytest.fixture
def make_image():
    return make_image_bytes
