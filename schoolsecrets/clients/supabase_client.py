"""
schoolsecrets/clients/supabase_client.py — Backend collaborator client
Thin async client over the hosted backend's HTTP APIs:
  - GoTrue  (/auth/v1)    password sign-in, token refresh, current user
  - PostgREST (/rest/v1)  table select / insert / update / delete
  - Storage (/storage/v1) object upload and public URL resolution
Every call is logged; failures raise BackendError. No retries.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from schoolsecrets.config import get_settings
from schoolsecrets.core.logging import log_backend_call
from schoolsecrets.models import AuthSession

settings = get_settings()


class BackendError(Exception):
    """A non-2xx answer (or transport failure) from the backend collaborator."""

    def __init__(self, message: str, status_code: int = 500, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


def _error_from_response(response: httpx.Response) -> BackendError:
    """Pull the human-readable message and error code out of an error body."""
    message = response.reason_phrase or "Backend request failed"
    code: Optional[str] = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = (
            body.get("msg")
            or body.get("message")
            or body.get("error_description")
            or body.get("error")
            or message
        )
        raw_code = body.get("error_code") or body.get("code") or body.get("error")
        code = str(raw_code) if raw_code is not None else None
    elif response.text:
        message = response.text
    return BackendError(str(message), status_code=response.status_code, code=code)


def _eq_filters(filters: Optional[dict[str, Any]]) -> dict[str, str]:
    """{"id": 5} -> {"id": "eq.5"} (PostgREST horizontal filtering)."""
    if not filters:
        return {}
    return {column: f"eq.{value}" for column, value in filters.items()}


class BackendClient:
    """
    Client for the hosted backend.

    ``access_token`` switches the Authorization header from the anon key to a
    user session, which is how the admin table acts on behalf of the signed-in
    administrator. Use ``with_session`` to derive such a client.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: Optional[float] = 30.0,
        access_token: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self._http = http or httpx.AsyncClient(timeout=timeout)

    def with_session(self, access_token: str) -> "BackendClient":
        return BackendClient(
            self.base_url,
            self.api_key,
            access_token=access_token,
            http=self._http,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    # ──────────────────────────────────────────────────────────────────────────
    # Transport
    # ──────────────────────────────────────────────────────────────────────────

    def _headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        service: str,
        operation: str,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        headers = self._headers(kwargs.pop("headers", None))
        start = time.monotonic()
        try:
            response = await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            latency = (time.monotonic() - start) * 1000
            log_backend_call(service, operation, path, 0, latency, error=str(exc))
            raise BackendError(f"Backend unreachable: {exc}", status_code=502) from exc

        latency = (time.monotonic() - start) * 1000
        if response.is_error:
            error = _error_from_response(response)
            log_backend_call(service, operation, path, response.status_code, latency, error=error.message)
            raise error

        log_backend_call(service, operation, path, response.status_code, latency)
        return response

    # ──────────────────────────────────────────────────────────────────────────
    # Auth
    # ──────────────────────────────────────────────────────────────────────────

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        response = await self._request(
            "auth", "sign_in", "POST", "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return _session_from_body(response.json())

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        response = await self._request(
            "auth", "refresh", "POST", "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return _session_from_body(response.json())

    async def get_user(self, access_token: str) -> dict[str, Any]:
        response = await self._request(
            "auth", "get_user", "GET", "/auth/v1/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        return response.json()

    # ──────────────────────────────────────────────────────────────────────────
    # Tables
    # ──────────────────────────────────────────────────────────────────────────

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[dict[str, Any]] = None,
        order: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        params = {"select": columns, **_eq_filters(filters)}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        response = await self._request("rest", "select", "GET", f"/rest/v1/{table}", params=params)
        return response.json()

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        response = await self._request(
            "rest", "insert", "POST", f"/rest/v1/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return response.json()

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        filters: dict[str, Any],
    ) -> list[dict[str, Any]]:
        response = await self._request(
            "rest", "update", "PATCH", f"/rest/v1/{table}",
            params=_eq_filters(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return response.json()

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        await self._request(
            "rest", "delete", "DELETE", f"/rest/v1/{table}",
            params=_eq_filters(filters),
        )

    # ──────────────────────────────────────────────────────────────────────────
    # Storage
    # ──────────────────────────────────────────────────────────────────────────

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Upload an object; returns its path inside the bucket."""
        await self._request(
            "storage", "upload", "POST", f"/storage/v1/object/{bucket}/{path}",
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        return path

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"


def _session_from_body(body: dict[str, Any]) -> AuthSession:
    if not body.get("access_token") or not body.get("refresh_token"):
        raise BackendError("Backend returned no session", status_code=500)
    user = body.get("user") or {}
    return AuthSession(
        access_token=body["access_token"],
        refresh_token=body["refresh_token"],
        user_email=user.get("email"),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Shared instance — FastAPI dependency
# ──────────────────────────────────────────────────────────────────────────────

_client: Optional[BackendClient] = None


def get_backend() -> BackendClient:
    """Return the process-wide client, creating it on first use."""
    global _client
    if _client is None:
        _client = BackendClient(
            settings.supabase_url,
            settings.supabase_key,
            timeout=settings.backend_timeout_seconds,
        )
    return _client


async def close_backend() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
