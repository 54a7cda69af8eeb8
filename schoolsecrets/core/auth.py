"""
schoolsecrets/core/auth.py — Session cookies and admin session context
Sign-in stores the backend's token pair in two site-wide cookies; admin routes
rebuild a session from them and act on the backend with the user's token.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import Depends, Request, Response
from pydantic import BaseModel

from schoolsecrets.clients.supabase_client import BackendClient, BackendError, get_backend
from schoolsecrets.config import get_settings
from schoolsecrets.models import AuthSession

settings = get_settings()


class AdminAuthRequired(Exception):
    """No usable session; main.py turns this into a redirect to /signin."""


class AdminContext(BaseModel):
    """Session handed to the admin UI layer, with a backend client bound to it."""
    session: AuthSession
    backend: Any  # BackendClient bound to the session token
    refreshed: bool = False


# ──────────────────────────────────────────────────────────────────────────────
# Cookies
# ──────────────────────────────────────────────────────────────────────────────

def set_session_cookies(response: Response, session: AuthSession) -> None:
    """Both tokens, scoped to the whole site. No expiry/secure/samesite flags."""
    response.set_cookie(settings.access_cookie_name, session.access_token, path="/")
    response.set_cookie(settings.refresh_cookie_name, session.refresh_token, path="/")


def read_session_cookies(request: Request) -> tuple[Optional[str], Optional[str]]:
    return (
        request.cookies.get(settings.access_cookie_name),
        request.cookies.get(settings.refresh_cookie_name),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Session establishment
# ──────────────────────────────────────────────────────────────────────────────

async def establish_session(
    backend: BackendClient,
    access_token: str,
    refresh_token: str,
) -> tuple[AuthSession, bool]:
    """
    Validate the access token; when the backend rejects it as expired, trade the
    refresh token for a new pair. Returns (session, refreshed).
    """
    try:
        user = await backend.get_user(access_token)
        return AuthSession(
            access_token=access_token,
            refresh_token=refresh_token,
            user_email=user.get("email"),
        ), False
    except BackendError as exc:
        if exc.status_code not in (401, 403):
            raise
    return await backend.refresh_session(refresh_token), True


async def require_admin(
    request: Request,
    backend: BackendClient = Depends(get_backend),
) -> AdminContext:
    """FastAPI dependency for every /admin route."""
    access_token, refresh_token = read_session_cookies(request)
    if not access_token or not refresh_token:
        raise AdminAuthRequired()
    try:
        session, refreshed = await establish_session(backend, access_token, refresh_token)
    except BackendError as exc:
        raise AdminAuthRequired() from exc
    return AdminContext(
        session=session,
        backend=backend.with_session(session.access_token),
        refreshed=refreshed,
    )
