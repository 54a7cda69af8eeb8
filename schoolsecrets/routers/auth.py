"""
schoolsecrets/routers/auth.py — Admin sign-in
POST /api/auth/signin  form-encoded credentials → session cookies + redirect
GET/POST /signin       HTML sign-in page on top of the same flow
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response

from schoolsecrets.clients.supabase_client import BackendClient, BackendError, get_backend
from schoolsecrets.config import get_settings
from schoolsecrets.core.auth import set_session_cookies
from schoolsecrets.core.logging import log_error, log_sign_in
from schoolsecrets.core.rate_limiter import RATE_LIMITS, limiter
from schoolsecrets.core.templates import templates
from schoolsecrets.utils.auth_messages import translate_auth_error

router = APIRouter()
settings = get_settings()

MISSING_CREDENTIALS = "Email and password are required"


async def _read_credentials(request: Request) -> tuple[str, str]:
    form = await request.form()
    email = form.get("email")
    password = form.get("password")
    return (
        email if isinstance(email, str) else "",
        password if isinstance(password, str) else "",
    )


def _relay_status(exc: BackendError) -> int:
    if 400 <= exc.status_code < 600:
        return exc.status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _signed_in_redirect(session, status_code: int) -> RedirectResponse:
    response = RedirectResponse(url=settings.admin_redirect_path, status_code=status_code)
    set_session_cookies(response, session)
    return response


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/auth/signin
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/api/auth/signin")
@limiter.limit(RATE_LIMITS["signin"])
async def api_sign_in(
    request: Request,
    backend: BackendClient = Depends(get_backend),
) -> Response:
    """
    Exchange credentials for a backend session.
    Errors are plain text; the backend's own message and status are relayed.
    """
    email, password = await _read_credentials(request)
    if not email or not password:
        return PlainTextResponse(MISSING_CREDENTIALS, status_code=status.HTTP_400_BAD_REQUEST)

    try:
        session = await backend.sign_in_with_password(email, password)
    except BackendError as exc:
        log_sign_in(email, False, exc.message)
        return PlainTextResponse(exc.message, status_code=_relay_status(exc))
    except Exception as exc:
        log_error("auth", "sign_in", exc)
        return PlainTextResponse("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    log_sign_in(email, True)
    return _signed_in_redirect(session, status.HTTP_302_FOUND)


# ──────────────────────────────────────────────────────────────────────────────
# GET/POST /signin — HTML page
# ──────────────────────────────────────────────────────────────────────────────

def _render_sign_in(
    request: Request,
    error: Optional[str] = None,
    email: str = "",
    status_code: int = 200,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "signin.html",
        {"error": error, "email": email},
        status_code=status_code,
    )


@router.get("/signin", response_class=HTMLResponse)
@limiter.limit(RATE_LIMITS["pages"])
async def sign_in_page(request: Request) -> HTMLResponse:
    return _render_sign_in(request)


@router.post("/signin", response_class=HTMLResponse)
@limiter.limit(RATE_LIMITS["signin"])
async def sign_in_form(
    request: Request,
    backend: BackendClient = Depends(get_backend),
) -> Response:
    """Same flow as the API; failures re-render the page with a Spanish message."""
    email, password = await _read_credentials(request)
    if not email or not password:
        return _render_sign_in(
            request,
            error="Ingresa tu correo y contraseña.",
            email=email,
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        session = await backend.sign_in_with_password(email, password)
    except BackendError as exc:
        log_sign_in(email, False, exc.message)
        return _render_sign_in(
            request,
            error=f"Hubo un error al iniciar sesión: {translate_auth_error(exc.code)}",
            email=email,
            status_code=_relay_status(exc),
        )

    log_sign_in(email, True)
    return _signed_in_redirect(session, status.HTTP_303_SEE_OTHER)
