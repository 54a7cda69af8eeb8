"""
schoolsecrets/main.py — FastAPI application entry point
Includes: lifespan management, rate limiting, security headers, startup
validation of the backend credentials, and the upload-limiter cleanup sweep.
"""

from contextlib import asynccontextmanager
import threading
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import uvicorn

from schoolsecrets.clients.supabase_client import close_backend
from schoolsecrets.config import get_settings
from schoolsecrets.core.auth import AdminAuthRequired
from schoolsecrets.core.logging import setup_logging
from schoolsecrets.core.rate_limiter import UploadRateLimiter, limiter
from schoolsecrets.routers import api, auth, dashboard, pages

settings = get_settings()

_PLACEHOLDERS = {"", "change-me", "your-supabase-key", "https://your-project.supabase.co"}


# ──────────────────────────────────────────────────────────────────────────────
# Upload limiter cleanup — keeps the in-memory counter map bounded
# ──────────────────────────────────────────────────────────────────────────────

def _cleanup_worker(upload_limiter: UploadRateLimiter, interval: int, stop: threading.Event) -> None:
    """Background daemon thread: drop expired upload windows every ``interval`` seconds."""
    while not stop.wait(interval):
        try:
            removed = upload_limiter.cleanup()
            if removed:
                logger.debug(f"Upload limiter cleanup removed {removed} expired entries.")
        except Exception as exc:
            logger.warning(f"Upload limiter cleanup failed (non-fatal): {exc}")


def _start_cleanup(upload_limiter: UploadRateLimiter) -> threading.Event | None:
    interval = settings.rate_limit_cleanup_interval_seconds
    if interval <= 0:
        return None
    stop = threading.Event()
    thread = threading.Thread(
        target=_cleanup_worker,
        args=(upload_limiter, interval, stop),
        daemon=True,
        name="upload-limiter-cleanup",
    )
    thread.start()
    logger.info(f"Upload limiter cleanup every {interval}s.")
    return stop


# ──────────────────────────────────────────────────────────────────────────────
# Application Lifespan
# ──────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    FastAPI lifespan: startup → yield → shutdown.
    Startup: logging, credential validation, limiter cleanup thread.
    Shutdown: stop the cleanup thread and close the backend HTTP client.
    """
    setup_logging(settings.log_level)
    logger.info("School Secrets starting up...")

    _validate_env()
    stop_cleanup = _start_cleanup(app.state.upload_limiter)

    logger.info("Startup complete.")
    yield

    if stop_cleanup is not None:
        stop_cleanup.set()
    await close_backend()
    logger.info("Shutting down School Secrets.")


def _validate_env() -> None:
    """Missing or placeholder backend credentials abort startup."""
    required = [
        ("supabase_url", "SUPABASE_URL"),
        ("supabase_key", "SUPABASE_KEY"),
    ]
    missing = []
    for attr, env_name in required:
        val = getattr(settings, attr, None)
        if not val or val in _PLACEHOLDERS:
            missing.append(env_name)

    if missing:
        msg = f"Missing or placeholder env vars: {', '.join(missing)}"
        logger.critical(msg)
        raise RuntimeError(msg)


# ──────────────────────────────────────────────────────────────────────────────
# FastAPI App
# ──────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="School Secrets",
    description="Anonymous school confessions with an admin review table.",
    version="1.0.0",
    docs_url="/docs" if not settings.is_production else None,
    redoc_url=None,
    lifespan=lifespan,
)

# One upload limiter per process, shared by every request
app.state.upload_limiter = UploadRateLimiter()

# ── Rate limiting — fastapi/slowapi ───────────────────────────────────────────
app.state.limiter = limiter
app.add_exception_handler(
    RateLimitExceeded,
    lambda req, exc: JSONResponse(
        status_code=429,
        content={"success": False, "error": "Rate limit exceeded. Slow down."},
    ),
)
app.add_middleware(SlowAPIMiddleware)

# ── Admin routes without a session go to the sign-in page ────────────────────
app.add_exception_handler(
    AdminAuthRequired,
    lambda req, exc: RedirectResponse(url="/signin", status_code=303),
)


# ── Security headers middleware ───────────────────────────────────────────────
@app.middleware("http")
async def add_security_headers(request: Request, call_next) -> Response:
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
    return response


# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(api.router, prefix="/api", tags=["api"])
app.include_router(auth.router, tags=["auth"])
app.include_router(dashboard.router, tags=["admin"])
app.include_router(pages.router, tags=["pages"])


@app.get("/api/ping", tags=["health"])
async def ping():
    """Liveness probe. Does NOT call the backend."""
    return {"status": "ok", "version": "1.0.0"}


def run() -> None:
    """Console entry point: serve the app on settings.port."""
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
