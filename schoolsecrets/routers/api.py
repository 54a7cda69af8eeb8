"""
schoolsecrets/routers/api.py — JSON API endpoints
Endpoints: /api/create-post, /api/retrieve-images, /api/upload-image
Failures always answer {"success": false, "error": ...}; unexpected errors are
logged and reported as a generic "Server error".
"""

import math
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from slowapi.util import get_remote_address
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from schoolsecrets.clients.supabase_client import BackendClient, BackendError, get_backend
from schoolsecrets.config import get_settings
from schoolsecrets.core.logging import log_error, log_rate_limited, log_upload
from schoolsecrets.core.rate_limiter import RATE_LIMITS, RateLimitResult, UploadRateLimiter, limiter
from schoolsecrets.models import (
    CreatePostResponse,
    ErrorResponse,
    RateLimitInfo,
    RetrieveImagesResponse,
    UploadImageResponse,
)
from schoolsecrets.services import images as images_service
from schoolsecrets.services import posts as posts_service
from schoolsecrets.utils.validators import is_blank

router = APIRouter()
settings = get_settings()


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


async def _json_body(request: Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def get_upload_limiter(request: Request) -> UploadRateLimiter:
    """The app-owned upload limiter created in main.py."""
    return request.app.state.upload_limiter


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/create-post
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/create-post")
@limiter.limit(RATE_LIMITS["api"])
async def create_post(
    request: Request,
    backend: BackendClient = Depends(get_backend),
) -> JSONResponse:
    """
    Create a secret for a school.
    400 on missing/invalid fields, 404 when the school does not exist,
    500 when the backend write fails. No retries.
    """
    body = await _json_body(request)
    if body is None:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")

    try:
        row = await posts_service.create_post(backend, body)
    except posts_service.PostValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except posts_service.SchoolNotFoundError as exc:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))
    except BackendError as exc:
        log_error("create_post", "insert", exc, {"school_id": body.get("schoolId")})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)
    except Exception as exc:
        log_error("create_post", "request", exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")

    return JSONResponse(content=CreatePostResponse(data=row).model_dump())


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/retrieve-images
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/retrieve-images")
@limiter.limit(RATE_LIMITS["api"])
async def retrieve_images(
    request: Request,
    backend: BackendClient = Depends(get_backend),
) -> JSONResponse:
    """Public URLs of the images attached to a secret."""
    body = await _json_body(request)
    if body is None or is_blank(body.get("secret")):
        return _error(status.HTTP_400_BAD_REQUEST, "secret is required")

    try:
        items = await images_service.list_secret_image_urls(backend, str(body["secret"]))
    except Exception as exc:
        log_error("retrieve_images", "select", exc, {"secret": body.get("secret")})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")

    return JSONResponse(content=RetrieveImagesResponse(items=items).model_dump())


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/upload-image
# ──────────────────────────────────────────────────────────────────────────────

def _rate_limit_headers(result: RateLimitResult, limit: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_time),
    }


def _iso_from_ms(epoch_ms: int) -> str:
    """Epoch milliseconds → 2024-01-01T00:00:00.000Z"""
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.post("/upload-image")
async def upload_image(
    request: Request,
    backend: BackendClient = Depends(get_backend),
    upload_limiter: UploadRateLimiter = Depends(get_upload_limiter),
) -> JSONResponse:
    """
    Attach an image to a secret.
    Rate limited per client address before the body is read; the image is
    normalized, uploaded to storage, and only then recorded in secret_images.
    """
    limit = settings.upload_limit
    client_key = get_remote_address(request) or "unknown"
    rate_limit = upload_limiter.check_limit(client_key, limit, settings.upload_window_ms)
    headers = _rate_limit_headers(rate_limit, limit)

    if not rate_limit.allowed:
        reset_in = max(0, math.ceil((rate_limit.reset_time - upload_limiter.now()) / 1000))
        log_rate_limited(client_key, rate_limit.reset_time)
        return _error(
            status.HTTP_429_TOO_MANY_REQUESTS,
            f"Rate limit exceeded. Try again in {reset_in} seconds.",
            headers={**headers, "Retry-After": str(reset_in)},
        )

    try:
        form = await request.form()
        image = form.get("image")
        secret_id = form.get("secret_id")

        if not isinstance(image, UploadFile):
            return _error(status.HTTP_400_BAD_REQUEST, "No image file provided")
        if not isinstance(secret_id, str) or is_blank(secret_id):
            return _error(status.HTTP_400_BAD_REQUEST, "secret_id is required")
        if not images_service.is_allowed_mime_type(image.content_type):
            return _error(
                status.HTTP_400_BAD_REQUEST,
                "Invalid file type. Only images are allowed.",
            )

        raw = await image.read()
        normalized = await run_in_threadpool(
            images_service.normalize_image, raw, image.content_type
        )
        key = await images_service.store_secret_image(backend, secret_id.strip(), normalized)
        log_upload(secret_id, key, normalized.mime_type, len(normalized.data), rate_limit.remaining)
    except Exception as exc:
        log_error("upload_image", "upload", exc, {"client_key": client_key})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")

    payload = UploadImageResponse(
        rate_limit=RateLimitInfo(
            remaining=rate_limit.remaining,
            reset_at=_iso_from_ms(rate_limit.reset_time),
        ),
    )
    return JSONResponse(content=payload.model_dump(by_alias=True), headers=headers)
