"""
schoolsecrets/core/logging.py — loguru structured JSON logging setup
Every backend call, upload, post creation, sign-in and error is logged as one
JSON record on stdout.
"""
from __future__ import annotations

import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure loguru for structured JSON output to stdout.
    The hosting platform collects stdout; nothing is written to disk.
    """
    # Remove default loguru handler
    logger.remove()

    logger.add(
        sys.stdout,
        level=log_level.upper(),
        format="{message}",
        serialize=True,
        backtrace=True,
        diagnose=False,
        colorize=False,
    )


def _build_log_record(
    component: str,
    operation: str,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build a base structured log record."""
    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "component": component,
        "operation": operation,
    }
    if extra:
        record.update(extra)
    return record


# ──────────────────────────────────────────────────────────────────────────────
# Event helpers
# ──────────────────────────────────────────────────────────────────────────────

def log_backend_call(
    service: str,  # auth | rest | storage
    operation: str,
    target: str,
    status_code: int,
    latency_ms: float,
    error: Optional[str] = None,
) -> None:
    """Every request to the backend collaborator is logged."""
    record = _build_log_record("backend_client", operation, {
        "service": service,
        "target": target,
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
        "error": error,
    })
    if error:
        logger.warning(json.dumps(record))
    else:
        logger.info(json.dumps(record))


def log_upload(
    secret_id: str,
    storage_key: str,
    mime_type: str,
    size_bytes: int,
    remaining: int,
) -> None:
    record = _build_log_record("upload_image", "upload", {
        "secret_id": secret_id,
        "storage_key": storage_key,
        "mime_type": mime_type,
        "size_bytes": size_bytes,
        "rate_limit_remaining": remaining,
    })
    logger.info(json.dumps(record))


def log_rate_limited(client_key: str, reset_time_ms: int) -> None:
    record = _build_log_record("upload_image", "rate_limited", {
        "client_key": client_key,
        "reset_time_ms": reset_time_ms,
    })
    logger.warning(json.dumps(record))


def log_post_created(secret_id: Any, school_id: int) -> None:
    record = _build_log_record("create_post", "insert", {
        "secret_id": secret_id,
        "school_id": school_id,
    })
    logger.info(json.dumps(record))


def log_sign_in(email: str, success: bool, error: Optional[str] = None) -> None:
    """Sign-in attempts are logged without the password."""
    record = _build_log_record("auth", "sign_in", {
        "email": email,
        "success": success,
        "error": error,
    })
    logger.info(json.dumps(record))


def log_error(
    component: str,
    operation: str,
    error: Exception,
    context: Optional[dict[str, Any]] = None,
) -> None:
    """Every error must be logged with full context."""
    tb = traceback.format_exc()
    record = _build_log_record(component, operation, {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "stack_trace": tb[:2000] if tb else "",
        "context": context or {},
    })
    logger.error(json.dumps(record))
