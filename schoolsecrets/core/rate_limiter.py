"""
schoolsecrets/core/rate_limiter.py — request throttling
slowapi limiter for page/API routes, plus the fixed-window upload limiter that
gates POST /api/upload-image.
"""
from __future__ import annotations

import threading
import time
from typing import Callable

from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

from schoolsecrets.config import get_settings

settings = get_settings()

# Single shared limiter instance — imported by main.py and routers
limiter = Limiter(key_func=get_remote_address, enabled=not settings.is_testing)

# ── Rate limits per endpoint category ────────────────────────────────────────
RATE_LIMITS = {
    # Public form and admin pages: generous limit for normal browsing
    "pages": "60/minute",
    # JSON API endpoints
    "api": "30/minute",
    # Sign-in: restrictive to slow down password guessing
    "signin": "10/minute",
}


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimitResult(BaseModel):
    allowed: bool
    remaining: int
    reset_time: int  # epoch milliseconds


class _Window(BaseModel):
    count: int
    reset_time: int


class UploadRateLimiter:
    """
    Fixed-window counter keyed by client address.

    State lives in process memory only: it is lost on restart and not shared
    between instances. One instance is created at app start and kept on
    ``app.state.upload_limiter``.
    """

    def __init__(self, clock: Callable[[], int] = _now_ms) -> None:
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def now(self) -> int:
        return self._clock()

    def check_limit(
        self,
        client_key: str,
        limit: int = 10,
        window_ms: int = 5 * 60 * 1000,
    ) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            window = self._windows.get(client_key)
            if window is None or now > window.reset_time:
                window = _Window(count=0, reset_time=now + window_ms)
                self._windows[client_key] = window

            if window.count >= limit:
                return RateLimitResult(allowed=False, remaining=0, reset_time=window.reset_time)

            window.count += 1
            return RateLimitResult(
                allowed=True,
                remaining=limit - window.count,
                reset_time=window.reset_time,
            )

    def cleanup(self) -> int:
        """Drop entries whose window has expired. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, w in self._windows.items() if now > w.reset_time]
            for key in expired:
                del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
