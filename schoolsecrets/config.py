"""
schoolsecrets/config.py — Pydantic BaseSettings configuration
Backend credentials, upload limits, image normalization and admin table knobs.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────────
    environment: str = "development"
    log_level: str = "INFO"
    port: int = 8000

    # ── Backend collaborator (Supabase) ────────────────────────────────────────
    supabase_url: str
    supabase_key: str
    # Single client-level timeout; no per-call timeout or retry is layered on top
    backend_timeout_seconds: Optional[float] = 30.0
    storage_bucket: str = "attachments"

    # ── Upload rate limiter ───────────────────────────────────────────────────
    upload_limit: int = 10
    upload_window_ms: int = 5 * 60 * 1000
    # 0 disables the background sweep
    rate_limit_cleanup_interval_seconds: int = 600

    # ── Image normalization ───────────────────────────────────────────────────
    image_max_dimension: int = 1200
    image_quality: int = 80
    png_compression_level: int = 9

    # ── Public submission form ────────────────────────────────────────────────
    allowed_departments: list[str] = ["CONCORDIA"]

    # ── Admin area ────────────────────────────────────────────────────────────
    admin_page_size: int = 10
    admin_redirect_path: str = "/admin/dashboard"
    access_cookie_name: str = "sb-access-token"
    refresh_cookie_name: str = "sb-refresh-token"

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("supabase_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        return self.environment == "testing"


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance. Use this everywhere."""
    return Settings()
