"""
schoolsecrets/models.py — Pydantic data schemas
Row shapes of the backend tables (schools, secrets, secret_images), the
session token pair, and the request/response bodies of the JSON API.
Table columns keep their Spanish names on the wire; attributes are English.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ──────────────────────────────────────────────────────────────────────────────
# Backend rows
# ──────────────────────────────────────────────────────────────────────────────

class School(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    name: str = Field(alias="nombre")
    department: str = Field(alias="departamento")
    locality: str = Field(alias="localidad")


class Secret(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    created_at: datetime
    content: str
    title: str = Field(alias="titulo")
    school: int
    approved: bool = True


class SecretImage(BaseModel):
    id: Optional[int] = None
    secret_id: Union[int, str]  # integer FK on the wire; form uploads pass it as text
    urls: dict[str, Any]
    created_at: Optional[datetime] = None

    @property
    def public_url(self) -> Optional[str]:
        return self.urls.get("publicUrl")


class AuthSession(BaseModel):
    """Token pair issued by the backend; opaque to this application."""
    access_token: str
    refresh_token: str
    user_email: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────────────
# API bodies
# ──────────────────────────────────────────────────────────────────────────────

class Notification(BaseModel):
    """Transient message shown once on the next rendered page."""
    level: str  # success | error
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class CreatePostResponse(BaseModel):
    success: bool = True
    data: dict[str, Any]


class RetrieveImagesResponse(BaseModel):
    success: bool = True
    items: list[str]


class RateLimitInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    remaining: int
    reset_at: str = Field(serialization_alias="resetAt")


class UploadImageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    rate_limit: RateLimitInfo = Field(serialization_alias="rateLimit")
