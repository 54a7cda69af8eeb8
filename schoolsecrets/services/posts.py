"""
schoolsecrets/services/posts.py — Secret creation
Validates the submission, checks the referenced school exists, inserts the row.
Shared by POST /api/create-post and the public form.
"""
from __future__ import annotations

from typing import Any

from schoolsecrets.clients.supabase_client import BackendClient
from schoolsecrets.core.logging import log_post_created
from schoolsecrets.utils.validators import is_blank, parse_school_id


class PostValidationError(ValueError):
    """Missing or malformed submission fields (HTTP 400)."""


class SchoolNotFoundError(LookupError):
    """The referenced school does not exist (HTTP 404)."""


async def school_exists(backend: BackendClient, school_id: int) -> bool:
    rows = await backend.select("schools", columns="id", filters={"id": school_id})
    return bool(rows)


async def create_post(backend: BackendClient, body: dict[str, Any]) -> dict[str, Any]:
    """
    Create a secret from ``{content, schoolId, titulo}``.

    New secrets are stored with ``approved = True``; nothing gates publication.
    Returns the inserted row. BackendError propagates untouched.
    """
    content = body.get("content")
    school_id_raw = body.get("schoolId")
    titulo = body.get("titulo")

    if is_blank(content) or is_blank(school_id_raw) or is_blank(titulo):
        raise PostValidationError("All fields are required")

    school_id = parse_school_id(school_id_raw)
    if school_id is None:
        raise PostValidationError("Invalid school ID")

    if not await school_exists(backend, school_id):
        raise SchoolNotFoundError("School not found")

    rows = await backend.insert("secrets", [{
        "content": content,
        "school": school_id,
        "titulo": titulo,
        "approved": True,
    }])
    created = rows[0] if rows else {}
    log_post_created(created.get("id"), school_id)
    return created
