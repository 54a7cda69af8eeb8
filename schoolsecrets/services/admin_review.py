"""
schoolsecrets/services/admin_review.py — Admin review table
Holds the fetched secrets for one admin session and applies filtering,
sorting, column visibility and pagination in memory. Approval toggles and
deletions go to the backend with the row's control held in a pending state
until the write resolves; failures leave the row as it was.
"""
from __future__ import annotations

import math
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, Field

from schoolsecrets.clients.supabase_client import BackendClient, BackendError
from schoolsecrets.core.logging import log_error
from schoolsecrets.models import Notification, Secret
from schoolsecrets.utils.validators import ensure_list

# Wire column name → (model attribute, header label)
COLUMNS: dict[str, tuple[str, str]] = {
    "id": ("id", "ID"),
    "created_at": ("created_at", "Created At"),
    "titulo": ("title", "Title"),
    "content": ("content", "Content"),
    "school": ("school", "School ID"),
    "approved": ("approved", "Approved"),
}


class TableQuery(BaseModel):
    title_filter: str = ""
    sort_by: Optional[str] = None
    descending: bool = False
    page: int = 1
    page_size: int = 10
    hidden_columns: set[str] = Field(default_factory=set)


class TablePage(BaseModel):
    rows: list[Secret]
    columns: list[str]
    page: int
    page_count: int
    total: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count


def column_label(column: str) -> str:
    return COLUMNS[column][1]


def cell_value(secret: Secret, column: str) -> Any:
    return getattr(secret, COLUMNS[column][0])


class AdminReviewTable:
    """
    One admin request's view of the secrets table.

    ``pending_approvals`` / ``pending_deletions`` only hold a row for the
    duration of its backend write, which happens inside a single POST. The
    rendered page covers the same window by disabling the submitted button
    until the POST answers with its redirect.
    """

    def __init__(self, store: BackendClient) -> None:
        self._store = store
        self.rows: list[Secret] = []
        self.error: Optional[str] = None
        self.pending_approvals: dict[int, bool] = {}
        self.pending_deletions: set[int] = set()
        self.notifications: list[Notification] = []

    # ── Loading ──────────────────────────────────────────────────────────────

    async def load(self) -> list[Secret]:
        """Fetch every secret, newest first. A failure is kept in ``error``."""
        try:
            data = await self._store.select("secrets", order="created_at", descending=True)
        except BackendError as exc:
            log_error("admin_review", "load", exc)
            self.rows = []
            self.error = exc.message or "Failed to load secrets"
            return self.rows
        self.rows = [Secret(**row) for row in ensure_list(data)]
        self.error = None
        return self.rows

    def get(self, secret_id: int) -> Optional[Secret]:
        return next((s for s in self.rows if s.id == secret_id), None)

    # ── Row state ────────────────────────────────────────────────────────────

    def is_approval_pending(self, secret_id: int) -> bool:
        return secret_id in self.pending_approvals

    def is_deletion_pending(self, secret_id: int) -> bool:
        return secret_id in self.pending_deletions

    def displayed_approval(self, secret_id: int) -> Optional[bool]:
        """What the switch shows: the requested value while pending, else the row's."""
        if secret_id in self.pending_approvals:
            return self.pending_approvals[secret_id]
        secret = self.get(secret_id)
        return secret.approved if secret else None

    def _notify(self, level: str, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self.notifications.append(notification)
        return notification

    # ── Mutations ────────────────────────────────────────────────────────────

    async def set_approval(self, secret_id: int, approved: bool) -> bool:
        secret = self.get(secret_id)
        if secret is None:
            self._notify("error", "Secret not found")
            return False
        if self.is_approval_pending(secret_id):
            return False

        self.pending_approvals[secret_id] = approved
        try:
            await self._store.update("secrets", {"approved": approved}, {"id": secret_id})
        except BackendError as exc:
            log_error("admin_review", "set_approval", exc, {"secret_id": secret_id})
            # Row untouched: the switch falls back to the stored value
            self._notify("error", exc.message or "Failed to update approval status")
            return False
        finally:
            self.pending_approvals.pop(secret_id, None)

        secret.approved = approved
        self._notify("success", f"Secret {'approved' if approved else 'unapproved'} successfully")
        logger.info(f"Secret {secret_id} approval set to {approved}")
        return True

    async def delete(self, secret_id: int, confirmed: bool = False) -> bool:
        if not confirmed:
            self._notify("error", "Deletion must be confirmed")
            return False
        if self.get(secret_id) is None:
            self._notify("error", "Secret not found")
            return False
        if self.is_deletion_pending(secret_id):
            return False

        self.pending_deletions.add(secret_id)
        try:
            await self._store.delete("secrets", {"id": secret_id})
        except BackendError as exc:
            log_error("admin_review", "delete", exc, {"secret_id": secret_id})
            self._notify("error", exc.message or "Failed to delete secret")
            return False
        finally:
            self.pending_deletions.discard(secret_id)

        self.rows = [s for s in self.rows if s.id != secret_id]
        self._notify("success", "Secret deleted successfully")
        logger.info(f"Secret {secret_id} deleted")
        return True

    # ── View ─────────────────────────────────────────────────────────────────

    def view(self, query: TableQuery) -> TablePage:
        rows = self.rows
        needle = query.title_filter.strip().lower()
        if needle:
            rows = [s for s in rows if needle in s.title.lower()]

        if query.sort_by in COLUMNS:
            attr = COLUMNS[query.sort_by][0]
            rows = sorted(
                rows,
                key=lambda s: (getattr(s, attr) is None, getattr(s, attr)),
                reverse=query.descending,
            )

        columns = [c for c in COLUMNS if c not in query.hidden_columns]
        page_size = max(1, query.page_size)
        total = len(rows)
        page_count = max(1, math.ceil(total / page_size))
        page = min(max(1, query.page), page_count)
        start = (page - 1) * page_size

        return TablePage(
            rows=rows[start:start + page_size],
            columns=columns,
            page=page,
            page_count=page_count,
            total=total,
        )
