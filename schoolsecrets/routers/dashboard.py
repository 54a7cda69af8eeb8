"""
schoolsecrets/routers/dashboard.py — Admin review table pages
Session cookies from sign-in are required on every route; without a usable
session the visitor is sent to /signin. Result messages travel back to the
table as ?notice=...&level=... after each action.
"""

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from schoolsecrets.config import get_settings
from schoolsecrets.core.auth import AdminContext, require_admin, set_session_cookies
from schoolsecrets.core.logging import log_error
from schoolsecrets.core.rate_limiter import RATE_LIMITS, limiter
from schoolsecrets.core.templates import templates
from schoolsecrets.models import Notification
from schoolsecrets.services import images as images_service
from schoolsecrets.services.admin_review import (
    AdminReviewTable,
    TableQuery,
    cell_value,
    column_label,
)

router = APIRouter()
settings = get_settings()

_TRUTHY = {"true", "on", "1", "yes"}


def _table_link(q: str, sort: Optional[str], desc: bool, hide: list[str], page: int):
    """
    Link builder for the table template. Every link starts from the current
    filter, sort, hidden columns and page and overrides only what it changes.
    """
    def link(**changes) -> str:
        state = {"q": q, "sort": sort, "desc": desc, "hide": hide, "page": page}
        state.update(changes)
        params: list[tuple[str, str]] = [("q", state["q"])]
        if state["sort"]:
            params.append(("sort", state["sort"]))
            params.append(("desc", "true" if state["desc"] else "false"))
        params.extend(("hide", column) for column in state["hide"])
        params.append(("page", str(state["page"])))
        return "?" + urlencode(params)

    return link


def _with_refreshed_cookies(response: Response, ctx: AdminContext) -> Response:
    if ctx.refreshed:
        set_session_cookies(response, ctx.session)
    return response


def _back_to_dashboard(ctx: AdminContext, notice: Optional[Notification]) -> Response:
    url = settings.admin_redirect_path
    if notice is not None:
        url = f"{url}?{urlencode({'notice': notice.message, 'level': notice.level})}"
    return _with_refreshed_cookies(RedirectResponse(url=url, status_code=303), ctx)


async def _loaded_table(ctx: AdminContext) -> AdminReviewTable:
    table = AdminReviewTable(ctx.backend)
    await table.load()
    return table


def _last_notice(table: AdminReviewTable) -> Optional[Notification]:
    if table.error:
        return Notification(level="error", message=table.error)
    return table.notifications[-1] if table.notifications else None


# ──────────────────────────────────────────────────────────────────────────────
# GET /admin/dashboard — review table
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/admin/dashboard", response_class=HTMLResponse)
@limiter.limit(RATE_LIMITS["pages"])
async def dashboard_home(
    request: Request,
    q: str = "",
    sort: Optional[str] = None,
    desc: bool = False,
    page: int = 1,
    hide: list[str] = Query(default=[]),
    notice: Optional[str] = None,
    level: str = "success",
    ctx: AdminContext = Depends(require_admin),
) -> Response:
    """All secrets, newest first; filter, sort, hide columns and page in memory."""
    table = await _loaded_table(ctx)
    view = table.view(TableQuery(
        title_filter=q,
        sort_by=sort,
        descending=desc,
        page=page,
        page_size=settings.admin_page_size,
        hidden_columns=set(hide),
    ))

    context = {
        "view": view,
        "error": table.error,
        "q": q,
        "sort": sort,
        "desc": desc,
        "hide": hide,
        "link": _table_link(q, sort, desc, hide, view.page),
        "notice": Notification(level=level, message=notice) if notice else None,
        "user_email": ctx.session.user_email,
        "column_label": column_label,
        "cell_value": cell_value,
    }
    response = templates.TemplateResponse(request, "dashboard.html", context)
    return _with_refreshed_cookies(response, ctx)


# ──────────────────────────────────────────────────────────────────────────────
# POST /admin/secrets/{secret_id}/approval — approval toggle
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/admin/secrets/{secret_id}/approval")
@limiter.limit(RATE_LIMITS["pages"])
async def toggle_approval(
    request: Request,
    secret_id: int,
    ctx: AdminContext = Depends(require_admin),
) -> Response:
    form = await request.form()
    approved = str(form.get("approved", "")).lower() in _TRUTHY

    table = await _loaded_table(ctx)
    if not table.error:
        await table.set_approval(secret_id, approved)
    return _back_to_dashboard(ctx, _last_notice(table))


# ──────────────────────────────────────────────────────────────────────────────
# GET/POST /admin/secrets/{secret_id}/delete — confirmation, then deletion
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/admin/secrets/{secret_id}/delete", response_class=HTMLResponse)
@limiter.limit(RATE_LIMITS["pages"])
async def confirm_delete(
    request: Request,
    secret_id: int,
    ctx: AdminContext = Depends(require_admin),
) -> Response:
    table = await _loaded_table(ctx)
    secret = table.get(secret_id)
    if secret is None:
        notice = _last_notice(table) or Notification(level="error", message="Secret not found")
        return _back_to_dashboard(ctx, notice)

    response = templates.TemplateResponse(request, "confirm_delete.html", {"secret": secret})
    return _with_refreshed_cookies(response, ctx)


@router.post("/admin/secrets/{secret_id}/delete")
@limiter.limit(RATE_LIMITS["pages"])
async def delete_secret(
    request: Request,
    secret_id: int,
    ctx: AdminContext = Depends(require_admin),
) -> Response:
    form = await request.form()
    confirmed = str(form.get("confirm", "")).lower() in _TRUTHY

    table = await _loaded_table(ctx)
    if not table.error:
        await table.delete(secret_id, confirmed=confirmed)
    return _back_to_dashboard(ctx, _last_notice(table))


# ──────────────────────────────────────────────────────────────────────────────
# GET /admin/secrets/{secret_id}/images — attached images
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/admin/secrets/{secret_id}/images", response_class=HTMLResponse)
@limiter.limit(RATE_LIMITS["pages"])
async def secret_images(
    request: Request,
    secret_id: int,
    ctx: AdminContext = Depends(require_admin),
) -> Response:
    try:
        urls = await images_service.list_secret_image_urls(ctx.backend, str(secret_id))
    except Exception as exc:
        log_error("dashboard", "secret_images", exc, {"secret_id": secret_id})
        return _back_to_dashboard(ctx, Notification(level="error", message="Images unavailable."))

    response = templates.TemplateResponse(
        request, "images.html", {"secret_id": secret_id, "urls": urls}
    )
    return _with_refreshed_cookies(response, ctx)
