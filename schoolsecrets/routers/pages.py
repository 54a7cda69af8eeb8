"""
schoolsecrets/routers/pages.py — Public submission form
GET /   cascading school selector (selection carried in query parameters)
POST /  submit a secret through the same service as /api/create-post
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse

from schoolsecrets.clients.supabase_client import BackendClient, BackendError, get_backend
from schoolsecrets.config import get_settings
from schoolsecrets.core.logging import log_error
from schoolsecrets.core.rate_limiter import RATE_LIMITS, limiter
from schoolsecrets.core.templates import templates
from schoolsecrets.models import Notification
from schoolsecrets.services import posts as posts_service
from schoolsecrets.services.school_selector import SchoolSelection, fetch_schools

router = APIRouter()
settings = get_settings()

LOAD_ERROR = "Failed to load schools data"


def _form_value(form: Any, name: str) -> str:
    value = form.get(name)
    return value if isinstance(value, str) else ""


def _render(
    request: Request,
    selection: Optional[SchoolSelection],
    notice: Optional[Notification] = None,
    titulo: str = "",
    content: str = "",
    error: Optional[str] = None,
    status_code: int = 200,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "selection": selection,
            "notice": notice,
            "titulo": titulo,
            "content": content,
            "error": error,
        },
        status_code=status_code,
    )


async def _load_selection(backend: BackendClient) -> SchoolSelection:
    schools = await fetch_schools(backend)
    return SchoolSelection(schools, settings.allowed_departments)


@router.get("/", response_class=HTMLResponse)
@limiter.limit(RATE_LIMITS["pages"])
async def submission_form(
    request: Request,
    departamento: Optional[str] = None,
    localidad: Optional[str] = None,
    nombre: Optional[str] = None,
    backend: BackendClient = Depends(get_backend),
) -> HTMLResponse:
    try:
        selection = await _load_selection(backend)
    except BackendError as exc:
        log_error("public_form", "fetch_schools", exc)
        return _render(request, None, error=LOAD_ERROR, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    selection.apply(departamento, localidad, nombre)
    return _render(request, selection)


@router.post("/", response_class=HTMLResponse)
@limiter.limit(RATE_LIMITS["pages"])
async def submit_secret(
    request: Request,
    backend: BackendClient = Depends(get_backend),
) -> HTMLResponse:
    """
    Blocked submissions (no school, empty fields) come back as a notification
    with the typed text preserved; a successful one resets the whole form.
    """
    form = await request.form()
    titulo = _form_value(form, "titulo")
    content = _form_value(form, "content")

    try:
        selection = await _load_selection(backend)
    except BackendError as exc:
        log_error("public_form", "fetch_schools", exc)
        return _render(request, None, error=LOAD_ERROR, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    selection.apply(
        _form_value(form, "departamento"),
        _form_value(form, "localidad"),
        _form_value(form, "nombre"),
    )

    blocked = selection.submission_error(titulo, content)
    if blocked:
        return _render(
            request, selection,
            notice=Notification(level="error", message=blocked),
            titulo=titulo, content=content,
        )

    try:
        await posts_service.create_post(backend, {
            "content": content,
            "schoolId": selection.school.id,
            "titulo": titulo,
        })
    except (posts_service.PostValidationError, posts_service.SchoolNotFoundError) as exc:
        message = str(exc)
    except BackendError as exc:
        log_error("public_form", "create_post", exc)
        message = exc.message
    except Exception as exc:
        log_error("public_form", "create_post", exc)
        message = "An unexpected error occurred."
    else:
        selection.reset()
        return _render(
            request, selection,
            notice=Notification(level="success", message="Post creado: tu post fue creado correctamente."),
        )

    return _render(
        request, selection,
        notice=Notification(level="error", message=f"No se pudo crear el post: {message}"),
        titulo=titulo, content=content,
    )
