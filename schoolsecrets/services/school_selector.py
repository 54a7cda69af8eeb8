"""
schoolsecrets/services/school_selector.py — Cascading school selection
Department → locality → name, each level's options derived from the level above
and the immutable school list. Choosing a level clears every level below it.
"""
from __future__ import annotations

from typing import Iterable, Optional

from schoolsecrets.clients.supabase_client import BackendClient
from schoolsecrets.models import School
from schoolsecrets.utils.validators import ensure_list, is_blank

SCHOOL_REQUIRED_MESSAGE = "Seleccion de escuela necesario: selecciona una escuela antes de enviar."
INCOMPLETE_FORM_MESSAGE = "Formulario incompleto: llena todos los campos."


def _unique(values: Iterable[str]) -> list[str]:
    """De-duplicate keeping first-seen order."""
    seen: dict[str, None] = {}
    for value in values:
        if value not in seen:
            seen[value] = None
    return list(seen)


async def fetch_schools(backend: BackendClient) -> list[School]:
    rows = await backend.select("schools", columns="id, nombre, departamento, localidad")
    return [School(**row) for row in ensure_list(rows)]


class SchoolSelection:
    """
    Three ordered levels over a fixed list of schools.

    When the allow-listed data holds exactly one department it is selected up
    front and ``department_selector_visible`` is False, so only locality and
    name remain for the visitor to pick.
    """

    def __init__(self, schools: list[School], allowed_departments: Iterable[str] = ("CONCORDIA",)) -> None:
        self._schools = tuple(schools)
        allowed = {d.upper() for d in allowed_departments}
        self.departments: list[str] = _unique(
            s.department for s in self._schools
            if s.department and s.department.upper() in allowed
        )
        self.department: Optional[str] = None
        self.locality: Optional[str] = None
        self.name: Optional[str] = None
        self._auto_select()

    def _auto_select(self) -> None:
        if len(self.departments) == 1 and self.department is None:
            self.select_department(self.departments[0])

    # ── Derived option sets ──────────────────────────────────────────────────

    @property
    def department_selector_visible(self) -> bool:
        return len(self.departments) > 1

    @property
    def localities(self) -> list[str]:
        if self.department is None:
            return []
        return _unique(s.locality for s in self._schools if s.department == self.department)

    @property
    def names(self) -> list[str]:
        if self.department is None or self.locality is None:
            return []
        return [
            s.name for s in self._schools
            if s.department == self.department and s.locality == self.locality
        ]

    @property
    def school(self) -> Optional[School]:
        if self.department is None or self.locality is None or self.name is None:
            return None
        return next(
            (
                s for s in self._schools
                if s.department == self.department
                and s.locality == self.locality
                and s.name == self.name
            ),
            None,
        )

    # ── Transitions ──────────────────────────────────────────────────────────

    def select_department(self, department: str) -> None:
        if department not in self.departments:
            raise ValueError(f"Unknown department: {department!r}")
        self.department = department
        self.locality = None
        self.name = None

    def select_locality(self, locality: str) -> None:
        if locality not in self.localities:
            raise ValueError(f"Unknown locality: {locality!r}")
        self.locality = locality
        self.name = None

    def select_name(self, name: str) -> School:
        if name not in self.names:
            raise ValueError(f"Unknown school: {name!r}")
        self.name = name
        return self.school

    def reset(self) -> None:
        self.department = None
        self.locality = None
        self.name = None
        self._auto_select()

    def apply(
        self,
        department: Optional[str] = None,
        locality: Optional[str] = None,
        name: Optional[str] = None,
    ) -> None:
        """
        Replay a selection top-down (e.g. from form fields). Values that are not
        valid options at their level are ignored, which also drops everything below.
        """
        if department and department != self.department:
            try:
                self.select_department(department)
            except ValueError:
                return
        if self.department is None or not locality:
            return
        try:
            self.select_locality(locality)
        except ValueError:
            return
        if not name:
            return
        try:
            self.select_name(name)
        except ValueError:
            return

    def submission_error(self, title: Optional[str], content: Optional[str]) -> Optional[str]:
        """Notification text that blocks submission, or None when it may proceed."""
        if self.school is None:
            return SCHOOL_REQUIRED_MESSAGE
        if is_blank(title) or is_blank(content):
            return INCOMPLETE_FORM_MESSAGE
        return None
