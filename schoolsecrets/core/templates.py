"""
schoolsecrets/core/templates.py — Shared Jinja2 environment for HTML pages
"""
from __future__ import annotations

from pathlib import Path

from fastapi.templating import Jinja2Templates

from schoolsecrets.utils.validators import display_label

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["label"] = display_label
