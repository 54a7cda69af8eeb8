"""
schoolsecrets/utils/validators.py — Input validation helpers
"""
from __future__ import annotations

import re
from typing import Any, Optional

_WORD_START = re.compile(r"\b\w")


def is_blank(value: Any) -> bool:
    """True for None, empty strings and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def parse_school_id(value: Any) -> Optional[int]:
    """
    Parse a school identifier sent as a number or a numeric string.
    Returns None when the value is not an integral number.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if not number.is_integer():
        return None
    return int(number)


def display_label(value: Optional[str]) -> str:
    """'ESCUELA NORMAL' -> 'Escuela Normal' (selector option labels)."""
    if not value:
        return ""
    return _WORD_START.sub(lambda m: m.group(0).upper(), value.lower())


def ensure_list(value: Any) -> list:
    """Backend list endpoints sometimes answer null; treat it as empty."""
    if isinstance(value, list):
        return value
    return []
