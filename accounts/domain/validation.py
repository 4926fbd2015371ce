"""Domain rules for usernames, passwords and roles."""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from .models import ROLES, STATUSES

USERNAME_MIN_LENGTH = 3
PASSWORD_MIN_LENGTH = 8
_SPECIAL = re.compile(r"""[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]""")


def username_problem(value: str | None) -> Optional[str]:
    """Return a message describing why ``value`` is unusable, or None."""
    if not value or len(value) < USERNAME_MIN_LENGTH:
        return f"Username must be at least {USERNAME_MIN_LENGTH} characters long"
    if value != value.strip():
        return "Username must not start or end with whitespace"
    return None


def password_problem(value: str | None) -> Optional[str]:
    password = value or ""
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[0-9]", password):
        return "Password must contain at least one number"
    if not _SPECIAL.search(password):
        return "Password must contain at least one special character"
    return None


def json_problem(value: Any) -> Optional[str]:
    """Profiles are stored as JSON by both backends."""
    try:
        json.dumps(value)
    except (TypeError, ValueError) as exc:
        return f"Value cannot be stored: {exc}"
    return None


def is_valid_role(value: str | None) -> bool:
    return value in ROLES


def is_valid_status(value: str | None) -> bool:
    return value in STATUSES
