"""
Field rules for account data.

Each check returns the normalized value or raises ``ValueError`` with a
client-facing message, so it can back a pydantic validator or be called
directly from a flow.
"""

import re

from auth_backend.config import get_settings

EMAIL_RE = re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.[A-Za-z]{2,}$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
PASSWORD_MIX_RE = re.compile(r"^(?=.*[a-zA-Z])(?=.*\d)")

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
EMAIL_MAX_LENGTH = 254


def check_email(value: str) -> str:
    """Normalize an email address and reject malformed ones."""
    value = value.strip().lower()
    if len(value) > EMAIL_MAX_LENGTH or not EMAIL_RE.match(value):
        raise ValueError("Please provide a valid email address")
    return value


def check_username(value: str) -> str:
    value = value.strip()
    if not USERNAME_MIN_LENGTH <= len(value) <= USERNAME_MAX_LENGTH:
        raise ValueError(
            f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters"
        )
    if not USERNAME_RE.match(value):
        raise ValueError("Username can only contain letters, numbers, underscores, and hyphens")
    return value


def check_new_password(value: str) -> str:
    min_length = get_settings().min_password_length
    if len(value) < min_length:
        raise ValueError(f"Password must be at least {min_length} characters long")
    if not PASSWORD_MIX_RE.match(value):
        raise ValueError("Password must contain at least one letter and one number")
    return value
