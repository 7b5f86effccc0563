"""Request body validation for the HTTP API.

Each validator returns an error message, or None when the body is acceptable.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from .auth.models import CURRENCIES, LANGUAGES, normalize_email

MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

UPDATABLE_FIELDS = ("email", "phone", "country", "language", "currencyType")


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(_EMAIL_RE.match(normalize_email(email)))


def validate_credentials(body: Any, registering: bool) -> Optional[str]:
    if not isinstance(body, dict):
        return "Request body must be a JSON object."

    email = body.get("email")
    password = body.get("password")
    if not email or not password:
        return "Email and password are required."
    if not is_valid_email(email):
        return "Please provide a valid email address."
    if not isinstance(password, str):
        return "Password must be a string."
    if registering and len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
    return None


def validate_profile_update(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return "Request body must be a JSON object."

    if "email" in body:
        if not normalize_email(body["email"]):
            return "Email must be provided."
        if not is_valid_email(body["email"]):
            return "Please provide a valid email address."
    for name in ("phone", "country"):
        if name in body and body[name] is not None and not isinstance(body[name], str):
            return f"{name.capitalize()} must be a string."
    if "language" in body and body["language"] not in LANGUAGES:
        return f"Language must be one of: {', '.join(LANGUAGES)}"
    if "currencyType" in body and body["currencyType"] not in CURRENCIES:
        return f"Currency must be one of: {', '.join(CURRENCIES)}"
    return None


def profile_fields(body: dict[str, Any]) -> dict[str, Any]:
    """Only the keys a profile update may touch."""
    return {name: body[name] for name in UPDATABLE_FIELDS if name in body}
