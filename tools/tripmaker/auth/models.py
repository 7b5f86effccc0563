"""User record and profile types persisted in the JSON user collection."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

LANGUAGES = ("en", "hi", "ml", "ar", "es", "de")
CURRENCIES = ("USD", "EUR", "INR", "AED", "GBP", "CAD", "AUD")

PROFILE_FIELDS = ("phone", "country", "language", "currencyType")


def normalize_email(email: Any) -> str:
    """Trim and lower-case an email address. ``None`` becomes ``""``."""
    return str(email or "").strip().lower()


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. ``2026-01-20T12:34:56.000Z``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + (
        f"{now.microsecond // 1000:03d}Z"
    )


@dataclass(frozen=True)
class Profile:
    """Per-user preferences embedded in a UserRecord."""

    phone: str = ""
    country: str = ""
    language: str = "en"
    currencyType: str = "USD"

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "Profile":
        """Build a profile, filling any field missing from ``data`` with its default.

        Older records may lack newer fields; defaults are applied here at read
        time so the stored document never needs migrating.
        """
        data = data or {}
        defaults = cls()
        return cls(
            **{
                name: str(data[name]) if data.get(name) is not None else getattr(defaults, name)
                for name in PROFILE_FIELDS
            }
        )

    def to_dict(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in PROFILE_FIELDS}

    def merged(self, changes: dict[str, Any]) -> "Profile":
        """Return a copy with only the supplied profile fields replaced."""
        updates = {
            name: str(changes[name] if changes[name] is not None else "")
            for name in PROFILE_FIELDS
            if name in changes
        }
        return replace(self, **updates)


@dataclass(frozen=True)
class UserRecord:
    """Canonical stored representation of one account."""

    id: str
    email: str
    credential_hash: str
    profile: Profile = field(default_factory=Profile)
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserRecord":
        # Records written by the legacy service carry "passwordHash".
        credential_hash = data.get("credentialHash", data.get("passwordHash", ""))
        return cls(
            id=str(data.get("id", "")),
            email=normalize_email(data.get("email")),
            credential_hash=str(credential_hash or ""),
            profile=Profile.from_dict(data.get("profile")),
            created_at=str(data.get("createdAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "credentialHash": self.credential_hash,
            "profile": self.profile.to_dict(),
            "createdAt": self.created_at,
        }

    def public_profile(self) -> "PublicProfile":
        return PublicProfile(
            id=self.id,
            email=self.email,
            phone=self.profile.phone,
            country=self.profile.country,
            language=self.profile.language,
            currencyType=self.profile.currencyType,
            createdAt=self.created_at,
        )


@dataclass(frozen=True)
class PublicProfile:
    """Profile view returned to callers; never carries the credential hash."""

    id: str
    email: str
    phone: str
    country: str
    language: str
    currencyType: str
    createdAt: str

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "email": self.email,
            "phone": self.phone,
            "country": self.country,
            "language": self.language,
            "currencyType": self.currencyType,
            "createdAt": self.createdAt,
        }


class FailureKind(enum.Enum):
    DUPLICATE_EMAIL = "duplicate_email"
    INVALID_CREDENTIALS = "invalid_credentials"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Failure:
    """Expected business-rule outcome, returned rather than raised.

    A store access function that returns a Failure never has its collection
    written back.
    """

    kind: FailureKind
    message: str

    def __bool__(self) -> bool:
        return False
