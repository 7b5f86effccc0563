"""Account lifecycle use cases: register, login, read and update profiles.

This is the only component the HTTP layer and the management CLI call. Every
operation that touches the user collection goes through
``UserStore.with_serialized_access``, reads included, so a login never races
an in-flight registration or profile update.

Expected business outcomes (duplicate email, bad credentials, unknown id) come
back as ``Failure`` values. Storage failures (``CorruptStore``,
``StorageUnavailable``) propagate unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Union

from .auth import passwords
from .auth.models import (
    Failure,
    FailureKind,
    Profile,
    PublicProfile,
    UserRecord,
    normalize_email,
    utc_timestamp,
)
from .auth.store import UserStore
from .auth.tokens import TokenClaims, TokenIssuer
from .event_log import log_event

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = Failure(FailureKind.DUPLICATE_EMAIL, "Email is already registered.")
INVALID_CREDENTIALS = Failure(FailureKind.INVALID_CREDENTIALS, "Invalid credentials.")
NOT_FOUND = Failure(FailureKind.NOT_FOUND, "User not found.")


@dataclass(frozen=True)
class AuthResult:
    """Successful register or login."""

    id: str
    email: str
    token: str
    createdAt: Optional[str] = None

    def to_dict(self) -> dict[str, str]:
        data = {"id": self.id, "email": self.email, "token": self.token}
        if self.createdAt is not None:
            data["createdAt"] = self.createdAt
        return data


def _find_by_email(users: list[UserRecord], email: str) -> Optional[UserRecord]:
    return next((u for u in users if u.email == email), None)


def _index_of(users: list[UserRecord], user_id: str) -> Optional[int]:
    return next((i for i, u in enumerate(users) if u.id == user_id), None)


class AccountService:
    """Register/login/profile facade over UserStore and TokenIssuer.

    Args:
        store: UserStore owning the user collection and its write queue.
        tokens: TokenIssuer used to mint bearer tokens.
    """

    def __init__(self, store: UserStore, tokens: TokenIssuer) -> None:
        self.store = store
        self.tokens = tokens

    async def register(self, email: str, password: str) -> Union[AuthResult, Failure]:
        """Create an account. Returns DUPLICATE_EMAIL if the email is taken."""
        email = normalize_email(email)
        # scrypt is slow; hash before taking a queue slot.
        credential_hash = await asyncio.to_thread(passwords.hash_password, password)

        def create(users: list[UserRecord]):
            if _find_by_email(users, email):
                return None, DUPLICATE_EMAIL
            record = UserRecord(
                id=str(uuid.uuid4()),
                email=email,
                credential_hash=credential_hash,
                profile=Profile(),
                created_at=utc_timestamp(),
            )
            return users + [record], record

        result = await self.store.with_serialized_access(create)
        if isinstance(result, Failure):
            log_event("register_rejected", component="accounts", email=email, reason=result.kind.value)
            return result

        logger.info(f"Registered user {result.id}")
        log_event("register_success", component="accounts", user_id=result.id, email=email)
        return AuthResult(
            id=result.id,
            email=result.email,
            token=self.tokens.issue(result.id, result.email),
            createdAt=result.created_at,
        )

    async def login(self, email: str, password: str) -> Union[AuthResult, Failure]:
        """Check credentials and issue a token.

        Unknown email and wrong password both yield INVALID_CREDENTIALS, and
        both cost one scrypt derivation.
        """
        email = normalize_email(email)
        user = await self.store.with_serialized_access(
            lambda users: (None, _find_by_email(users, email))
        )

        stored = user.credential_hash if user else passwords.DUMMY_HASH
        matched = await asyncio.to_thread(passwords.verify_password, password, stored)
        if user is None or not matched:
            log_event("login_failed", component="accounts", email=email)
            return INVALID_CREDENTIALS

        log_event("login_success", component="accounts", user_id=user.id, email=email)
        return AuthResult(id=user.id, email=user.email, token=self.tokens.issue(user.id, user.email))

    async def get_profile(self, user_id: str) -> Union[PublicProfile, Failure]:
        def lookup(users: list[UserRecord]):
            index = _index_of(users, user_id)
            if index is None:
                return None, NOT_FOUND
            return None, users[index].public_profile()

        return await self.store.with_serialized_access(lookup)

    async def update_profile(
        self, user_id: str, fields: dict[str, Any]
    ) -> Union[PublicProfile, Failure]:
        """Apply a partial update; keys absent from ``fields`` keep their values.

        A new email is normalized and checked against every other record
        within the same serialized step, so two queued updates racing for the
        same address cannot both win.
        """

        def update(users: list[UserRecord]):
            index = _index_of(users, user_id)
            if index is None:
                return None, NOT_FOUND

            user = users[index]
            email = user.email
            if "email" in fields:
                email = normalize_email(fields["email"])
                if any(u.email == email and u.id != user_id for u in users):
                    return None, DUPLICATE_EMAIL

            updated = UserRecord(
                id=user.id,
                email=email,
                credential_hash=user.credential_hash,
                profile=user.profile.merged(fields),
                created_at=user.created_at,
            )
            users[index] = updated
            return users, updated.public_profile()

        result = await self.store.with_serialized_access(update)
        if not isinstance(result, Failure):
            log_event(
                "profile_updated",
                component="accounts",
                user_id=user_id,
                fields=sorted(fields),
            )
        return result

    async def list_users(self) -> list[PublicProfile]:
        """All accounts in creation order, as public profiles."""
        return await self.store.with_serialized_access(
            lambda users: (None, [u.public_profile() for u in users])
        )

    def verify_token(self, token: str) -> TokenClaims:
        """Validate a bearer token; raises TokenInvalid or TokenExpired."""
        return self.tokens.verify(token)
