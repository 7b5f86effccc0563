"""JWT token creation and verification helpers.

Uses PyJWT with HS256 algorithm for signing.
Tokens carry user_id, email, issued-at and expiry timestamps.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import jwt

ALGORITHM = "HS256"
DEFAULT_EXPIRY = timedelta(days=7)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_DURATION_UNITS = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


class TokenError(Exception):
    """Base class for bearer token failures."""


class TokenInvalid(TokenError):
    """Token is malformed, mis-signed or missing required claims."""


class TokenExpired(TokenError):
    """Token signature is valid but its expiry has passed."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str


def parse_duration(value: Union[str, int, float, timedelta]) -> timedelta:
    """Parse ``"7d"``, ``"12h"``, ``"30m"``, ``"45s"``, ``"2w"`` or plain seconds."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)

    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Unrecognised duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def create_token(
    user_id: str,
    email: str,
    secret: str,
    expires_in: timedelta = DEFAULT_EXPIRY,
    now: Optional[datetime] = None,
) -> str:
    """Create a signed JWT token for a user.

    Args:
        user_id: Unique identifier for the user.
        email: Normalized email of the user.
        secret: Secret key used for HS256 signing.
        expires_in: Token validity window (default 7 days).
        now: Issue time; defaults to the current UTC time.

    Returns:
        Encoded JWT string.
    """
    now = now or datetime.now(timezone.utc)
    payload = {
        "user_id": user_id,
        "email": email,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_token(token: str, secret: str) -> TokenClaims:
    """Verify a JWT token and extract the identity claims.

    PyJWT checks the signature before any claim is read.

    Raises:
        TokenExpired: signature is valid but ``exp`` has passed.
        TokenInvalid: token is malformed, mis-signed or lacks claims.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpired(str(e)) from e
    except jwt.InvalidTokenError as e:
        raise TokenInvalid(str(e)) from e

    # Tokens minted by the legacy service carry "id" instead of "user_id".
    user_id = payload.get("user_id", payload.get("id"))
    email = payload.get("email")
    if not isinstance(user_id, str) or not isinstance(email, str):
        raise TokenInvalid("Token is missing identity claims")
    return TokenClaims(user_id=user_id, email=email)


class TokenIssuer:
    """Mints and validates bearer tokens with one symmetric secret.

    Args:
        secret: HS256 signing key.
        expires_in: Validity window applied at issue time; accepts anything
            ``parse_duration`` does.
    """

    def __init__(
        self,
        secret: str,
        expires_in: Union[str, int, timedelta] = DEFAULT_EXPIRY,
    ) -> None:
        if not secret:
            raise ValueError("TokenIssuer requires a non-empty secret")
        self._secret = secret
        self.expires_in = parse_duration(expires_in)

    @classmethod
    def ephemeral(cls, expires_in: Union[str, int, timedelta] = DEFAULT_EXPIRY) -> "TokenIssuer":
        """Issuer with a random secret that lives only as long as the process."""
        return cls(secrets.token_hex(32), expires_in)

    def issue(self, user_id: str, email: str, now: Optional[datetime] = None) -> str:
        return create_token(user_id, email, self._secret, self.expires_in, now=now)

    def verify(self, token: str) -> TokenClaims:
        return verify_token(token, self._secret)
