"""
TripMaker Auth: user storage, password hashing and bearer tokens.

Provides a JSON-file user store with serialized access, scrypt password
hashing and HS256 JWT tokens.

Usage:
    from tripmaker.auth.store import UserStore
    from tripmaker.auth.tokens import TokenIssuer

    store = UserStore(db_path="data/users.json")
    users = await store.load()
    issuer = TokenIssuer(secret="...", expires_in="7d")
"""

from .models import Failure, FailureKind, Profile, PublicProfile, UserRecord
from .store import CorruptStore, StorageUnavailable, StoreError, UserStore
from .tokens import TokenClaims, TokenError, TokenExpired, TokenInvalid, TokenIssuer

__all__ = [
    "UserStore",
    "StoreError",
    "CorruptStore",
    "StorageUnavailable",
    "UserRecord",
    "Profile",
    "PublicProfile",
    "Failure",
    "FailureKind",
    "TokenIssuer",
    "TokenClaims",
    "TokenError",
    "TokenInvalid",
    "TokenExpired",
]
