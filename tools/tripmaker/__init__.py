"""
TripMaker Auth: credential and profile service.

Registers accounts, authenticates by password, issues bearer tokens and keeps
a small per-user profile in a single JSON document.

Architecture:
    HTTP API / CLI → AccountService → UserStore (WriteQueue → JSON file)
                                    → passwords (scrypt)
                                    → TokenIssuer (HS256 JWT)

Components:
    - UserStore: Serialized whole-collection access with read-only fallback
    - WriteQueue: Strict FIFO of store jobs, one in flight at a time
    - AccountService: register / login / get_profile / update_profile
    - ApiServer: aiohttp routes mapping results to HTTP status codes

Usage:
    from tripmaker.accounts import AccountService
    from tripmaker.auth.store import UserStore
    from tripmaker.auth.tokens import TokenIssuer

    service = AccountService(UserStore("data/users.json"), TokenIssuer.ephemeral())
    result = await service.register("a@example.com", "secret1")
"""

__version__ = "2.0.0"

from .accounts import AccountService, AuthResult
from .write_queue import WriteQueue

__all__ = [
    "AccountService",
    "AuthResult",
    "WriteQueue",
]
