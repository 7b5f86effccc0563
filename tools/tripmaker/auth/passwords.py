"""Salted scrypt password hashing with constant-time verification.

Stored format is ``<salt-hex>:<derived-key-hex>``. The hex salt string itself
is the scrypt salt, which keeps hashes written by the legacy Node service
verifiable.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

SALT_BYTES = 16
KEY_LENGTH = 64
SEPARATOR = ":"

# Same cost parameters as Node's crypto.scryptSync defaults.
SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1


def _derive(password: str, salt: str, length: int = KEY_LENGTH) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=length,
    )


def hash_password(password: str) -> str:
    """Hash a plaintext password with a fresh random salt."""
    salt = secrets.token_hex(SALT_BYTES)
    return f"{salt}{SEPARATOR}{_derive(password, salt).hex()}"


def verify_password(password: str, stored: str) -> bool:
    """Check a plaintext password against a stored ``salt:key`` hash.

    Malformed stored values and key-length mismatches evaluate to ``False``;
    nothing here raises on bad input.
    """
    if not isinstance(stored, str) or SEPARATOR not in stored:
        return False

    salt, _, key_hex = stored.partition(SEPARATOR)
    if not salt or not key_hex:
        return False

    try:
        expected = bytes.fromhex(key_hex)
    except ValueError:
        return False

    derived = _derive(password, salt)
    if len(expected) != len(derived):
        return False
    return hmac.compare_digest(derived, expected)


# Verified against when a login names an unknown email so that path costs one
# scrypt derivation too.
DUMMY_HASH = hash_password(secrets.token_hex(8))
