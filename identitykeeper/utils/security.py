"""Password digest and random-salt helpers."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import string

__all__ = ["hmac_sha256", "random_string", "verify_digest"]

_SALT_ALPHABET: str = string.ascii_letters + string.digits


def hmac_sha256(plaintext: str, salt: str) -> str:
    """Return the hex HMAC-SHA256 of *plaintext* keyed by *salt* (64 chars)."""
    return hmac.new(
        salt.encode("utf-8"),
        plaintext.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_digest(plaintext: str, salt: str, expected: str) -> bool:
    """Constant-time check of *plaintext* against a stored digest."""
    return hmac.compare_digest(hmac_sha256(plaintext, salt), expected)


def random_string(length: int) -> str:
    """Cryptographically random alphanumeric string of *length* characters."""
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(_SALT_ALPHABET) for _ in range(length))
