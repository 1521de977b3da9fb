"""Shared utility functions for IdentityKeeper.

Convenience re-exports so consumers can import from ``identitykeeper.utils``
directly; the full module paths remain supported.
"""

from identitykeeper.utils.ids import IdGenerator
from identitykeeper.utils.security import hmac_sha256, random_string, verify_digest
from identitykeeper.utils.user_codec import decode_user, encode_user
from identitykeeper.utils.validation import (
    check_email,
    check_name,
    check_password,
    check_url,
    normalize_email,
    sanitize_name,
)

__all__ = [
    "IdGenerator",
    "check_email",
    "check_name",
    "check_password",
    "check_url",
    "decode_user",
    "encode_user",
    "hmac_sha256",
    "normalize_email",
    "random_string",
    "sanitize_name",
    "verify_digest",
]
