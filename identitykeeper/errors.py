"""
Identity Error Taxonomy.

Every failure the orchestration layer surfaces to its callers is one of
the exceptions below.  Each carries a human-readable ``message`` and,
when it wraps a lower-level failure (``sqlite3`` or ``redis``), the
``original_error`` for diagnostics.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "AccountLockedError",
    "CacheUnavailableError",
    "DuplicateCredentialError",
    "DuplicateEmailError",
    "IdentityError",
    "InvalidInputError",
    "NotFoundError",
    "StoreUnavailableError",
    "UnsupportedProviderError",
]


class IdentityError(Exception):
    """Base class for all identity-layer failures."""

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        self.message: str = message
        self.original_error: Optional[Exception] = original_error
        super().__init__(self.message)


class InvalidInputError(IdentityError):
    """Malformed email, unsafe display name, bad URL, or bad paging input.

    Raised before any write.  ``field`` names the offending input.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field: Optional[str] = field


class DuplicateEmailError(IdentityError):
    """The store rejected a user insert on the unique email constraint."""


class DuplicateCredentialError(IdentityError):
    """The store rejected a federated credential on (provider, auth_id)."""


class UnsupportedProviderError(IdentityError):
    """The provider does not allow federated account creation."""


class NotFoundError(IdentityError):
    """A record the caller required to exist is absent."""


class AccountLockedError(IdentityError):
    """The account's ``locked_until`` lies in the future."""

    def __init__(self, message: str, locked_until: int) -> None:
        super().__init__(message)
        self.locked_until: int = locked_until


class StoreUnavailableError(IdentityError):
    """Transport or engine failure in the identity store."""


class CacheUnavailableError(IdentityError):
    """Transport failure in the user cache.  Never fatal to callers."""
