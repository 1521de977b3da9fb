"""
Credential Models.

``LocalCredential`` and ``FederatedCredential`` mirror the ``local_auths``
and ``oauths`` tables.  ``FederatedAssertion`` is the already-verified
identity a provider hands back after its own handshake; it never
touches the store directly.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from identitykeeper.models.enums import AuthProviderType
from identitykeeper.models.user import current_millis

# Longest token lifetime accepted from a provider.
MAX_TOKEN_LIFETIME: timedelta = timedelta(days=36_500)


class LocalCredential(BaseModel):
    """Password credential, one-to-one with a user.

    ``passwd`` is the hex HMAC-SHA256 of the plaintext keyed by ``salt``.
    Neither field changes after creation.
    """

    id: str
    user_id: str
    salt: str
    passwd: str
    created_at: int = 0

    model_config = {"from_attributes": True}


class FederatedCredential(BaseModel):
    """Link between a user and one third-party provider account.

    (``auth_provider_type``, ``auth_id``) is the natural key.  The token
    and its absolute expiry are refreshed on every successful login.
    """

    id: str
    user_id: str
    auth_provider_type: AuthProviderType
    auth_id: str
    auth_token: str
    expires_at: int
    created_at: int = 0
    updated_at: int = 0

    model_config = {"from_attributes": True}

    def is_expired(self, now_ms: Optional[int] = None) -> bool:
        now = current_millis() if now_ms is None else now_ms
        return now >= self.expires_at


class FederatedAssertion(BaseModel):
    """Verified identity returned by a provider.

    Attributes
    ----------
    account_id:
        Provider-stable account identifier.
    name:
        Display name as reported by the provider.
    image_url:
        Avatar URL, or ``None`` when the provider has none.
    access_token:
        Current access token.
    expires_in:
        Token lifetime, relative to the moment of login.
    """

    account_id: str = Field(min_length=1)
    name: str
    image_url: Optional[str] = None
    access_token: str
    expires_in: timedelta

    @field_validator("expires_in")
    @classmethod
    def _bounded_lifetime(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("expires_in must not be negative")
        if value > MAX_TOKEN_LIFETIME:
            raise ValueError(f"expires_in must not exceed {MAX_TOKEN_LIFETIME.days} days")
        return value

    @property
    def expires_in_millis(self) -> int:
        return int(self.expires_in.total_seconds() * 1000)
