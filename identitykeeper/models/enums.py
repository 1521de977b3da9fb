"""
Shared Enumerations for IdentityKeeper Models.

StrEnum values compare equal to their string equivalents and are stored
verbatim in the ``users.role`` and ``oauths.auth_provider_type`` columns.
"""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """Privilege levels, highest first.

    ``SUBSCRIBER`` is the lowest privilege and the role every new
    account starts with, whichever flow created it.
    """

    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    CONTRIBUTOR = "CONTRIBUTOR"
    SPONSOR = "SPONSOR"
    SUBSCRIBER = "SUBSCRIBER"


class AuthProviderType(StrEnum):
    """Identity providers a credential can come from."""

    LOCAL = "LOCAL"
    GITHUB = "GITHUB"
    GOOGLE = "GOOGLE"
    FACEBOOK = "FACEBOOK"
    WEIBO = "WEIBO"
    QQ = "QQ"
    WECHAT = "WECHAT"

    @property
    def supports_federated_auth(self) -> bool:
        """Whether a first-time login through this provider may create an account."""
        return self in _FEDERATED_PROVIDERS


_FEDERATED_PROVIDERS: frozenset[AuthProviderType] = frozenset(
    {
        AuthProviderType.GITHUB,
        AuthProviderType.GOOGLE,
        AuthProviderType.FACEBOOK,
        AuthProviderType.WEIBO,
        AuthProviderType.QQ,
        AuthProviderType.WECHAT,
    }
)
