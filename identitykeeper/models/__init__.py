from __future__ import annotations

"""
Data Models Package.

Re-exports all Pydantic models:
    from identitykeeper.models import User, LocalCredential, FederatedCredential
    from identitykeeper.models import Role, AuthProviderType, PagedResults
"""

from identitykeeper.models.enums import AuthProviderType, Role
from identitykeeper.models.user import User
from identitykeeper.models.credentials import (
    FederatedAssertion,
    FederatedCredential,
    LocalCredential,
)
from identitykeeper.models.paging import Page, PagedResults

__all__ = [
    "AuthProviderType",
    "Role",
    "User",
    "FederatedAssertion",
    "FederatedCredential",
    "LocalCredential",
    "Page",
    "PagedResults",
]
