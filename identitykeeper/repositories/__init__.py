"""
Repository Layer Package.

Data-access abstractions over the SQLite identity store.  All queries
flow through repositories; services never touch ``db.sqlite`` directly.

Usage:
    from identitykeeper.repositories import UserRepository, FederatedCredentialRepository
"""

from identitykeeper.repositories.base_repository import BaseRepository
from identitykeeper.repositories.credential_repository import (
    FederatedCredentialRepository,
    LocalCredentialRepository,
)
from identitykeeper.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "FederatedCredentialRepository",
    "LocalCredentialRepository",
    "UserRepository",
]
