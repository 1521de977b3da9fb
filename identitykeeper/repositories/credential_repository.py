"""
Credential Repositories.

``LocalCredentialRepository`` covers the ``local_auths`` table (password
credentials) and ``FederatedCredentialRepository`` the ``oauths`` table
(third-party provider links).  Neither offers a delete.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from identitykeeper.database import DatabaseManager
from identitykeeper.errors import DuplicateCredentialError, IdentityError
from identitykeeper.logger import StructuredLogger
from identitykeeper.models.credentials import FederatedCredential, LocalCredential
from identitykeeper.models.enums import AuthProviderType
from identitykeeper.repositories.base_repository import BaseRepository


class LocalCredentialRepository(BaseRepository[LocalCredential]):
    """Data access layer for password credentials (one per user)."""

    TABLE = "local_auths"
    MODEL = LocalCredential

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    def get_by_user_id(self, user_id: str) -> Optional[LocalCredential]:
        return self._fetch_model(
            f"SELECT * FROM {self.TABLE} WHERE user_id = ?",
            (user_id,),
            operation_name="get_by_user_id (local_auths)",
        )

    def _integrity_error(self, exc: sqlite3.IntegrityError, operation_name: str) -> IdentityError:
        if "local_auths.user_id" in str(exc):
            return DuplicateCredentialError(
                "User already has a local credential.", original_error=exc
            )
        return super()._integrity_error(exc, operation_name)


class FederatedCredentialRepository(BaseRepository[FederatedCredential]):
    """Data access layer for federated credentials.

    (``auth_provider_type``, ``auth_id``) is unique in the store; that
    constraint is what makes concurrent first logins converge on one
    account.
    """

    TABLE = "oauths"
    MODEL = FederatedCredential

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    def get_by_provider(
        self, provider: AuthProviderType, auth_id: str
    ) -> Optional[FederatedCredential]:
        """Look up a credential by its natural key."""
        return self._fetch_model(
            f"SELECT * FROM {self.TABLE} WHERE auth_provider_type = ? AND auth_id = ?",
            (str(provider), auth_id),
            operation_name="get_by_provider (oauths)",
        )

    def get_by_user_id(self, user_id: str) -> list[FederatedCredential]:
        """All provider links of a user, oldest first."""
        return self._fetch_models(
            f"SELECT * FROM {self.TABLE} WHERE user_id = ? ORDER BY created_at, id",
            (user_id,),
            operation_name="get_by_user_id (oauths)",
        )

    def _integrity_error(self, exc: sqlite3.IntegrityError, operation_name: str) -> IdentityError:
        if "oauths.auth_provider_type" in str(exc):
            return DuplicateCredentialError(
                "Provider account is already linked.", original_error=exc
            )
        return super()._integrity_error(exc, operation_name)
