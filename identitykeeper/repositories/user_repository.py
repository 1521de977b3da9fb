"""
User Repository.

Handles all access to the ``users`` table.  Users are never hard-deleted;
the only mutations are whole-row inserts and column-scoped updates.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from identitykeeper.database import DatabaseManager
from identitykeeper.errors import DuplicateEmailError, IdentityError
from identitykeeper.logger import StructuredLogger
from identitykeeper.models.paging import Page, PagedResults
from identitykeeper.models.user import User
from identitykeeper.repositories.base_repository import BaseRepository
from identitykeeper.utils.validation import normalize_email


class UserRepository(BaseRepository[User]):
    """Data access layer for User entities.

    **No ``delete()`` method.**  Credentials reference users by id and a
    removed row would orphan them; locking an account is done through
    ``locked_until`` instead.
    """

    TABLE = "users"
    MODEL = User

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    def get_by_email(self, email: str) -> Optional[User]:
        """Fetch a user by email address (case-insensitive)."""
        return self._fetch_model(
            f"SELECT * FROM {self.TABLE} WHERE email = ?",
            (normalize_email(email),),
            operation_name="get_by_email (users)",
        )

    def list_page(self, page_index: int, items_per_page: int) -> PagedResults[User]:
        """Return one page of users, newest id first.

        Count and page are read under one lock acquisition so the page
        metadata matches the rows returned.
        """
        with self._db.lock:
            page = Page(
                page_index=page_index,
                items_per_page=items_per_page,
                total_items=self.count(),
            )
            results: list[User] = []
            if page.offset < page.total_items:
                results = self._fetch_models(
                    f"SELECT * FROM {self.TABLE} ORDER BY id DESC LIMIT ? OFFSET ?",
                    (page.items_per_page, page.offset),
                    operation_name="list_page (users)",
                )
        return PagedResults[User](page=page, results=results)

    def _integrity_error(self, exc: sqlite3.IntegrityError, operation_name: str) -> IdentityError:
        if "users.email" in str(exc):
            return DuplicateEmailError("Email address is already registered.", original_error=exc)
        return super()._integrity_error(exc, operation_name)
