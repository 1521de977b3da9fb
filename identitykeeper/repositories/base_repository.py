"""
Base Repository.

Provides shared infrastructure for all identity-store repositories:
- DatabaseManager and logger references
- Locked read helpers returning pydantic models
- Write helpers that commit immediately outside a transaction and defer
  to the enclosing :meth:`DatabaseManager.transaction` inside one
- Translation of ``sqlite3`` errors into the identity error taxonomy
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import ClassVar, Generator, Generic, Optional, Sequence, TypeVar

from pydantic import BaseModel

from identitykeeper.database import DatabaseManager
from identitykeeper.errors import IdentityError, NotFoundError, StoreUnavailableError
from identitykeeper.logger import StructuredLogger

M = TypeVar("M", bound=BaseModel)

SqlParams = Sequence[object]


class BaseRepository(Generic[M]):
    """Base class for all repositories. Receives dependencies via __init__.

    Subclasses set ``TABLE`` and ``MODEL``; column names equal the model's
    field names.
    """

    TABLE: ClassVar[str] = ""
    MODEL: ClassVar[type[BaseModel]]

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Returns the shared SQLite connection."""
        return self._db.sqlite

    # ------------------------------------------------------------------
    # Generic operations
    # ------------------------------------------------------------------

    def get_by_id(self, entity_id: str) -> Optional[M]:
        """Fetch a row by primary key, or ``None``."""
        return self._fetch_model(
            f"SELECT * FROM {self.TABLE} WHERE id = ?",
            (entity_id,),
            operation_name=f"get_by_id ({self.TABLE})",
        )

    def insert(self, entity: M) -> M:
        """Insert every field of *entity* as one row."""
        data = entity.model_dump(mode="json")
        columns = ", ".join(data)
        placeholders = ", ".join("?" for _ in data)
        self._execute_write(
            f"INSERT INTO {self.TABLE} ({columns}) VALUES ({placeholders})",
            tuple(data.values()),
            operation_name=f"insert ({self.TABLE})",
        )
        return entity

    def update_fields(self, entity: M, *fields: str) -> None:
        """Persist only the named *fields* of *entity*.

        Other columns of the row are left as they are in the store, so
        concurrent updates to unrelated columns are never clobbered.

        Raises:
            ValueError: If no field is given or a name is not a model field.
            NotFoundError: If no row has ``entity.id``.
        """
        if not fields:
            raise ValueError("update_fields requires at least one field name")
        unknown = [f for f in fields if f not in type(entity).model_fields or f == "id"]
        if unknown:
            raise ValueError(f"Not updatable on {self.TABLE}: {', '.join(unknown)}")

        data = entity.model_dump(mode="json", include=set(fields))
        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = tuple(data[name] for name in fields) + (getattr(entity, "id"),)
        rowcount = self._execute_write(
            f"UPDATE {self.TABLE} SET {assignments} WHERE id = ?",
            params,
            operation_name=f"update_fields ({self.TABLE}: {', '.join(fields)})",
        )
        if rowcount == 0:
            raise NotFoundError(f"{self.TABLE} row {getattr(entity, 'id')} does not exist")

    def count(self) -> int:
        with self._guard(f"count ({self.TABLE})"), self._db.lock:
            row = self.sqlite.execute(f"SELECT COUNT(*) FROM {self.TABLE}").fetchone()
        return int(row[0]) if row else 0

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _fetch_model(
        self, sql: str, params: SqlParams, *, operation_name: str
    ) -> Optional[M]:
        with self._guard(operation_name), self._db.lock:
            row = self.sqlite.execute(sql, tuple(params)).fetchone()
        return self._to_model(row) if row else None

    def _fetch_models(
        self, sql: str, params: SqlParams, *, operation_name: str
    ) -> list[M]:
        with self._guard(operation_name), self._db.lock:
            rows = self.sqlite.execute(sql, tuple(params)).fetchall()
        return [self._to_model(row) for row in rows]

    def _execute_write(
        self, sql: str, params: SqlParams, *, operation_name: str
    ) -> int:
        """Run one write statement and return its rowcount.

        Outside a transaction the statement is committed (or rolled back
        on failure) immediately.
        """
        with self._guard(operation_name), self._db.lock:
            try:
                cursor = self.sqlite.execute(sql, tuple(params))
            except sqlite3.Error:
                if not self._db.in_transaction:
                    self.sqlite.rollback()
                raise
            self._commit()
            return cursor.rowcount

    def _commit(self) -> None:
        """Commit unless a :meth:`DatabaseManager.transaction` scope is active."""
        if not self._db.in_transaction:
            self.sqlite.commit()

    def _to_model(self, row: sqlite3.Row) -> M:
        return self.MODEL.model_validate(dict(row))  # type: ignore[return-value]

    def _integrity_error(self, exc: sqlite3.IntegrityError, operation_name: str) -> IdentityError:
        """Map a constraint violation to a domain error.  Subclasses refine this."""
        return IdentityError(
            f"Constraint violation during {operation_name}: {exc}", original_error=exc
        )

    @contextmanager
    def _guard(self, operation_name: str) -> Generator[None, None, None]:
        """Translate ``sqlite3`` failures raised inside the block."""
        try:
            yield
        except sqlite3.IntegrityError as exc:
            self._logger.info("Constraint violation during %s: %s", operation_name, exc)
            raise self._integrity_error(exc, operation_name) from exc
        except sqlite3.Error as exc:
            self._logger.error("Store failure during %s: %s", operation_name, exc)
            raise StoreUnavailableError(
                f"Identity store unavailable during {operation_name}: {exc}",
                original_error=exc,
            ) from exc
