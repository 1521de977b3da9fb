"""
Database Abstraction Layer.

Owns the single SQLite connection that backs the identity store and the
transaction scope every multi-row write runs in.  Query logic lives in
the repositories; this module only manages the connection, its lock,
and commit / rollback.

Usage (dependency injection at startup)::

    from identitykeeper.database import DatabaseManager
    from identitykeeper.logger import StructuredLogger

    db = DatabaseManager(
        sqlite_path=Path(config.SQLITE_PATH),
        logger=StructuredLogger(name="identitykeeper.database"),
    )
    with db.transaction():
        user_repo.insert(user)
        local_repo.insert(credential)
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Union

from identitykeeper.logger import StructuredLogger


class DatabaseManager:
    """Manages the SQLite connection used as the authoritative identity store.

    The connection is shared across threads (``check_same_thread=False``)
    and every access goes through :pyattr:`lock`, a re-entrant lock, so
    a transaction opened by one caller is never interleaved with another
    caller's statements.

    Parameters
    ----------
    sqlite_path:
        Filesystem path for the database file, or ``":memory:"``.
        Parent directories must already exist.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        sqlite_path: Union[Path, str],
        logger: StructuredLogger,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._lock: threading.RLock = threading.RLock()
        self._tx_owner: Optional[int] = None
        self._closed: bool = False
        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(sqlite_path)

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Return the initialised SQLite connection."""
        return self._sqlite_conn

    @property
    def lock(self) -> threading.RLock:
        """Return the lock guarding every statement on the shared connection::

            with db.lock:
                row = db.sqlite.execute("SELECT ...").fetchone()
        """
        return self._lock

    @property
    def in_transaction(self) -> bool:
        """``True`` when the calling thread is inside :meth:`transaction`.

        Repositories check this before issuing ``commit()`` so that the
        enclosing scope decides the outcome of every write.
        """
        return self._tx_owner == threading.get_ident()

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Scoped transaction: commit on normal exit, roll back on any exception.

        The connection lock is held for the whole scope.  Nested scopes
        join the outermost one; only the outermost exit commits or rolls
        back.

        Example::

            with db.transaction():
                users.insert(user)
                oauths.insert(credential)  # failure here also undoes the user row
        """
        with self._lock:
            if self._tx_owner is not None:
                # Re-entrant: the outer scope owns commit / rollback.
                yield
                return

            self._tx_owner = threading.get_ident()
            try:
                yield
                self._sqlite_conn.commit()
                self._logger.debug("Transaction committed.")
            except BaseException:
                self._sqlite_conn.rollback()
                self._logger.warning("Transaction rolled back due to exception.")
                raise
            finally:
                self._tx_owner = None

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the SQLite connection.  Safe to call multiple times."""
        with self._lock:
            if self._closed:
                return
            try:
                self._sqlite_conn.close()
                self._logger.info("SQLite connection closed.")
            except sqlite3.ProgrammingError:
                pass
            self._closed = True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect_sqlite(self, path: Union[Path, str]) -> sqlite3.Connection:
        """Open (or create) the database and enable foreign keys.

        Raises
        ------
        PermissionError
            If the OS denies access to the database file or its directory.
        """
        try:
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if str(path) != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA foreign_keys = ON;")
            self._logger.info("SQLite database opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the identity database at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
