"""
Centralized SQLite Schema Initialization.

Defines the canonical identity-store schema and a single entry-point,
:func:`initialize_schema`, that creates it idempotently.  A single-row
``schema_version`` table records the applied version so later changes
can be rolled forward without touching existing rows.

Tables
~~~~~~
- ``users``: identity records; ``email`` is UNIQUE.
- ``local_auths``: password credential, one per user (UNIQUE ``user_id``).
- ``oauths``: federated credential; UNIQUE (``auth_provider_type``, ``auth_id``).

Both credential tables reference ``users(id)``; the connection enables
``PRAGMA foreign_keys`` so an orphaned credential can never be written.

Usage::

    from identitykeeper.schema import initialize_schema

    initialize_schema(db.sqlite, logger)
"""

from __future__ import annotations

import sqlite3

from identitykeeper.logger import StructuredLogger

__all__ = ["CURRENT_SCHEMA_VERSION", "initialize_schema"]

CURRENT_SCHEMA_VERSION: int = 1

_TABLE_DEFINITIONS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        image_url TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'SUBSCRIBER'
             CHECK (role IN ('ADMIN', 'EDITOR', 'CONTRIBUTOR', 'SPONSOR', 'SUBSCRIBER')),
        locked_until INTEGER NOT NULL DEFAULT 0,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS local_auths (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE REFERENCES users(id),
        salt TEXT NOT NULL,
        passwd TEXT NOT NULL,
        created_at INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS oauths (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id),
        auth_provider_type TEXT NOT NULL,
        auth_id TEXT NOT NULL,
        auth_token TEXT NOT NULL,
        expires_at INTEGER NOT NULL,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL,
        UNIQUE (auth_provider_type, auth_id)
    )
    """,
]

_INDEX_DEFINITIONS: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_oauths_user_id ON oauths(user_id)",
]


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            version INTEGER NOT NULL,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.commit()


def _get_schema_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    return int(row[0]) if row else 0


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(
        """
        INSERT INTO schema_version (id, version) VALUES (1, ?)
        ON CONFLICT(id) DO UPDATE SET
            version = excluded.version,
            applied_at = CURRENT_TIMESTAMP
        """,
        (version,),
    )


def _create_all_tables(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Create every table and index.  Does **not** commit."""
    for ddl in _TABLE_DEFINITIONS:
        conn.execute(ddl)
    for ddl in _INDEX_DEFINITIONS:
        conn.execute(ddl)
    logger.info(
        "Created %d tables and %d indexes.",
        len(_TABLE_DEFINITIONS),
        len(_INDEX_DEFINITIONS),
    )


def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Ensure the identity database matches :data:`CURRENT_SCHEMA_VERSION`.

    Safe to call on every startup.  The upgrade (DDL + version bump) runs
    in one transaction; on failure it is rolled back and re-raised, so the
    stored version never advances past a half-applied schema.

    Raises:
        RuntimeError: If the database was created by a newer release.
    """
    _ensure_version_table(conn)
    current: int = _get_schema_version(conn)

    if current == CURRENT_SCHEMA_VERSION:
        logger.info("Schema is up to date (version %d).", current)
        return
    if current > CURRENT_SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current} is newer than supported "
            f"version {CURRENT_SCHEMA_VERSION}."
        )

    logger.info(
        "Upgrading schema from version %d to %d.", current, CURRENT_SCHEMA_VERSION
    )
    try:
        _create_all_tables(conn, logger)
        _set_schema_version(conn, CURRENT_SCHEMA_VERSION)
        conn.commit()
    except Exception:
        conn.rollback()
        logger.error("Schema initialisation failed; rolled back to version %d.", current)
        raise

    logger.info("Schema initialised at version %d.", CURRENT_SCHEMA_VERSION)
