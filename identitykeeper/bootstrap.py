"""
IdentityKeeper Bootstrap.

Builds the whole dependency graph via constructor injection: opens the
SQLite store, initialises its schema, connects the Redis user cache and
wires the services.  Every subsystem is created here; no module-level
globals.

Usage::

    from identitykeeper.bootstrap import bootstrap

    app = bootstrap()
    user = app.services["user_service"].get_user(user_id)
"""

from __future__ import annotations

import atexit
from dataclasses import dataclass
from typing import Optional

from identitykeeper.cache import UserCache, create_redis_client
from identitykeeper.config import AppConfig, get_config
from identitykeeper.database import DatabaseManager
from identitykeeper.logger import StructuredLogger, get_logger
from identitykeeper.schema import initialize_schema
from identitykeeper.services import ServiceContainer, create_services


@dataclass
class IdentityApp:
    """Handles to the wired subsystems, for callers that need more than services."""

    config: AppConfig
    db: DatabaseManager
    cache: UserCache
    services: ServiceContainer

    def close(self) -> None:
        self.db.close()


def bootstrap(config: Optional[AppConfig] = None) -> IdentityApp:
    """Wire every dependency and return the running application."""
    config = config or get_config()
    logger: StructuredLogger = get_logger("identitykeeper.bootstrap")
    logger.info("Starting IdentityKeeper...")

    # ------------------------------------------------------------------
    # 1. Identity store
    # ------------------------------------------------------------------
    db = DatabaseManager(
        sqlite_path=config.SQLITE_PATH,
        logger=StructuredLogger(name="identitykeeper.database"),
    )
    # close() is idempotent.
    atexit.register(db.close)

    # ------------------------------------------------------------------
    # 2. Schema (idempotent)
    # ------------------------------------------------------------------
    initialize_schema(db.sqlite, StructuredLogger(name="identitykeeper.schema"))

    # ------------------------------------------------------------------
    # 3. User cache (connection is lazy; outages degrade to store-only)
    # ------------------------------------------------------------------
    cache = UserCache(
        client=create_redis_client(config.REDIS_URL, config.REDIS_SOCKET_TIMEOUT_S),
        namespace=config.USER_CACHE_KEY,
        logger=StructuredLogger(name="identitykeeper.cache"),
    )

    # ------------------------------------------------------------------
    # 4. Service container (single composition root)
    # ------------------------------------------------------------------
    services = create_services(db=db, cache=cache, config=config)

    logger.info("IdentityKeeper ready (store=%s, cache=%s).", config.SQLITE_PATH, config.USER_CACHE_KEY)
    return IdentityApp(config=config, db=db, cache=cache, services=services)
