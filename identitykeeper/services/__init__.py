"""
Business Logic Services Package.

Contains the identity orchestration services.  Services depend on the
Repository layer for store access and on ``UserCache`` for the
cache-aside path.

The ``create_services()`` factory wires every repository and service together,
returning a typed dict that callers can consume without knowing the
internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from identitykeeper.cache import UserCache
from identitykeeper.config import AppConfig
from identitykeeper.database import DatabaseManager
from identitykeeper.logger import StructuredLogger, get_logger
from identitykeeper.repositories.credential_repository import (
    FederatedCredentialRepository,
    LocalCredentialRepository,
)
from identitykeeper.repositories.user_repository import UserRepository
from identitykeeper.services.federated_login import FederatedLoginService
from identitykeeper.services.users import UserService
from identitykeeper.utils.ids import IdGenerator


class ServiceContainer(TypedDict):
    """Typed container for all identity services."""

    user_service: UserService
    federated_login_service: FederatedLoginService


def create_services(
    db: DatabaseManager,
    cache: UserCache,
    config: AppConfig,
    id_generator: Optional[IdGenerator] = None,
    logger: Optional[StructuredLogger] = None,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the service layer.  Both
    services share one ``IdGenerator`` so ids stay unique per process.

    Args:
        db: Initialised DatabaseManager with the schema in place.
        cache: User cache over the configured Redis hash.
        config: Application configuration.
        id_generator: Id source; a fresh ``IdGenerator`` when omitted.
        logger: Logger shared by repositories and services.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = logger or get_logger("identitykeeper.services")
    ids = id_generator or IdGenerator()

    # ------------------------------------------------------------------
    # 1. Repositories (data-access layer)
    # ------------------------------------------------------------------
    user_repo = UserRepository(db=db, logger=logger)
    local_repo = LocalCredentialRepository(db=db, logger=logger)
    oauth_repo = FederatedCredentialRepository(db=db, logger=logger)

    # ------------------------------------------------------------------
    # 2. Services
    # ------------------------------------------------------------------
    user_service = UserService(
        user_repo=user_repo,
        local_repo=local_repo,
        cache=cache,
        db=db,
        config=config,
        id_generator=ids,
        logger=logger,
    )
    federated_login_service = FederatedLoginService(
        user_repo=user_repo,
        oauth_repo=oauth_repo,
        db=db,
        config=config,
        id_generator=ids,
        logger=logger,
    )

    return ServiceContainer(
        user_service=user_service,
        federated_login_service=federated_login_service,
    )
