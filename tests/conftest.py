"""
Pytest config.

Every test gets a fresh temp-file SQLite store with the schema applied,
an in-memory stand-in for the Redis hash commands the user cache issues,
and services wired through ``create_services``.
"""

from __future__ import annotations

import os
import sys
from collections import Counter
from datetime import timedelta
from pathlib import Path
from typing import Callable, Iterator, Optional

import pytest
import redis

# Console-only logging for the test run; read by StructuredLogger via AppConfig.
os.environ["LOG_FILE"] = ""


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from identitykeeper.cache import UserCache  # noqa: E402
from identitykeeper.config import AppConfig, reset_config  # noqa: E402
from identitykeeper.database import DatabaseManager  # noqa: E402
from identitykeeper.logger import StructuredLogger  # noqa: E402
from identitykeeper.models.credentials import FederatedAssertion  # noqa: E402
from identitykeeper.repositories import (  # noqa: E402
    FederatedCredentialRepository,
    LocalCredentialRepository,
    UserRepository,
)
from identitykeeper.schema import initialize_schema  # noqa: E402
from identitykeeper.services import ServiceContainer, create_services  # noqa: E402
from identitykeeper.services.federated_login import FederatedLoginService  # noqa: E402
from identitykeeper.services.users import UserService  # noqa: E402


class FakeRedis:
    """Hash subset of ``redis.Redis`` (decode_responses=True) held in memory.

    Add command names (``"hget"``, ``"hmget"``, ``"hset"``, ``"hdel"``) or
    ``"*"`` to ``fail_on`` to make them raise ``redis.ConnectionError``.
    """

    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.calls: Counter[str] = Counter()
        self.fail_on: set[str] = set()

    def _record(self, command: str) -> None:
        self.calls[command] += 1
        if command in self.fail_on or "*" in self.fail_on:
            raise redis.ConnectionError(f"{command}: connection refused")

    def hget(self, name: str, key: str) -> Optional[str]:
        self._record("hget")
        return self.hashes.get(name, {}).get(key)

    def hmget(self, name: str, keys: list[str]) -> list[Optional[str]]:
        self._record("hmget")
        bucket = self.hashes.get(name, {})
        return [bucket.get(key) for key in keys]

    def hset(self, name: str, key: str, value: str) -> int:
        self._record("hset")
        bucket = self.hashes.setdefault(name, {})
        is_new = key not in bucket
        bucket[key] = value
        return int(is_new)

    def hdel(self, name: str, *keys: str) -> int:
        self._record("hdel")
        bucket = self.hashes.get(name, {})
        return sum(1 for key in keys if bucket.pop(key, None) is not None)


@pytest.fixture(autouse=True)
def _fresh_config_singleton() -> Iterator[None]:
    yield
    reset_config()


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        SQLITE_PATH=str(tmp_path / "identity.db"),
        LOG_FILE="",
        ITEMS_PER_PAGE=3,
    )


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger(name="identitykeeper.tests", log_file="")


@pytest.fixture
def db(config: AppConfig, logger: StructuredLogger) -> Iterator[DatabaseManager]:
    manager = DatabaseManager(sqlite_path=config.SQLITE_PATH, logger=logger)
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis, config: AppConfig, logger: StructuredLogger) -> UserCache:
    return UserCache(client=fake_redis, namespace=config.USER_CACHE_KEY, logger=logger)  # type: ignore[arg-type]


@pytest.fixture
def services(
    db: DatabaseManager, cache: UserCache, config: AppConfig, logger: StructuredLogger
) -> ServiceContainer:
    return create_services(db=db, cache=cache, config=config, logger=logger)


@pytest.fixture
def user_service(services: ServiceContainer) -> UserService:
    return services["user_service"]


@pytest.fixture
def federated_service(services: ServiceContainer) -> FederatedLoginService:
    return services["federated_login_service"]


@pytest.fixture
def user_repo(db: DatabaseManager, logger: StructuredLogger) -> UserRepository:
    return UserRepository(db=db, logger=logger)


@pytest.fixture
def local_repo(db: DatabaseManager, logger: StructuredLogger) -> LocalCredentialRepository:
    return LocalCredentialRepository(db=db, logger=logger)


@pytest.fixture
def oauth_repo(db: DatabaseManager, logger: StructuredLogger) -> FederatedCredentialRepository:
    return FederatedCredentialRepository(db=db, logger=logger)


def make_assertion(
    account_id: str = "gh-1001",
    token: str = "token-1",
    seconds: int = 3600,
    name: str = "Octo Cat",
    image_url: Optional[str] = "https://avatars.example.com/u/1001",
) -> FederatedAssertion:
    return FederatedAssertion(
        account_id=account_id,
        name=name,
        image_url=image_url,
        access_token=token,
        expires_in=timedelta(seconds=seconds),
    )


@pytest.fixture
def assertion() -> Callable[..., FederatedAssertion]:
    """Factory for provider assertions; keyword arguments as ``make_assertion``."""
    return make_assertion
