"""
User Cache.

A Redis hash holds one field per user under a fixed namespace key
(``AppConfig.USER_CACHE_KEY``).  Values are opaque strings; encoding
lives in :mod:`identitykeeper.utils.user_codec`.

Every Redis failure is re-raised as
:class:`~identitykeeper.errors.CacheUnavailableError` so callers can
degrade to store-only operation with a single ``except`` clause.

Usage::

    client = create_redis_client(config.REDIS_URL, config.REDIS_SOCKET_TIMEOUT_S)
    cache = UserCache(client=client, namespace=config.USER_CACHE_KEY, logger=logger)
    cache.set(user.id, encode_user(user))
"""

from __future__ import annotations

from typing import Optional

import redis

from identitykeeper.errors import CacheUnavailableError
from identitykeeper.logger import StructuredLogger

__all__ = ["UserCache", "create_redis_client"]


def create_redis_client(url: str, socket_timeout: Optional[float] = None) -> redis.Redis:
    """Build a Redis client returning ``str`` values.

    The connection is lazy; an unreachable server surfaces on first use.
    """
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
    )


class UserCache:
    """Hash-structured user cache: ``namespace -> {user_id: payload}``.

    Parameters
    ----------
    client:
        A ``redis.Redis`` (or API-compatible) client created with
        ``decode_responses=True``.
    namespace:
        The hash key all user entries live under.
    logger:
        A ``StructuredLogger`` for debug-level cache traffic.
    """

    def __init__(
        self,
        client: redis.Redis,
        namespace: str,
        logger: StructuredLogger,
    ) -> None:
        self._client: redis.Redis = client
        self._namespace: str = namespace
        self._logger: StructuredLogger = logger

    @property
    def namespace(self) -> str:
        return self._namespace

    def batch_get(self, *sub_keys: str) -> dict[str, Optional[str]]:
        """Fetch several entries in one round trip.

        Returns a mapping with one item per distinct requested key, in
        request order; ``None`` marks a miss.
        """
        keys: list[str] = list(dict.fromkeys(sub_keys))
        if not keys:
            return {}
        try:
            values = self._client.hmget(self._namespace, keys)
        except redis.RedisError as exc:
            raise CacheUnavailableError(
                f"HMGET {self._namespace} failed: {exc}", original_error=exc
            ) from exc
        return dict(zip(keys, values))

    def get(self, sub_key: str) -> Optional[str]:
        try:
            return self._client.hget(self._namespace, sub_key)
        except redis.RedisError as exc:
            raise CacheUnavailableError(
                f"HGET {self._namespace} {sub_key} failed: {exc}", original_error=exc
            ) from exc

    def set(self, sub_key: str, value: str) -> None:
        try:
            self._client.hset(self._namespace, sub_key, value)
        except redis.RedisError as exc:
            raise CacheUnavailableError(
                f"HSET {self._namespace} {sub_key} failed: {exc}", original_error=exc
            ) from exc
        self._logger.debug("Cached %s/%s", self._namespace, sub_key)

    def delete(self, sub_key: str) -> None:
        try:
            self._client.hdel(self._namespace, sub_key)
        except redis.RedisError as exc:
            raise CacheUnavailableError(
                f"HDEL {self._namespace} {sub_key} failed: {exc}", original_error=exc
            ) from exc
        self._logger.debug("Evicted %s/%s", self._namespace, sub_key)
