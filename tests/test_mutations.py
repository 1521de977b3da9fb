from __future__ import annotations

import logging
from typing import Iterator

import pytest

from identitykeeper.errors import AccountLockedError, InvalidInputError, NotFoundError
from identitykeeper.models.enums import Role
from identitykeeper.models.user import User, current_millis
from identitykeeper.utils.user_codec import encode_user

_DAY_MS = 86_400_000


@pytest.fixture
def user(user_service) -> User:
    return user_service.create_local_user(email="m@example.com", password="pw", name="Mutable")


@pytest.fixture
def sql_trace(db) -> Iterator[list[str]]:
    statements: list[str] = []
    db.sqlite.set_trace_callback(statements.append)
    yield statements
    db.sqlite.set_trace_callback(None)


def _updates(statements: list[str]) -> list[str]:
    return [s for s in statements if s.lstrip().upper().startswith("UPDATE")]


def test_set_role_writes_only_the_role_column(user_service, user, sql_trace) -> None:
    user_service.set_role(user, Role.EDITOR)

    updates = _updates(sql_trace)
    assert len(updates) == 1
    set_clause = updates[0].split("WHERE")[0]
    assert "role" in set_clause
    for other in ("email", "name", "image_url", "locked_until", "updated_at"):
        assert other not in set_clause


def test_lock_user_writes_only_locked_until(user_service, user, sql_trace) -> None:
    user_service.lock_user(user, days=3)

    updates = _updates(sql_trace)
    assert len(updates) == 1
    set_clause = updates[0].split("WHERE")[0]
    assert "locked_until" in set_clause
    assert "role" not in set_clause


def test_set_role_persists_and_accepts_strings(user_service, user, user_repo) -> None:
    returned = user_service.set_role(user, "ADMIN")

    assert returned is user
    assert user.role is Role.ADMIN
    assert user_repo.get_by_id(user.id).role is Role.ADMIN


def test_invalid_role_is_rejected(user_service, user, user_repo) -> None:
    with pytest.raises(InvalidInputError):
        user_service.set_role(user, "OVERLORD")
    assert user_repo.get_by_id(user.id).role is Role.SUBSCRIBER


def test_lock_user_sets_expiry_days_from_now(user_service, user, user_repo) -> None:
    before = current_millis()
    user_service.lock_user(user, days=2)
    after = current_millis()

    assert before + 2 * _DAY_MS <= user.locked_until <= after + 2 * _DAY_MS
    stored = user_repo.get_by_id(user.id)
    assert stored.locked_until == user.locked_until
    assert stored.is_locked()
    assert not stored.is_locked(now_ms=stored.locked_until)


@pytest.mark.parametrize("days", [0, -5])
def test_non_positive_lock_is_a_no_op(user_service, user, fake_redis, config, sql_trace, days) -> None:
    user_service.get_user(user.id)

    user_service.lock_user(user, days=days)

    assert user.locked_until == 0
    assert _updates(sql_trace) == []
    assert user.id in fake_redis.hashes[config.USER_CACHE_KEY]
    assert fake_redis.calls["hdel"] == 0


def test_mutations_on_stale_copies_do_not_clobber_each_other(user_service, user, user_repo) -> None:
    stale_copy = user_repo.get_by_id(user.id)
    user_service.lock_user(user, days=1)

    user_service.set_role(stale_copy, Role.CONTRIBUTOR)

    stored = user_repo.get_by_id(user.id)
    assert stored.role is Role.CONTRIBUTOR
    assert stored.locked_until == user.locked_until


def test_mutation_evicts_cache_entry(user_service, user, fake_redis, config) -> None:
    user_service.get_user(user.id)
    assert user.id in fake_redis.hashes[config.USER_CACHE_KEY]

    user_service.set_role(user, Role.SPONSOR)

    assert user.id not in fake_redis.hashes[config.USER_CACHE_KEY]
    assert user_service.get_user(user.id).role is Role.SPONSOR
    assert user.id in fake_redis.hashes[config.USER_CACHE_KEY]


def test_failed_write_restores_field_and_keeps_cache(user_service, fake_redis, config) -> None:
    ghost = User(id="ghost", email="ghost@example.com", name="Ghost", image_url="/g.png")
    bucket = fake_redis.hashes.setdefault(config.USER_CACHE_KEY, {})
    bucket[ghost.id] = encode_user(ghost)

    with pytest.raises(NotFoundError):
        user_service.set_role(ghost, Role.ADMIN)

    assert ghost.role is Role.SUBSCRIBER
    assert ghost.id in bucket
    assert fake_redis.calls["hdel"] == 0


def test_eviction_failure_is_logged_not_raised(user_service, user, user_repo, fake_redis, caplog) -> None:
    fake_redis.fail_on.add("hdel")

    with caplog.at_level(logging.ERROR):
        user_service.set_role(user, Role.EDITOR)

    assert user_repo.get_by_id(user.id).role is Role.EDITOR
    assert any("evict" in r.getMessage() for r in caplog.records)


def test_lock_beyond_store_range_is_rejected(user_service, user, user_repo, sql_trace) -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        user_service.lock_user(user, days=10**12)

    assert excinfo.value.field == "days"
    assert user.locked_until == 0
    assert _updates(sql_trace) == []
    assert user_repo.get_by_id(user.id).locked_until == 0


def test_stale_cache_entry_does_not_bypass_lock_check(user_service, user, fake_redis, config) -> None:
    unlocked = encode_user(user)
    user_service.lock_user(user, days=1)
    # A lookup that read the store before the lock committed writes back late.
    fake_redis.hashes.setdefault(config.USER_CACHE_KEY, {})[user.id] = unlocked

    assert not user_service.get_user(user.id).is_locked()
    with pytest.raises(AccountLockedError):
        user_service.authenticate_local("m@example.com", "pw")

    user_service.set_role(user, Role.EDITOR)
    assert user_service.get_user(user.id).is_locked()
