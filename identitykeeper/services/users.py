"""
User Service.

Orchestrates user records across the identity store and the user cache:

- Cache-aside reads (``get_user`` / ``get_users``): cache first, store on
  miss, repopulate on the way out.  Store misses are never cached.
- Local signup: user row and password credential inserted in one
  transaction.
- Column-scoped mutations (``set_role`` / ``lock_user``): only the touched
  column is written, then the cache entry is evicted.  Entries are never
  updated in place; the next read repopulates them.

Architectural notes:
    - All store access goes through the repositories.
    - A cache outage is logged and skipped; it never fails a call.
    - Cache writes are last-writer-wins.  A ``get_user`` that read the
      store before a concurrent mutation committed may repopulate the
      entry after that mutation's eviction; entries do not expire, so the
      stale copy is served until the next mutation of the same user.
      Sign-in and lock checks always read the store, never the cache.
"""

from __future__ import annotations

from typing import Optional, Union

from identitykeeper.cache import UserCache
from identitykeeper.config import AppConfig
from identitykeeper.database import DatabaseManager
from identitykeeper.errors import (
    AccountLockedError,
    CacheUnavailableError,
    InvalidInputError,
    NotFoundError,
)
from identitykeeper.logger import StructuredLogger
from identitykeeper.models.credentials import LocalCredential
from identitykeeper.models.enums import Role
from identitykeeper.models.paging import PagedResults
from identitykeeper.models.user import User, current_millis
from identitykeeper.repositories.credential_repository import LocalCredentialRepository
from identitykeeper.repositories.user_repository import UserRepository
from identitykeeper.services.base_service import BaseService
from identitykeeper.utils.ids import IdGenerator
from identitykeeper.utils.security import hmac_sha256, random_string, verify_digest
from identitykeeper.utils.user_codec import decode_user, encode_user
from identitykeeper.utils.validation import (
    check_email,
    check_name,
    check_password,
    check_url,
    normalize_email,
)

_MILLIS_PER_DAY: int = 86_400_000

# Largest value a SQLite INTEGER column holds.
_SQLITE_INT_MAX: int = 2**63 - 1


class UserService(BaseService):
    """Service layer for user lookup, local signup and account mutations."""

    def __init__(
        self,
        user_repo: UserRepository,
        local_repo: LocalCredentialRepository,
        cache: UserCache,
        db: DatabaseManager,
        config: AppConfig,
        id_generator: IdGenerator,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger, id_generator)
        self._user_repo = user_repo
        self._local_repo = local_repo
        self._cache = cache
        self._db = db
        self._config = config

    # ------------------------------------------------------------------
    # Cache-aside reads
    # ------------------------------------------------------------------

    def get_user(self, user_id: str) -> Optional[User]:
        """Return the user with *user_id*, or ``None`` if the store has none."""
        cached = self._cache_lookup(user_id)
        if cached is not None:
            return cached

        user: Optional[User] = self._user_repo.get_by_id(user_id)
        if user is not None:
            self._cache_store(user)
        return user

    def get_users(self, *user_ids: str) -> dict[str, Optional[User]]:
        """Resolve several users at once.

        Returns one entry per distinct requested id, in request order.
        Every cache miss is resolved from the store independently and
        written back; ids unknown to the store map to ``None``.
        """
        try:
            payloads = self._cache.batch_get(*user_ids)
        except CacheUnavailableError as exc:
            self._logger.warning("User cache unavailable for batch lookup: %s", exc)
            payloads = dict.fromkeys(user_ids)

        resolved: dict[str, Optional[User]] = {}
        for user_id, payload in payloads.items():
            user = decode_user(payload)
            if user is None:
                user = self._user_repo.get_by_id(user_id)
                if user is not None:
                    self._cache_store(user)
            resolved[user_id] = user
        return resolved

    # ------------------------------------------------------------------
    # Store-only queries
    # ------------------------------------------------------------------

    def list_users_page(self, page_index: int = 1) -> PagedResults[User]:
        """One page of users, newest first, ``ITEMS_PER_PAGE`` per page."""
        if page_index < 1:
            raise InvalidInputError("Page index must be 1 or greater.", field="page_index")
        return self._user_repo.list_page(page_index, self._config.ITEMS_PER_PAGE)

    def fetch_user_by_email(self, email: str) -> Optional[User]:
        return self._user_repo.get_by_email(normalize_email(email))

    def fetch_local_credential_by_id(self, credential_id: str) -> Optional[LocalCredential]:
        return self._local_repo.get_by_id(credential_id)

    def fetch_local_credential_by_user_id(
        self, user_id: str, required: bool = False
    ) -> Optional[LocalCredential]:
        """Password credential of *user_id*.

        Args:
            user_id: Owner of the credential.
            required: Raise instead of returning ``None`` when absent.

        Raises:
            NotFoundError: If *required* and the user has no local credential.
        """
        credential = self._local_repo.get_by_user_id(user_id)
        if credential is None and required:
            raise NotFoundError(f"User {user_id} has no local credential.")
        return credential

    # ------------------------------------------------------------------
    # Local signup & sign-in
    # ------------------------------------------------------------------

    def create_local_user(
        self,
        email: str,
        password: str,
        name: str,
        image_url: Optional[str] = None,
    ) -> User:
        """Create a user together with its password credential.

        Both rows are inserted in one transaction; either both become
        visible or neither does.

        Raises:
            InvalidInputError: On malformed input, before any write.
            DuplicateEmailError: If *email* is already registered.
        """
        normalized_email = check_email(email, self._config.EMAIL_MAX_LENGTH)
        checked_name = check_name(name, self._config.NAME_MAX_LENGTH)
        checked_url = check_url(image_url, self._config.DEFAULT_IMAGE_URL)
        check_password(password)

        now = current_millis()
        user = User(
            id=self._ids.next_id(),
            email=normalized_email,
            name=checked_name,
            image_url=checked_url,
            role=Role.SUBSCRIBER,
            created_at=now,
            updated_at=now,
        )
        salt = random_string(self._config.SALT_LENGTH)
        credential = LocalCredential(
            id=self._ids.next_id(),
            user_id=user.id,
            salt=salt,
            passwd=hmac_sha256(password, salt),
            created_at=now,
        )

        with self._db.transaction():
            self._user_repo.insert(user)
            self._local_repo.insert(credential)

        self._logger.info("Local user created: %s (%s)", user.id, user.email)
        return user

    def authenticate_local(self, email: str, password: str) -> Optional[User]:
        """Check an email / password pair.

        Returns the user on success and ``None`` for an unknown email, an
        account without a password credential, or a wrong password.

        Raises:
            AccountLockedError: If the password is right but the account is locked.
        """
        user = self.fetch_user_by_email(email)
        if user is None:
            return None
        credential = self._local_repo.get_by_user_id(user.id)
        if credential is None:
            return None
        if not verify_digest(password, credential.salt, credential.passwd):
            self._logger.info("Local sign-in rejected for %s: bad password.", user.id)
            return None
        if user.is_locked():
            raise AccountLockedError(
                f"Account {user.id} is locked.", locked_until=user.locked_until
            )
        return user

    # ------------------------------------------------------------------
    # Column-scoped mutations
    # ------------------------------------------------------------------

    def set_role(self, user: User, role: Union[Role, str]) -> User:
        """Change *user*'s role, writing only the ``role`` column."""
        try:
            validated_role = Role(role)
        except ValueError as exc:
            raise InvalidInputError(f"Invalid role: '{role}'.", field="role") from exc
        self._apply_field(user, "role", validated_role)
        self._logger.info("Role of user %s set to %s.", user.id, validated_role)
        return user

    def lock_user(self, user: User, days: int) -> User:
        """Lock *user* for *days* days from now, writing only ``locked_until``.

        Non-positive *days* leave the account as it is (no write, no
        eviction).

        Raises:
            InvalidInputError: If the lock would end beyond what the store can hold.
        """
        if days <= 0:
            self._logger.info("lock_user(%s, %d): non-positive days, nothing to do.", user.id, days)
            return user
        locked_until = current_millis() + days * _MILLIS_PER_DAY
        if locked_until > _SQLITE_INT_MAX:
            raise InvalidInputError(f"Lock of {days} days is out of range.", field="days")
        self._apply_field(user, "locked_until", locked_until)
        self._logger.info("User %s locked until %d.", user.id, user.locked_until)
        return user

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _apply_field(self, user: User, field: str, value: object) -> None:
        """Set one field in memory, persist just that column, then evict.

        If the write fails the in-memory value is restored and the cache
        is not touched.
        """
        previous = getattr(user, field)
        setattr(user, field, value)
        try:
            with self._db.transaction():
                self._user_repo.update_fields(user, field)
        except Exception:
            setattr(user, field, previous)
            raise
        self._cache_evict(user.id)

    def _cache_lookup(self, user_id: str) -> Optional[User]:
        try:
            payload = self._cache.get(user_id)
        except CacheUnavailableError as exc:
            self._logger.warning("User cache unavailable for %s: %s", user_id, exc)
            return None
        user = decode_user(payload)
        if payload is not None and user is None:
            self._logger.info("Discarding unreadable cache entry for %s.", user_id)
        return user

    def _cache_store(self, user: User) -> None:
        try:
            self._cache.set(user.id, encode_user(user))
        except CacheUnavailableError as exc:
            self._logger.warning("Could not cache user %s: %s", user.id, exc)

    def _cache_evict(self, user_id: str) -> None:
        try:
            self._cache.delete(user_id)
        except CacheUnavailableError as exc:
            self._logger.error(
                "Could not evict user %s from cache; entry may be stale: %s", user_id, exc
            )
