"""
Federated Login Service.

Resolves a verified provider assertion to a federated credential,
creating the account on first login.

Resolution strategy:
    - Look the credential up by (provider, account id).
    - Found: refresh token and expiry in place; the user row is untouched.
    - Missing: the provider must allow account creation; then the user
      and the credential are inserted in one transaction.
    - Race: if a concurrent first login for the same account committed
      first, the unique constraint rejects our insert (rolling back our
      user row too) and we retry the lookup once.
"""

from __future__ import annotations

from typing import Optional, Union

from identitykeeper.config import AppConfig
from identitykeeper.database import DatabaseManager
from identitykeeper.errors import (
    DuplicateCredentialError,
    IdentityError,
    InvalidInputError,
    UnsupportedProviderError,
)
from identitykeeper.logger import StructuredLogger
from identitykeeper.models.credentials import FederatedAssertion, FederatedCredential
from identitykeeper.models.enums import AuthProviderType, Role
from identitykeeper.models.user import User, current_millis
from identitykeeper.repositories.credential_repository import FederatedCredentialRepository
from identitykeeper.repositories.user_repository import UserRepository
from identitykeeper.services.base_service import BaseService
from identitykeeper.utils.ids import IdGenerator
from identitykeeper.utils.validation import check_url, sanitize_name


class FederatedLoginService(BaseService):
    """Get-or-create resolution of federated logins."""

    def __init__(
        self,
        user_repo: UserRepository,
        oauth_repo: FederatedCredentialRepository,
        db: DatabaseManager,
        config: AppConfig,
        id_generator: IdGenerator,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger, id_generator)
        self._user_repo = user_repo
        self._oauth_repo = oauth_repo
        self._db = db
        self._config = config

    def resolve_federated_login(
        self,
        provider: Union[AuthProviderType, str],
        assertion: FederatedAssertion,
    ) -> FederatedCredential:
        """Return the credential for *assertion*, creating the account if needed.

        The returned credential always carries the assertion's token and
        an expiry of now + ``assertion.expires_in``.

        Raises:
            InvalidInputError: If *provider* is not a known provider.
            UnsupportedProviderError: If the account does not exist and
                *provider* does not allow account creation.
            IdentityError: If the store fails.
        """
        resolved_provider = self._resolve_provider(provider)
        try:
            return self._resolve(resolved_provider, assertion)
        except IdentityError:
            raise
        except Exception as exc:
            self._logger.error(
                "Federated login: unexpected error for %s/%s: %s",
                resolved_provider,
                assertion.account_id,
                exc,
                exc_info=True,
            )
            raise IdentityError(
                f"Unexpected error during federated login: {exc}",
                original_error=exc,
            ) from exc

    def fetch_federated_credential(
        self,
        provider: Union[AuthProviderType, str],
        auth_id: str,
    ) -> Optional[FederatedCredential]:
        return self._oauth_repo.get_by_provider(self._resolve_provider(provider), auth_id)

    def fetch_federated_credentials_for_user(self, user_id: str) -> list[FederatedCredential]:
        """Every provider link of *user_id*, oldest first."""
        return self._oauth_repo.get_by_user_id(user_id)

    # ------------------------------------------------------------------
    # Private implementation
    # ------------------------------------------------------------------

    def _resolve(
        self, provider: AuthProviderType, assertion: FederatedAssertion
    ) -> FederatedCredential:
        existing = self._oauth_repo.get_by_provider(provider, assertion.account_id)
        if existing is not None:
            return self._refresh_token(existing, assertion)

        try:
            return self._create_account(provider, assertion)
        except DuplicateCredentialError as exc:
            self._logger.warning(
                "Federated login: concurrent creation detected for %s/%s. "
                "Retrying lookup. Error: %s",
                provider,
                assertion.account_id,
                exc,
            )
            retried = self._oauth_repo.get_by_provider(provider, assertion.account_id)
            if retried is None:
                raise
            return self._refresh_token(retried, assertion)

    def _refresh_token(
        self, credential: FederatedCredential, assertion: FederatedAssertion
    ) -> FederatedCredential:
        now = current_millis()
        credential.auth_token = assertion.access_token
        credential.expires_at = now + assertion.expires_in_millis
        credential.updated_at = now
        with self._db.transaction():
            self._oauth_repo.update_fields(credential, "auth_token", "expires_at", "updated_at")
        return credential

    def _create_account(
        self, provider: AuthProviderType, assertion: FederatedAssertion
    ) -> FederatedCredential:
        """Insert a new user and its credential atomically.

        New accounts always start as ``Role.SUBSCRIBER`` with a synthetic
        ``{id}@{provider}`` email; providers are not trusted to supply one.
        """
        if not provider.supports_federated_auth:
            raise UnsupportedProviderError(
                f"Provider {provider} does not allow account creation."
            )

        now = current_millis()
        user_id = self._ids.next_id()
        user = User(
            id=user_id,
            email=f"{user_id}@{provider.value.lower()}",
            name=sanitize_name(
                assertion.name,
                fallback=assertion.account_id,
                max_length=self._config.NAME_MAX_LENGTH,
            ),
            image_url=self._safe_image_url(assertion.image_url),
            role=Role.SUBSCRIBER,
            created_at=now,
            updated_at=now,
        )
        credential = FederatedCredential(
            id=self._ids.next_id(),
            user_id=user_id,
            auth_provider_type=provider,
            auth_id=assertion.account_id,
            auth_token=assertion.access_token,
            expires_at=now + assertion.expires_in_millis,
            created_at=now,
            updated_at=now,
        )

        with self._db.transaction():
            self._user_repo.insert(user)
            self._oauth_repo.insert(credential)

        self._logger.info(
            "Federated login: created user %s for %s/%s",
            user_id,
            provider,
            assertion.account_id,
        )
        return credential

    def _safe_image_url(self, image_url: Optional[str]) -> str:
        try:
            return check_url(image_url, self._config.DEFAULT_IMAGE_URL)
        except InvalidInputError:
            self._logger.info("Federated login: ignoring invalid avatar URL.")
            return self._config.DEFAULT_IMAGE_URL

    @staticmethod
    def _resolve_provider(provider: Union[AuthProviderType, str]) -> AuthProviderType:
        try:
            return AuthProviderType(provider)
        except ValueError as exc:
            raise InvalidInputError(
                f"Unknown provider: '{provider}'.", field="provider"
            ) from exc
