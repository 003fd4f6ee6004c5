"""Per-account token persistence and refresh on top of a SecureStore.

Tokens are stored as JSON (``Token.model_dump_json()``) under the ``token``
key and granted scopes as a JSON list under the ``scopes`` key, so a token can
exist without recorded scopes.
"""

from __future__ import annotations

import json
import logging

import pydantic

from goog_auth.auth.models import Token, TokenInfo
from goog_auth.auth.oauth import OAuthProvider, TokenSource
from goog_auth.config import OAuthSettings
from goog_auth.storage.base import KEY_SCOPES, KEY_TOKEN, SecureStore
from goog_auth.utils.errors import (
    KeyNotFoundError,
    ScopesNotSetError,
    StoreReadError,
    TokenNotFoundError,
)

logger = logging.getLogger(__name__)


class TokenManager:
    """Saves, loads, refreshes and deletes OAuth tokens per account.

    Attributes:
        store: Backing secure store.

    Example:
        >>> manager = TokenManager(open_store())
        >>> manager.save_token("work", token)
        >>> manager.load_token("work").access_token
        'ya29...'
    """

    def __init__(
        self, store: SecureStore, settings: OAuthSettings | None = None
    ) -> None:
        """Initialize the manager.

        Args:
            store: Secure store holding the token and scope records.
            settings: Client settings used to build refreshing token
                sources. Defaults to ``OAuthSettings.from_env()`` when first
                needed.
        """
        self.store = store
        self._settings = settings

    @property
    def settings(self) -> OAuthSettings:
        if self._settings is None:
            self._settings = OAuthSettings.from_env()
        return self._settings

    # =========================================================================
    # Tokens
    # =========================================================================

    def save_token(self, account: str, token: Token) -> None:
        """Persist ``token`` for ``account``, replacing any previous one."""
        self.store.set(account, KEY_TOKEN, token.model_dump_json().encode("utf-8"))
        logger.debug("Saved token for account %s", account)

    def load_token(self, account: str) -> Token:
        """Load the stored token for ``account``.

        Raises:
            TokenNotFoundError: If no token is stored.
            StoreReadError: If the store or the stored record cannot be read.
        """
        try:
            data = self.store.get(account, KEY_TOKEN)
        except KeyNotFoundError as e:
            raise TokenNotFoundError(
                f"No token found for account '{account}'",
                details={"account": account},
            ) from e

        try:
            return Token.model_validate_json(data)
        except pydantic.ValidationError as e:
            raise StoreReadError(
                f"Stored token for account '{account}' is corrupted",
                details={"account": account, "operation": "load_token"},
            ) from e

    def delete_token(self, account: str) -> None:
        """Remove the token and granted scopes for ``account``.

        Deleting an account that has nothing stored is not an error.
        """
        self.store.delete(account, KEY_TOKEN)
        self.store.delete(account, KEY_SCOPES)
        logger.debug("Deleted token and scopes for account %s", account)

    # =========================================================================
    # Scopes
    # =========================================================================

    def save_scopes(self, account: str, scopes: list[str]) -> None:
        """Record the scopes granted to ``account``, preserving their order."""
        self.store.set(account, KEY_SCOPES, json.dumps(list(scopes)).encode("utf-8"))

    def get_granted_scopes(self, account: str) -> list[str]:
        """Return the scopes recorded for ``account``.

        Raises:
            ScopesNotSetError: If no scopes were ever recorded.
            StoreReadError: If the stored record cannot be read.
        """
        try:
            data = self.store.get(account, KEY_SCOPES)
        except KeyNotFoundError as e:
            raise ScopesNotSetError(
                f"No scopes recorded for account '{account}'",
                details={"account": account},
            ) from e

        try:
            scopes = json.loads(data)
        except ValueError as e:
            raise StoreReadError(
                f"Stored scopes for account '{account}' are corrupted",
                details={"account": account, "operation": "get_granted_scopes"},
            ) from e
        if not isinstance(scopes, list) or not all(isinstance(s, str) for s in scopes):
            raise StoreReadError(
                f"Stored scopes for account '{account}' are corrupted",
                details={"account": account, "operation": "get_granted_scopes"},
            )
        return scopes

    def has_scope(self, account: str, scope: str) -> bool:
        """Check whether ``scope`` was granted. False when scopes are unknown."""
        try:
            return scope in self.get_granted_scopes(account)
        except KeyNotFoundError:
            return False

    # =========================================================================
    # Refresh
    # =========================================================================

    def refresh_token(self, account: str, provider: OAuthProvider) -> Token:
        """Return a valid token for ``account``, refreshing it if needed.

        The refreshed token is persisted only when the access token actually
        changed.

        Args:
            account: Account identifier.
            provider: Provider whose client credentials perform the refresh.

        Returns:
            The current valid token.

        Raises:
            TokenNotFoundError: If no token is stored.
            TokenRefreshError: If the refresh is rejected.
        """
        token = self.load_token(account)
        new_token = provider.token_source(token).token()

        if new_token.access_token != token.access_token:
            self.save_token(account, new_token)
            logger.info("Refreshed and saved token for account %s", account)
        return new_token

    def get_token_source(self, account: str) -> TokenSource:
        """Build a refreshing token source for ``account``.

        The provider is configured with the manager's settings and the
        account's recorded scopes (empty if none were recorded).

        Raises:
            TokenNotFoundError: If no token is stored.
        """
        token = self.load_token(account)
        try:
            scopes = self.get_granted_scopes(account)
        except ScopesNotSetError:
            scopes = []
        provider = OAuthProvider(settings=self.settings, scopes=scopes)
        return provider.token_source(token)

    def get_token_info(self, account: str) -> TokenInfo:
        """Describe the stored token for ``account``.

        Never raises for an account without a token; store failures still
        propagate.
        """
        try:
            token = self.load_token(account)
        except TokenNotFoundError:
            return TokenInfo(account=account)

        try:
            scopes = self.get_granted_scopes(account)
        except ScopesNotSetError:
            scopes = []

        return TokenInfo(
            account=account,
            has_token=True,
            is_expired=not token.valid,
            scopes=scopes,
            token_type=token.token_type,
            expiry=token.expiry,
        )


__all__ = [
    "TokenManager",
]
