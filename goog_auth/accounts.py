"""Account-level operations: login, logout, status.

An account is an opaque identifier (an alias such as ``work``) under which a
token and its granted scopes are stored.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from goog_auth.auth.flow import OAuthFlow
from goog_auth.auth.models import TokenInfo
from goog_auth.auth.oauth import DEFAULT_SCOPES, TokenSource
from goog_auth.auth.tokens import TokenManager
from goog_auth.config import OAuthSettings
from goog_auth.storage.base import SecureStore
from goog_auth.utils.errors import StoreReadError, TokenNotFoundError, ValidationError

logger = logging.getLogger(__name__)


class LoginResult(BaseModel):
    """Outcome of a successful login.

    Attributes:
        account: Account identifier the token was saved under.
        email: Email address of the authorized Google user.
        scopes: Scopes that were requested and recorded.
    """

    account: str
    email: str
    scopes: list[str] = Field(default_factory=list)


class AccountService:
    """Logs accounts in and out and reports their token status.

    Example:
        >>> service = AccountService(open_store())
        >>> result = service.login("work")
        >>> service.status("work").has_token
        True
    """

    def __init__(
        self,
        store: SecureStore,
        flow: OAuthFlow | None = None,
        settings: OAuthSettings | None = None,
    ) -> None:
        self.settings = settings if settings is not None else OAuthSettings.from_env()
        self.tokens = TokenManager(store, self.settings)
        self._flow = flow

    @property
    def flow(self) -> OAuthFlow:
        if self._flow is None:
            self._flow = OAuthFlow(settings=self.settings)
        return self._flow

    def login(self, account: str, scopes: list[str] | None = None) -> LoginResult:
        """Run the browser flow and store the resulting token and scopes.

        Args:
            account: Account identifier to store the token under.
            scopes: Scopes to request. Defaults to ``DEFAULT_SCOPES``.

        Returns:
            The login outcome.

        Raises:
            ValidationError: If the account identifier is empty.
            GoogAuthError: Any flow or storage failure.
        """
        if not account:
            raise ValidationError("Account name must not be empty", field="account")

        requested = list(scopes) if scopes else list(DEFAULT_SCOPES)
        email, token = self.flow.run(requested)

        self.tokens.save_token(account, token)
        self.tokens.save_scopes(account, requested)
        logger.info("Logged in account %s as %s", account, email)
        return LoginResult(account=account, email=email, scopes=requested)

    def logout(self, account: str) -> bool:
        """Delete the stored token and scopes.

        Credentials that can no longer be read are removed as well.

        Returns:
            True if a token was stored, False if there was nothing to remove.
        """
        try:
            self.tokens.load_token(account)
            existed = True
        except TokenNotFoundError:
            existed = False
        except StoreReadError as e:
            logger.warning("Stored token for account %s is unreadable: %s", account, e.message)
            existed = True

        self.tokens.delete_token(account)
        if existed:
            logger.info("Logged out account %s", account)
        return existed

    def status(self, account: str) -> TokenInfo:
        """Describe the stored token for ``account``."""
        return self.tokens.get_token_info(account)

    def get_token_source(self, account: str) -> TokenSource:
        """Return a refreshing token source for ``account``.

        Raises:
            TokenNotFoundError: If the account is not logged in.
        """
        return self.tokens.get_token_source(account)


__all__ = [
    "AccountService",
    "LoginResult",
]
