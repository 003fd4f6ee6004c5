"""Google OAuth 2.0 provider: authorization URL, code exchange and refresh.

This module implements the provider side of the Authorization Code flow with
PKCE for a desktop CLI:

1. ``get_auth_url()`` builds the consent URL with the S256 code challenge.
2. ``exchange()`` trades the authorization code plus the PKCE verifier for a
   token at the token endpoint.
3. ``token_source()`` hands out a token that refreshes itself through
   ``google.oauth2.credentials.Credentials`` once it expires.

Security considerations:
- Client credentials come from configuration, never from stored tokens
- The PKCE verifier is only sent in the exchange request body
- ``access_type=offline`` + ``prompt=consent`` so a refresh token is issued
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import google.auth.exceptions
import requests
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from goog_auth.auth.models import Token
from goog_auth.auth.pkce import CHALLENGE_METHOD
from goog_auth.config import ENV_CLIENT_ID, ENV_CLIENT_SECRET, OAuthSettings
from goog_auth.utils.errors import (
    ConfigurationError,
    TokenExchangeError,
    TokenRefreshError,
)

logger = logging.getLogger(__name__)

# Gmail scopes
SCOPE_GMAIL_READONLY = "https://www.googleapis.com/auth/gmail.readonly"
SCOPE_GMAIL_SEND = "https://www.googleapis.com/auth/gmail.send"
SCOPE_GMAIL_MODIFY = "https://www.googleapis.com/auth/gmail.modify"
SCOPE_GMAIL_COMPOSE = "https://www.googleapis.com/auth/gmail.compose"
SCOPE_GMAIL_LABELS = "https://www.googleapis.com/auth/gmail.labels"

# Calendar scopes
SCOPE_CALENDAR_READONLY = "https://www.googleapis.com/auth/calendar.readonly"
SCOPE_CALENDAR_EVENTS = "https://www.googleapis.com/auth/calendar.events"
SCOPE_CALENDAR = "https://www.googleapis.com/auth/calendar"

# Drive scopes
SCOPE_DRIVE_READONLY = "https://www.googleapis.com/auth/drive.readonly"
SCOPE_DRIVE_FILE = "https://www.googleapis.com/auth/drive.file"
SCOPE_DRIVE = "https://www.googleapis.com/auth/drive"

# User info scopes
SCOPE_USERINFO_EMAIL = "https://www.googleapis.com/auth/userinfo.email"
SCOPE_USERINFO_PROFILE = "https://www.googleapis.com/auth/userinfo.profile"
SCOPE_OPENID = "openid"

DEFAULT_SCOPES = [
    SCOPE_GMAIL_READONLY,
    SCOPE_CALENDAR_READONLY,
    SCOPE_USERINFO_EMAIL,
    SCOPE_OPENID,
]

REQUEST_TIMEOUT_SECONDS = 30


def _expiry_from(expires_in: object) -> datetime | None:
    try:
        seconds = int(expires_in)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return None
    return datetime.now(UTC) + timedelta(seconds=seconds)


class TokenSource:
    """Hands out a valid token, refreshing it when it has expired.

    The last token handed out is cached, so repeated calls only hit the token
    endpoint once per expiry. Thread-safe.

    Example:
        >>> source = provider.token_source(stored_token)
        >>> headers = {"Authorization": f"Bearer {source.token().access_token}"}
    """

    def __init__(self, provider: OAuthProvider, token: Token) -> None:
        self._provider = provider
        self._token = token
        self._lock = threading.Lock()

    def token(self) -> Token:
        """Return the current token, refreshing it first if it has expired.

        Raises:
            TokenRefreshError: If the token is expired and cannot be
                refreshed (no refresh token, revoked, network failure).
        """
        with self._lock:
            if not self._token.valid:
                self._token = self._provider.refresh(self._token)
            return self._token


class OAuthProvider:
    """Google OAuth 2.0 client for the Authorization Code + PKCE flow.

    Attributes:
        settings: Client configuration (id, secret, endpoints, port).
        scopes: Scopes requested in the authorization URL.

    Example:
        >>> provider = OAuthProvider(scopes=DEFAULT_SCOPES)
        >>> provider.validate()
        >>> url = provider.get_auth_url(state, pkce.challenge)
    """

    def __init__(
        self,
        settings: OAuthSettings | None = None,
        scopes: list[str] | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            settings: Client configuration. Defaults to
                ``OAuthSettings.from_env()``.
            scopes: Scopes to request.
            session: HTTP session for token endpoint calls.
        """
        self.settings = settings if settings is not None else OAuthSettings.from_env()
        self.scopes = list(scopes or [])
        self._session = session or requests.Session()
        self._redirect_uri = self.settings.redirect_uri

    @property
    def redirect_uri(self) -> str:
        """Redirect URI sent in the authorization and exchange requests."""
        return self._redirect_uri

    @redirect_uri.setter
    def redirect_uri(self, value: str) -> None:
        self._redirect_uri = value

    def validate(self) -> None:
        """Check that client credentials are configured.

        Raises:
            ConfigurationError: If the client ID or client secret is empty.
        """
        if not self.settings.client_id:
            raise ConfigurationError(
                f"{ENV_CLIENT_ID} environment variable is not set",
                details={"env_var": ENV_CLIENT_ID},
            )
        if not self.settings.client_secret:
            raise ConfigurationError(
                f"{ENV_CLIENT_SECRET} environment variable is not set",
                details={"env_var": ENV_CLIENT_SECRET},
            )

    def get_auth_url(self, state: str, code_challenge: str) -> str:
        """Build the authorization URL for user consent.

        Args:
            state: CSRF protection value, echoed back in the redirect.
            code_challenge: PKCE S256 challenge.

        Returns:
            The full authorization URL.
        """
        params = {
            "response_type": "code",
            "client_id": self.settings.client_id,
            "redirect_uri": self._redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": CHALLENGE_METHOD,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{self.settings.auth_uri}?{urlencode(params)}"

    def exchange(self, code: str, code_verifier: str) -> Token:
        """Exchange an authorization code for a token.

        Args:
            code: Authorization code from the callback.
            code_verifier: PKCE verifier whose challenge was sent in the
                authorization URL.

        Returns:
            The issued token.

        Raises:
            TokenExchangeError: If the provider rejects the code or verifier,
                the request fails, or the response is malformed.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._redirect_uri,
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
            "code_verifier": code_verifier,
        }

        try:
            response = self._session.post(
                self.settings.token_uri,
                data=data,
                headers={"Accept": "application/json"},
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.error("Network error exchanging authorization code: %s", e)
            raise TokenExchangeError(
                f"Network error exchanging authorization code: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code != 200:
            error_code = None
            description = response.text
            if isinstance(payload, dict):
                error_code = payload.get("error")
                description = payload.get("error_description") or error_code or ""
            logger.error("Token exchange rejected: %s", error_code or response.status_code)
            raise TokenExchangeError(
                f"Token exchange failed: {description}",
                error_code=error_code,
                status_code=response.status_code,
            )

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise TokenExchangeError(
                "Token exchange returned a malformed response",
                status_code=response.status_code,
            )

        logger.info("Successfully exchanged authorization code for tokens")
        return Token(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            token_type=payload.get("token_type") or "Bearer",
            expiry=_expiry_from(payload.get("expires_in")),
        )

    def refresh(self, token: Token) -> Token:
        """Obtain a new access token with the refresh token.

        Args:
            token: Expired token carrying a refresh token.

        Returns:
            A new token. The refresh token is carried over if the provider
            does not rotate it.

        Raises:
            TokenRefreshError: If no refresh token is available or the
                provider rejects it.
        """
        if not token.refresh_token:
            raise TokenRefreshError(
                "Token expired and no refresh token is available",
                details={"hint": "User must re-authenticate to obtain a refresh token"},
            )

        credentials = Credentials(  # type: ignore[no-untyped-call]
            token=token.access_token,
            refresh_token=token.refresh_token,
            token_uri=self.settings.token_uri,
            client_id=self.settings.client_id,
            client_secret=self.settings.client_secret,
            scopes=self.scopes or None,
        )

        try:
            credentials.refresh(Request(self._session))
        except (google.auth.exceptions.GoogleAuthError, requests.RequestException) as e:
            logger.error("Failed to refresh token: %s", e)
            raise TokenRefreshError(
                f"Failed to refresh token: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        expiry = credentials.expiry
        logger.info("Successfully refreshed access token")
        return Token(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token or token.refresh_token,
            token_type=token.token_type or "Bearer",
            expiry=expiry.replace(tzinfo=UTC) if expiry else None,
        )

    def token_source(self, token: Token) -> TokenSource:
        """Return a lazily refreshing source seeded with ``token``."""
        return TokenSource(self, token)


__all__ = [
    "OAuthProvider",
    "TokenSource",
    "DEFAULT_SCOPES",
    "SCOPE_GMAIL_READONLY",
    "SCOPE_GMAIL_SEND",
    "SCOPE_GMAIL_MODIFY",
    "SCOPE_GMAIL_COMPOSE",
    "SCOPE_GMAIL_LABELS",
    "SCOPE_CALENDAR_READONLY",
    "SCOPE_CALENDAR_EVENTS",
    "SCOPE_CALENDAR",
    "SCOPE_DRIVE_READONLY",
    "SCOPE_DRIVE_FILE",
    "SCOPE_DRIVE",
    "SCOPE_USERINFO_EMAIL",
    "SCOPE_USERINFO_PROFILE",
    "SCOPE_OPENID",
]
