"""Interactive browser login: the full Authorization Code + PKCE flow.

``OAuthFlow.run()`` wires the pieces together:

    validate -> PKCE pair + state -> start callback listener
    -> point redirect_uri at the real port -> open browser
    -> wait for the redirect -> exchange code -> look up user email

The listener is always stopped, whichever step fails.
"""

from __future__ import annotations

import copy
import logging
import threading
import webbrowser
from collections.abc import Callable

import google.auth.exceptions
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from goog_auth.auth.callback import CallbackListener
from goog_auth.auth.models import Token
from goog_auth.auth.oauth import OAuthProvider
from goog_auth.auth.pkce import generate_pkce_pair, generate_state
from goog_auth.config import OAuthSettings
from goog_auth.utils.errors import AuthenticationError

logger = logging.getLogger(__name__)

AUTH_TIMEOUT_SECONDS = 300.0


class UserInfoFetcher:
    """Looks up the signed-in user's email with the oauth2 v2 userinfo API."""

    def get_user_email(self, token: Token) -> str:
        """Return the email address the token was issued for.

        Raises:
            AuthenticationError: If the lookup fails or returns no email.
        """
        creds = Credentials(token=token.access_token)  # type: ignore[no-untyped-call]
        try:
            service = build("oauth2", "v2", credentials=creds, cache_discovery=False)
            info = service.userinfo().get().execute()
        except HttpError as e:
            raise AuthenticationError(
                f"Userinfo request failed: {e}",
                details={"status_code": e.resp.status},
            ) from e
        except (google.auth.exceptions.GoogleAuthError, OSError) as e:
            raise AuthenticationError(f"Userinfo request failed: {e}") from e

        email = info.get("email") if isinstance(info, dict) else None
        if not email:
            raise AuthenticationError("No email in userinfo response")
        return str(email)


class OAuthFlow:
    """Runs the browser-based login and returns the user's email and token.

    All collaborators are injectable so the flow can be driven without a
    browser or network.

    Example:
        >>> flow = OAuthFlow()
        >>> email, token = flow.run(DEFAULT_SCOPES)
    """

    def __init__(
        self,
        provider: OAuthProvider | None = None,
        listener_factory: Callable[..., CallbackListener] = CallbackListener,
        browser_opener: Callable[[str], bool] = webbrowser.open,
        user_info_fetcher: UserInfoFetcher | None = None,
        settings: OAuthSettings | None = None,
    ) -> None:
        """Initialize the flow.

        Args:
            provider: OAuth provider. Built from ``settings`` when omitted.
                Each run works on a copy, so its scopes and redirect URI are
                left untouched.
            listener_factory: Called with ``expected_state=`` to create the
                callback listener.
            browser_opener: Opens a URL; returns False if no browser could
                be launched.
            user_info_fetcher: Resolves the token to an email address.
            settings: Client settings. Defaults to ``OAuthSettings.from_env()``.
        """
        if provider is None:
            provider = OAuthProvider(settings=settings)
        self.provider = provider
        self._listener_factory = listener_factory
        self._browser_opener = browser_opener
        self._user_info = user_info_fetcher or UserInfoFetcher()
        self._lock = threading.Lock()
        self._listener: CallbackListener | None = None

    def run(
        self, scopes: list[str], timeout: float = AUTH_TIMEOUT_SECONDS
    ) -> tuple[str, Token]:
        """Authorize the user in the browser.

        Args:
            scopes: Scopes to request.
            timeout: Seconds to wait for the user to finish in the browser.

        Returns:
            ``(email, token)`` for the authorized user.

        Raises:
            ConfigurationError: Client credentials are missing. Raised before
                the listener starts or the browser opens.
            ListenerError: No local port could be bound.
            OAuthError: The user denied consent (or another provider error).
            CallbackTimeoutError: Timed out, or ``cancel()`` was called.
            TokenExchangeError: The code could not be exchanged.
            AuthenticationError: The user email could not be determined.
        """
        # Scopes and redirect URI are set on a per-run copy
        provider = copy.copy(self.provider)
        provider.scopes = list(scopes)
        provider.validate()

        pkce = generate_pkce_pair()
        state = generate_state()

        listener = self._listener_factory(expected_state=state)
        with self._lock:
            self._listener = listener

        try:
            listener.start(provider.settings.redirect_port)
            provider.redirect_uri = listener.redirect_uri

            auth_url = provider.get_auth_url(state, pkce.challenge)
            self._open_browser(auth_url)
            code = listener.wait_for_callback(timeout)

            token = provider.exchange(code, pkce.verifier)
            email = self._user_info.get_user_email(token)
            logger.info("Successfully authenticated user: %s", email)
            return email, token
        finally:
            listener.stop()
            with self._lock:
                self._listener = None

    def cancel(self) -> None:
        """Abort a running ``run()``; it raises CallbackTimeoutError."""
        with self._lock:
            listener = self._listener
        if listener is not None:
            listener.cancel()

    def _open_browser(self, url: str) -> None:
        try:
            opened = self._browser_opener(url)
        except webbrowser.Error as e:
            logger.warning("Failed to open browser (%s). Open this URL to sign in:\n%s", e, url)
            return

        if opened is False:
            logger.warning("Could not open a browser. Open this URL to sign in:\n%s", url)
        else:
            logger.info("Opened browser for sign-in. If it did not appear, visit:\n%s", url)


__all__ = [
    "OAuthFlow",
    "UserInfoFetcher",
    "AUTH_TIMEOUT_SECONDS",
]
