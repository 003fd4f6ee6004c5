"""Local HTTP listener that captures the OAuth redirect.

The listener binds ``localhost`` on the preferred port (falling back to an
ephemeral port when it is taken), serves on a background thread, and resolves
exactly once with the first callback it sees:

- ``?code=...``                         -> the authorization code
- ``?error=...&error_description=...``  -> OAuthError
- neither                               -> NoAuthCodeError
- timeout or cancel()                   -> CallbackTimeoutError

Completion is recorded in a single-assignment cell, so duplicate or concurrent
browser requests, and a timeout firing at the same moment, can never deliver
two results. Every request still gets an HTML page so the browser tab is not
left blank.
"""

from __future__ import annotations

import html
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlparse

from goog_auth.config import DEFAULT_REDIRECT_PATH, DEFAULT_REDIRECT_PORT
from goog_auth.utils.errors import (
    CallbackTimeoutError,
    GoogAuthError,
    ListenerError,
    NoAuthCodeError,
    OAuthError,
    StateMismatchError,
)

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 5.0

_PAGE = """<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body>
<h1>{title}</h1>
{body}
<p>You can close this window.</p>
</body>
</html>"""


def _render(title: str, *paragraphs: str) -> bytes:
    body = "\n".join(f"<p>{html.escape(p)}</p>" for p in paragraphs if p)
    return _PAGE.format(title=html.escape(title), body=body).encode("utf-8")


SUCCESS_PAGE = _render(
    "Authentication Successful!",
    "You have successfully authenticated with Google.",
    "Return to the terminal to continue.",
)
COMPLETED_PAGE = _render(
    "Authentication Already Completed",
    "This sign-in request has already been handled.",
)


class _ResultCell:
    """Single-assignment result cell: the first ``resolve()`` wins."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._code: str | None = None
        self._error: GoogAuthError | None = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def resolve(
        self, code: str | None = None, error: GoogAuthError | None = None
    ) -> bool:
        """Record the outcome. Returns False if one was already recorded."""
        with self._lock:
            if self._done.is_set():
                return False
            self._code = code
            self._error = error
            self._done.set()
            return True

    def wait(self, timeout: float | None) -> bool:
        return self._done.wait(timeout)

    def result(self) -> str:
        if self._error is not None:
            raise self._error
        if self._code is None:
            raise ListenerError("Callback listener has no result")
        return self._code


class _CallbackHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], listener: CallbackListener) -> None:
        self.listener = listener
        super().__init__(address, _CallbackHandler)


class _CallbackHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the OAuth redirect."""

    server: _CallbackHTTPServer

    def do_GET(self) -> None:  # noqa: N802
        listener = self.server.listener
        listener._request_started()
        try:
            parsed = urlparse(self.path)
            if parsed.path != listener.callback_path:
                self.send_response(404)
                self.end_headers()
                return

            status, page = listener._handle_callback(parse_qs(parsed.query))
            self.send_response(status)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(page)))
            self.end_headers()
            self.wfile.write(page)
        finally:
            listener._request_finished()

    def log_message(self, format: str, *args: object) -> None:
        logger.debug("OAuth callback server: %s", format % args)


class CallbackListener:
    """One-shot localhost listener for the OAuth authorization redirect.

    Attributes:
        callback_path: Request path that carries the redirect.

    Example:
        >>> listener = CallbackListener(expected_state=state)
        >>> base_url = listener.start(8085)
        >>> # ... send the user to the provider with base_url + "/callback"
        >>> code = listener.wait_for_callback(timeout=300)
    """

    def __init__(
        self,
        callback_path: str = DEFAULT_REDIRECT_PATH,
        expected_state: str | None = None,
    ) -> None:
        """Create a listener. Nothing is bound until ``start()``.

        Args:
            callback_path: Path the provider redirects to.
            expected_state: If set, callbacks whose ``state`` differs are
                rejected with StateMismatchError.
        """
        self.callback_path = callback_path
        self._expected_state = expected_state
        self._result = _ResultCell()
        self._server: _CallbackHTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._started = False
        self._server_url = ""
        self._port = 0
        self._lifecycle_lock = threading.Lock()
        self._inflight = 0
        self._inflight_cv = threading.Condition()

    @property
    def server_url(self) -> str:
        """Base URL of the running listener, e.g. ``http://localhost:8085``."""
        return self._server_url

    @property
    def port(self) -> int:
        """Port actually bound (0 before ``start()``)."""
        return self._port

    @property
    def redirect_uri(self) -> str:
        """Full redirect URI to register with the authorization request."""
        return f"{self._server_url}{self.callback_path}"

    def start(self, preferred_port: int = DEFAULT_REDIRECT_PORT) -> str:
        """Bind and start serving in the background.

        Args:
            preferred_port: Port to try first. If it cannot be bound, an
                OS-assigned ephemeral port is used instead.

        Returns:
            The listener base URL.

        Raises:
            ListenerError: If the listener is already started or no port
                could be bound.
        """
        with self._lifecycle_lock:
            if self._started:
                raise ListenerError("Callback listener already started")

            server = self._bind(preferred_port)
            self._port = server.server_address[1]
            self._server_url = f"http://localhost:{self._port}"
            self._server = server
            self._thread = threading.Thread(
                target=server.serve_forever,
                kwargs={"poll_interval": 0.1},
                name="oauth-callback-listener",
                daemon=True,
            )
            self._thread.start()
            self._started = True

        logger.debug("OAuth callback listener serving on port %d", self._port)
        return self._server_url

    def _bind(self, preferred_port: int) -> _CallbackHTTPServer:
        if preferred_port:
            try:
                return _CallbackHTTPServer(("localhost", preferred_port), self)
            except OSError as e:
                logger.warning(
                    "Port %d unavailable (%s), using an ephemeral port",
                    preferred_port,
                    e,
                )

        try:
            return _CallbackHTTPServer(("localhost", 0), self)
        except OSError as e:
            raise ListenerError(
                f"Failed to start callback listener: {e}",
                details={"preferred_port": preferred_port},
            ) from e

    def wait_for_callback(self, timeout: float | None = None) -> str:
        """Block until the redirect arrives, then stop the listener.

        Args:
            timeout: Seconds to wait. None waits until a callback arrives or
                ``cancel()`` is called.

        Returns:
            The authorization code.

        Raises:
            OAuthError: The provider redirected with an ``error``.
            NoAuthCodeError: The redirect carried neither code nor error.
            StateMismatchError: The ``state`` did not match.
            CallbackTimeoutError: The timeout elapsed or the wait was
                cancelled.
            ListenerError: ``start()`` was never called.
        """
        if not self._started:
            raise ListenerError("Callback listener is not running")

        try:
            if not self._result.wait(timeout):
                # Loses to a callback that lands at the same instant
                self._result.resolve(
                    error=CallbackTimeoutError(
                        "Timed out waiting for OAuth callback",
                        details={"timeout_seconds": timeout},
                    )
                )
            return self._result.result()
        finally:
            self.stop()

    def cancel(self) -> None:
        """Resolve a pending wait with a cancellation error."""
        if self._result.resolve(
            error=CallbackTimeoutError(
                "OAuth callback wait was cancelled", details={"cancelled": True}
            )
        ):
            logger.debug("OAuth callback wait cancelled")

    def stop(self) -> None:
        """Shut the server down and release the port.

        In-flight responses get up to ``SHUTDOWN_GRACE_SECONDS`` to finish.
        Safe to call repeatedly, and before ``start()``.
        """
        with self._lifecycle_lock:
            server, self._server = self._server, None
            thread, self._thread = self._thread, None

        if server is None:
            return

        server.shutdown()
        with self._inflight_cv:
            self._inflight_cv.wait_for(
                lambda: self._inflight == 0, timeout=SHUTDOWN_GRACE_SECONDS
            )
        server.server_close()
        if thread is not None:
            thread.join(SHUTDOWN_GRACE_SECONDS)
        logger.debug("OAuth callback listener on port %d stopped", self._port)

    # =========================================================================
    # Request handling (called from server threads)
    # =========================================================================

    def _request_started(self) -> None:
        with self._inflight_cv:
            self._inflight += 1

    def _request_finished(self) -> None:
        with self._inflight_cv:
            self._inflight -= 1
            self._inflight_cv.notify_all()

    def _handle_callback(self, params: dict[str, list[str]]) -> tuple[int, bytes]:
        """Turn callback query parameters into an outcome and a page."""
        if self._result.done:
            return 200, COMPLETED_PAGE

        # Error redirects carry the state too; check it before anything else
        if self._expected_state is not None:
            state = params.get("state", [""])[0]
            if state != self._expected_state:
                # Don't leak state values in error details
                mismatch = StateMismatchError(
                    "State mismatch - possible CSRF attack",
                    details={"hint": "Request may have been tampered with"},
                )
                if not self._result.resolve(error=mismatch):
                    return 200, COMPLETED_PAGE
                return 400, _render("Security Error", "State mismatch.")

        error_code = params.get("error", [""])[0]
        if error_code:
            description = params.get("error_description", [""])[0]
            error = OAuthError(
                f"OAuth error: {error_code} - {description}",
                error_code=error_code,
                description=description,
            )
            if not self._result.resolve(error=error):
                return 200, COMPLETED_PAGE
            logger.warning("OAuth provider returned error: %s", error_code)
            return 400, _render(
                "Authentication Failed", f"Error: {error_code}", description
            )

        code = params.get("code", [""])[0]
        if not code:
            missing = NoAuthCodeError(
                "No authorization code received",
                details={"params": sorted(params)},
            )
            if not self._result.resolve(error=missing):
                return 200, COMPLETED_PAGE
            return 400, _render(
                "Authentication Failed", "No authorization code received."
            )

        if not self._result.resolve(code=code):
            return 200, COMPLETED_PAGE
        logger.debug("Received OAuth authorization code")
        return 200, SUCCESS_PAGE


__all__ = [
    "CallbackListener",
    "SHUTDOWN_GRACE_SECONDS",
]
