"""Pytest configuration and fixtures for goog-auth tests."""

from __future__ import annotations

import json
import threading
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import parse_qs

import pytest
from keyring.errors import PasswordDeleteError

from goog_auth.auth.models import Token
from goog_auth.config import OAuthSettings
from goog_auth.storage.file_store import FileStore
from goog_auth.storage.keyring_store import KeyringStore


class MemoryKeyring:
    """In-memory stand-in for a keyring backend (same method surface)."""

    def __init__(self) -> None:
        self.items: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self.items.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.items[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self.items[(service, username)]
        except KeyError:
            raise PasswordDeleteError("Password not found") from None


class MockTokenEndpoint:
    """Loopback OAuth token endpoint that records every form it receives.

    Responses are served from ``responses`` in order; the last one repeats.
    """

    def __init__(self) -> None:
        self.requests: list[dict[str, str]] = []
        self.responses: list[tuple[int, dict[str, object]]] = [
            (
                200,
                {
                    "access_token": "new-access-token",
                    "refresh_token": "new-refresh-token",
                    "token_type": "Bearer",
                    "expires_in": 3600,
                },
            )
        ]
        self._lock = threading.Lock()
        endpoint = self

        class Handler(BaseHTTPRequestHandler):
            def do_POST(self) -> None:  # noqa: N802
                length = int(self.headers.get("Content-Length", "0"))
                body = self.rfile.read(length).decode("utf-8")
                form = {k: v[0] for k, v in parse_qs(body).items()}
                status, payload = endpoint._record(form)
                data = json.dumps(payload).encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(data)))
                self.end_headers()
                self.wfile.write(data)

            def log_message(self, format: str, *args: object) -> None:
                pass

        self._server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self._server.daemon_threads = True
        self.url = f"http://127.0.0.1:{self._server.server_address[1]}/token"
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    def _record(self, form: dict[str, str]) -> tuple[int, dict[str, object]]:
        with self._lock:
            self.requests.append(form)
            if len(self.responses) > 1:
                return self.responses.pop(0)
            return self.responses[0]

    def respond_with(self, status: int, payload: dict[str, object]) -> None:
        with self._lock:
            self.responses = [(status, payload)]

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(5)


@pytest.fixture
def token_endpoint() -> Iterator[MockTokenEndpoint]:
    """Fixture providing a running mock token endpoint."""
    endpoint = MockTokenEndpoint()
    endpoint.start()
    yield endpoint
    endpoint.stop()


@pytest.fixture
def settings() -> OAuthSettings:
    """Fixture providing configured OAuth client settings."""
    return OAuthSettings(
        client_id="test-client-id.apps.googleusercontent.com",
        client_secret="test-client-secret",
        redirect_port=0,
    )


@pytest.fixture
def endpoint_settings(
    settings: OAuthSettings, token_endpoint: MockTokenEndpoint
) -> OAuthSettings:
    """Fixture providing settings that point at the mock token endpoint."""
    return settings.model_copy(update={"token_uri": token_endpoint.url})


@pytest.fixture
def memory_keyring() -> MemoryKeyring:
    """Fixture providing an empty in-memory keyring backend."""
    return MemoryKeyring()


@pytest.fixture
def keyring_store(memory_keyring: MemoryKeyring) -> KeyringStore:
    """Fixture providing a KeyringStore over the in-memory backend."""
    return KeyringStore(memory_keyring)  # type: ignore[arg-type]


@pytest.fixture
def file_store(tmp_path: Path) -> FileStore:
    """Fixture providing a FileStore rooted in a temporary directory."""
    return FileStore(tmp_path)


@pytest.fixture
def valid_token() -> Token:
    """Fixture providing a token that expires in an hour."""
    return Token(
        access_token="mock-access-token",
        refresh_token="mock-refresh-token",
        token_type="Bearer",
        expiry=datetime.now(UTC) + timedelta(hours=1),
    )


@pytest.fixture
def expired_token() -> Token:
    """Fixture providing a token that expired an hour ago."""
    return Token(
        access_token="old-access-token",
        refresh_token="mock-refresh-token",
        token_type="Bearer",
        expiry=datetime.now(UTC) - timedelta(hours=1),
    )
