"""Secure store interface and backend selection.

Secrets are addressed by ``(account, key)`` where ``key`` is one of a small
fixed vocabulary (``token``, ``scopes``). Two backends implement the same
contract:

- ``KeyringStore``: the OS credential vault (macOS Keychain, Secret Service,
  Windows Credential Locker) through the ``keyring`` library.
- ``FileStore``: AES-256-GCM encrypted files, used when no vault is usable.

``open_store()`` picks one of them once; callers only see ``SecureStore``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from goog_auth.utils.errors import StoreUnavailableError

if TYPE_CHECKING:
    from keyring.backend import KeyringBackend

logger = logging.getLogger(__name__)

SERVICE_NAME = "goog-auth"
KEY_PREFIX = "goog"

# Secret key vocabulary
KEY_TOKEN = "token"
KEY_SCOPES = "scopes"


class SecureStore(ABC):
    """Key/value secret persistence, namespaced per account.

    Implementations must keep accounts isolated: a value written under one
    account is never visible under another.
    """

    @abstractmethod
    def set(self, account: str, key: str, value: bytes) -> None:
        """Store ``value`` for ``(account, key)``, replacing any old value."""

    @abstractmethod
    def get(self, account: str, key: str) -> bytes:
        """Return the value for ``(account, key)``.

        Raises:
            KeyNotFoundError: If nothing is stored under the key.
            StoreReadError: If the backing data exists but cannot be read.
        """

    @abstractmethod
    def delete(self, account: str, key: str) -> None:
        """Remove ``(account, key)``. Deleting an absent key is not an error."""

    @abstractmethod
    def list(self, account: str) -> list[str]:
        """Return the key names stored for ``account``."""


def format_key(account: str, key: str) -> str:
    """Build a namespaced vault key: ``goog:<account>:<key>``."""
    return f"{KEY_PREFIX}:{account}:{key}"


def parse_key(full_key: str) -> tuple[str, str] | None:
    """Split a namespaced key into ``(account, key)``.

    Returns None if the key does not carry this application's prefix.
    """
    parts = full_key.split(":", 2)
    if len(parts) != 3 or parts[0] != KEY_PREFIX:
        return None
    return parts[1], parts[2]


def open_store(
    config_dir: Path | None = None,
    backend: KeyringBackend | None = None,
) -> SecureStore:
    """Open the best available secure store for this process.

    Tries the OS credential vault first. Any failure (unsupported platform,
    locked vault, permission denied) selects the encrypted-file store for the
    rest of the process lifetime.

    Args:
        config_dir: Base directory for the file store. Defaults to
            ``default_config_dir()``.
        backend: Explicit keyring backend to try instead of the
            platform default.

    Returns:
        A ready-to-use SecureStore.
    """
    from goog_auth.storage.file_store import FileStore
    from goog_auth.storage.keyring_store import KeyringStore

    try:
        store: SecureStore = KeyringStore.open(backend)
    except StoreUnavailableError as e:
        logger.info("OS credential vault unavailable, using encrypted files: %s", e)
        return FileStore(config_dir)

    logger.info("Using OS credential vault for secure storage")
    return store


__all__ = [
    "SecureStore",
    "open_store",
    "format_key",
    "parse_key",
    "SERVICE_NAME",
    "KEY_PREFIX",
    "KEY_TOKEN",
    "KEY_SCOPES",
]
