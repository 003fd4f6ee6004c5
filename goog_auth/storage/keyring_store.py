"""Secure store backed by the OS credential vault.

Uses the ``keyring`` library. Every secret becomes one vault item in the
``goog-auth`` service, with the username ``goog:<account>:<key>`` and the raw
bytes base64-encoded as the password.

The keyring API has no enumeration call, so this store maintains an index
item (``goog:index``) listing every namespaced key it has written. ``list()``
filters that enumeration by the account prefix.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import threading

import keyring
from keyring.backend import KeyringBackend
from keyring.backends import fail, null
from keyring.errors import KeyringError, PasswordDeleteError

from goog_auth.storage.base import (
    KEY_PREFIX,
    SERVICE_NAME,
    SecureStore,
    format_key,
)
from goog_auth.utils.errors import (
    KeyNotFoundError,
    StorageError,
    StoreReadError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

INDEX_KEY = f"{KEY_PREFIX}:index"


class KeyringStore(SecureStore):
    """SecureStore implementation on top of a keyring backend.

    Example:
        >>> store = KeyringStore.open()
        >>> store.set("work", "token", b'{"access_token": "ya29..."}')
        >>> store.list("work")
        ['token']
    """

    def __init__(
        self, backend: KeyringBackend | None = None, service_name: str = SERVICE_NAME
    ) -> None:
        """Wrap a keyring backend without probing it.

        Args:
            backend: Keyring backend. Defaults to ``keyring.get_keyring()``.
            service_name: Vault service under which items are stored.
        """
        self._backend = backend if backend is not None else keyring.get_keyring()
        self._service = service_name
        # Serializes index read-modify-write within this process
        self._lock = threading.Lock()

    @classmethod
    def open(
        cls, backend: KeyringBackend | None = None, service_name: str = SERVICE_NAME
    ) -> KeyringStore:
        """Open the vault and verify it is usable.

        Args:
            backend: Backend to probe. Defaults to the platform keyring.
            service_name: Vault service to probe and store items under.

        Returns:
            A KeyringStore bound to a working backend.

        Raises:
            StoreUnavailableError: If no real vault is configured, or the
                vault rejects a probe read (locked, permission denied, ...).
        """
        if backend is None:
            try:
                backend = keyring.get_keyring()
            except Exception as e:
                raise StoreUnavailableError(
                    f"Could not load keyring backend: {e}",
                    details={"error_type": type(e).__name__},
                ) from e

        if isinstance(backend, (fail.Keyring, null.Keyring)):
            raise StoreUnavailableError(
                "No OS credential vault available",
                details={"backend": type(backend).__name__},
            )

        try:
            backend.get_password(service_name, INDEX_KEY)
        except Exception as e:
            raise StoreUnavailableError(
                f"OS credential vault is not accessible: {e}",
                details={
                    "backend": type(backend).__name__,
                    "error_type": type(e).__name__,
                },
            ) from e

        return cls(backend, service_name)

    def set(self, account: str, key: str, value: bytes) -> None:
        full_key = format_key(account, key)
        encoded = base64.b64encode(value).decode("ascii")

        with self._lock:
            try:
                self._backend.set_password(self._service, full_key, encoded)
            except KeyringError as e:
                raise StorageError(
                    f"Failed to store secret in credential vault: {e}",
                    details={"account": account, "key": key, "operation": "set"},
                ) from e

            index = self._read_index()
            if full_key not in index:
                index.append(full_key)
                self._write_index(index)

        logger.debug("Stored %s for account %s in credential vault", key, account)

    def get(self, account: str, key: str) -> bytes:
        full_key = format_key(account, key)
        try:
            encoded = self._backend.get_password(self._service, full_key)
        except KeyringError as e:
            raise StoreReadError(
                f"Cannot read credential vault: {e}",
                details={"account": account, "key": key, "operation": "get"},
            ) from e

        if encoded is None:
            raise KeyNotFoundError(
                "Key not found", details={"account": account, "key": key}
            )

        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise StoreReadError(
                "Cannot read credential vault: stored value is not valid base64",
                details={"account": account, "key": key, "operation": "get"},
            ) from e

    def delete(self, account: str, key: str) -> None:
        full_key = format_key(account, key)

        with self._lock:
            try:
                self._backend.delete_password(self._service, full_key)
            except PasswordDeleteError:
                logger.debug("Nothing to delete for %s/%s", account, key)
            except KeyringError as e:
                raise StorageError(
                    f"Failed to delete secret from credential vault: {e}",
                    details={"account": account, "key": key, "operation": "delete"},
                ) from e

            index = self._read_index()
            if full_key in index:
                index.remove(full_key)
                self._write_index(index)

    def list(self, account: str) -> list[str]:
        prefix = format_key(account, "")
        keys = []
        for full_key in self._read_index():
            if not full_key.startswith(prefix):
                continue
            name = full_key[len(prefix) :]
            # "goog:a:b:token" belongs to account "a:b", not "a"
            if name and ":" not in name:
                keys.append(name)
        return keys

    # =========================================================================
    # Index maintenance
    # =========================================================================

    def _read_index(self) -> list[str]:
        try:
            raw = self._backend.get_password(self._service, INDEX_KEY)
        except KeyringError as e:
            raise StoreReadError(
                f"Cannot read credential vault index: {e}",
                details={"operation": "list"},
            ) from e

        if not raw:
            return []
        try:
            index = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreReadError(
                "Credential vault index is corrupted",
                details={"error": str(e)},
            ) from e
        if not isinstance(index, list):
            raise StoreReadError("Credential vault index is corrupted")
        return [str(k) for k in index]

    def _write_index(self, index: list[str]) -> None:
        try:
            self._backend.set_password(self._service, INDEX_KEY, json.dumps(index))
        except KeyringError as e:
            raise StorageError(
                f"Failed to update credential vault index: {e}",
                details={"operation": "index"},
            ) from e


__all__ = [
    "KeyringStore",
    "INDEX_KEY",
]
