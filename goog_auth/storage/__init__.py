"""Secure credential storage.

Usage:
    >>> from goog_auth.storage import open_store
    >>>
    >>> store = open_store()  # OS vault, or encrypted files as fallback
    >>> store.set("work", "token", b"...")
    >>> store.list("work")
    ['token']
"""

from goog_auth.storage.base import (
    KEY_SCOPES,
    KEY_TOKEN,
    SecureStore,
    format_key,
    open_store,
    parse_key,
)
from goog_auth.storage.file_store import FileStore, machine_fingerprint
from goog_auth.storage.keyring_store import KeyringStore

__all__ = [
    "SecureStore",
    "open_store",
    "format_key",
    "parse_key",
    "KEY_TOKEN",
    "KEY_SCOPES",
    "FileStore",
    "KeyringStore",
    "machine_fingerprint",
]
