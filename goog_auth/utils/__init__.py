"""Utility functions and helpers for goog-auth.

This module provides the exception hierarchy and the encryption helpers
shared by the auth and storage packages.
"""

from goog_auth.utils.encryption import (
    decrypt_data,
    derive_key,
    derive_legacy_key,
    encrypt_data,
    generate_key,
    generate_salt,
)
from goog_auth.utils.errors import (
    AuthenticationError,
    CallbackTimeoutError,
    ConfigurationError,
    DecryptionError,
    GoogAuthError,
    KeyNotFoundError,
    ListenerError,
    NoAuthCodeError,
    OAuthError,
    ScopesNotSetError,
    StateMismatchError,
    StorageError,
    StoreReadError,
    StoreUnavailableError,
    TokenExchangeError,
    TokenNotFoundError,
    TokenRefreshError,
    TransportError,
    ValidationError,
)

__all__ = [
    # Encryption utilities
    "generate_key",
    "generate_salt",
    "derive_key",
    "derive_legacy_key",
    "encrypt_data",
    "decrypt_data",
    # Exception hierarchy
    "GoogAuthError",
    "ConfigurationError",
    "AuthenticationError",
    "OAuthError",
    "NoAuthCodeError",
    "StateMismatchError",
    "TokenExchangeError",
    "TokenRefreshError",
    "TransportError",
    "ListenerError",
    "CallbackTimeoutError",
    "StorageError",
    "KeyNotFoundError",
    "TokenNotFoundError",
    "ScopesNotSetError",
    "StoreReadError",
    "StoreUnavailableError",
    "DecryptionError",
    "ValidationError",
]
