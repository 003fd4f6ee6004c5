"""Custom exception hierarchy for goog-auth.

This module defines a structured exception hierarchy for the authentication
and credential-storage subsystem. Errors are grouped by what the caller is
expected to do about them:

- Configuration: fix the environment before trying again.
- Protocol / Refresh: the provider said no; usually restart the login flow.
- Transport: the listener or network failed, or the user never finished.
- Storage: "not found" is a normal first-run outcome, anything else is not.
"""

from __future__ import annotations


class GoogAuthError(Exception):
    """Base exception for all goog-auth errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context
            (account, operation, provider error code, ...).
    """

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(GoogAuthError):
    """Raised when required OAuth client configuration is missing.

    Always raised before any network call or browser launch.

    Examples:
        - GOOG_CLIENT_ID is not set
        - GOOG_CLIENT_SECRET is not set
    """

    pass


# =============================================================================
# Protocol
# =============================================================================


class AuthenticationError(GoogAuthError):
    """Exception raised for OAuth protocol failures.

    Examples:
        - User denied consent in the browser
        - Authorization code was rejected by the token endpoint
        - Userinfo lookup failed after a successful exchange
    """

    pass


class OAuthError(AuthenticationError):
    """The provider redirected back with an OAuth ``error`` parameter.

    Attributes:
        error_code: OAuth error code (e.g. ``access_denied``).
        description: Value of ``error_description``, if any.
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        description: str = "",
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the OAuth error.

        Args:
            message: Human-readable error description.
            error_code: OAuth error code from the redirect.
            description: OAuth error description from the redirect.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.error_code = error_code
        self.description = description


class NoAuthCodeError(AuthenticationError):
    """The callback carried neither a ``code`` nor an ``error`` parameter."""

    pass


class StateMismatchError(AuthenticationError):
    """The callback ``state`` did not match the one sent (possible CSRF)."""

    pass


class TokenExchangeError(AuthenticationError):
    """Exchanging the authorization code for a token failed.

    Attributes:
        error_code: OAuth error code returned by the token endpoint, if any.
        status_code: HTTP status code of the token response, if any.
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the exchange error.

        Args:
            message: Human-readable error description.
            error_code: OAuth error code (e.g. ``invalid_grant``).
            status_code: HTTP status code from the token endpoint.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.error_code = error_code
        self.status_code = status_code


class TokenRefreshError(AuthenticationError):
    """Refreshing an expired access token failed.

    Raised when the refresh token is missing, revoked or expired. Callers
    should restart the full authorization flow rather than retry.
    """

    pass


# =============================================================================
# Transport
# =============================================================================


class TransportError(GoogAuthError):
    """Base class for listener and network failures."""

    pass


class ListenerError(TransportError):
    """The local callback listener could not be started."""

    pass


class CallbackTimeoutError(TransportError):
    """No callback arrived before the deadline, or the wait was cancelled."""

    pass


# =============================================================================
# Storage
# =============================================================================


class StorageError(GoogAuthError):
    """Base class for secure store failures."""

    pass


class KeyNotFoundError(StorageError):
    """The requested (account, key) pair does not exist.

    This is an expected condition (first run, logged-out account), not a
    failure of the store itself.
    """

    pass


class TokenNotFoundError(KeyNotFoundError):
    """No token has been saved for the account."""

    pass


class ScopesNotSetError(KeyNotFoundError):
    """No granted scopes have been saved for the account."""

    pass


class StoreReadError(StorageError):
    """The credential store exists but cannot be read.

    Raised for corrupted files, tampered ciphertext, or files encrypted on a
    different machine. Never masked as "not found".
    """

    pass


class StoreUnavailableError(StorageError):
    """The OS credential vault cannot be used on this machine."""

    pass


class DecryptionError(StorageError):
    """AES-GCM authentication failed (wrong key or tampered ciphertext)."""

    pass


# =============================================================================
# Input validation
# =============================================================================


class ValidationError(GoogAuthError):
    """Exception raised for invalid input.

    Attributes:
        field: The name of the field that failed validation, if applicable.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the validation error exception.

        Args:
            message: Human-readable error description.
            field: The name of the field that failed validation.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.field = field


__all__ = [
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
