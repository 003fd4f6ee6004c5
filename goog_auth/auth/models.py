"""Pydantic models for OAuth tokens and token diagnostics."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Tokens this close to expiry are treated as expired
EXPIRY_DELTA = timedelta(seconds=10)


class Token(BaseModel):
    """An OAuth2 access token with its refresh token and expiry.

    Tokens are immutable; a refresh produces a new Token that replaces the
    stored one.

    Attributes:
        access_token: Short-lived bearer token.
        refresh_token: Long-lived refresh token, if the provider issued one.
        token_type: Token type, normally "Bearer".
        expiry: Absolute expiry time (UTC), or None if it never expires.

    Example:
        >>> token = Token(access_token="ya29...", expiry=None)
        >>> token.valid
        True
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., description="OAuth access token")
    refresh_token: str | None = Field(default=None, description="OAuth refresh token")
    token_type: str = Field(default="Bearer", description="Token type")
    expiry: datetime | None = Field(
        default=None, description="Absolute expiry timestamp (UTC)"
    )

    @field_validator("expiry")
    @classmethod
    def _expiry_is_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @property
    def expired(self) -> bool:
        """True if the expiry is set and (almost) reached."""
        if self.expiry is None:
            return False
        return self.expiry - EXPIRY_DELTA <= datetime.now(UTC)

    @property
    def valid(self) -> bool:
        """True if the token has an access token and is not expired."""
        return bool(self.access_token) and not self.expired


class TokenInfo(BaseModel):
    """Read-only diagnostic view of an account's stored token.

    Attributes:
        account: Account identifier.
        has_token: Whether a token is stored.
        is_expired: Whether the stored token is expired.
        scopes: Granted scopes, empty if unknown.
        token_type: Token type of the stored token.
        expiry: Expiry of the stored token, if any.
    """

    account: str
    has_token: bool = False
    is_expired: bool = False
    scopes: list[str] = Field(default_factory=list)
    token_type: str | None = None
    expiry: datetime | None = None


__all__ = [
    "Token",
    "TokenInfo",
    "EXPIRY_DELTA",
]
