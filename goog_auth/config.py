"""OAuth client configuration read from the environment.

The auth subsystem only needs a client id, a client secret and an optional
redirect port from the rest of the application. They are read from:

- GOOG_CLIENT_ID: OAuth2 client ID
- GOOG_CLIENT_SECRET: OAuth2 client secret
- GOOG_REDIRECT_PORT: Localhost port for the callback (default: 8085)
- GOOG_CONFIG_DIR: Base directory for the file credential store
  (default: ~/.config/goog)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Environment variable names
ENV_CLIENT_ID = "GOOG_CLIENT_ID"
ENV_CLIENT_SECRET = "GOOG_CLIENT_SECRET"
ENV_REDIRECT_PORT = "GOOG_REDIRECT_PORT"
ENV_CONFIG_DIR = "GOOG_CONFIG_DIR"

DEFAULT_REDIRECT_PORT = 8085
DEFAULT_REDIRECT_PATH = "/callback"

# Google OAuth endpoints
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class OAuthSettings(BaseModel):
    """OAuth client settings.

    Attributes:
        client_id: OAuth client ID.
        client_secret: OAuth client secret.
        redirect_port: Preferred localhost port for the redirect listener.
        auth_uri: Authorization endpoint.
        token_uri: Token endpoint (code exchange and refresh).

    Example:
        >>> settings = OAuthSettings.from_env()
        >>> settings.redirect_port
        8085
    """

    client_id: str = Field(default="", description="OAuth client ID")
    client_secret: str = Field(default="", description="OAuth client secret")
    redirect_port: int = Field(
        default=DEFAULT_REDIRECT_PORT,
        ge=0,
        le=65535,
        description="Preferred localhost port for the OAuth redirect",
    )
    auth_uri: str = Field(default=GOOGLE_AUTH_URI, description="Authorization URL")
    token_uri: str = Field(default=GOOGLE_TOKEN_URI, description="Token URL")

    @property
    def is_configured(self) -> bool:
        """Check if both client ID and secret are set."""
        return bool(self.client_id and self.client_secret)

    @property
    def redirect_uri(self) -> str:
        """Default redirect URI for the configured port."""
        return f"http://localhost:{self.redirect_port}{DEFAULT_REDIRECT_PATH}"

    @classmethod
    def from_env(cls) -> OAuthSettings:
        """Build settings from environment variables.

        An unparseable GOOG_REDIRECT_PORT is logged and replaced by the
        default port.
        """
        port = DEFAULT_REDIRECT_PORT
        raw_port = os.getenv(ENV_REDIRECT_PORT, "").strip()
        if raw_port:
            try:
                port = int(raw_port)
            except ValueError:
                logger.warning(
                    "Ignoring invalid %s=%r, using port %d",
                    ENV_REDIRECT_PORT,
                    raw_port,
                    DEFAULT_REDIRECT_PORT,
                )
            else:
                if not 0 <= port <= 65535:
                    logger.warning(
                        "Ignoring out-of-range %s=%d, using port %d",
                        ENV_REDIRECT_PORT,
                        port,
                        DEFAULT_REDIRECT_PORT,
                    )
                    port = DEFAULT_REDIRECT_PORT

        return cls(
            client_id=os.getenv(ENV_CLIENT_ID, ""),
            client_secret=os.getenv(ENV_CLIENT_SECRET, ""),
            redirect_port=port,
        )


def default_config_dir() -> Path:
    """Return the application configuration directory.

    Honors GOOG_CONFIG_DIR, otherwise ``~/.config/goog``.
    """
    override = os.getenv(ENV_CONFIG_DIR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "goog"


__all__ = [
    "OAuthSettings",
    "default_config_dir",
    "ENV_CLIENT_ID",
    "ENV_CLIENT_SECRET",
    "ENV_REDIRECT_PORT",
    "ENV_CONFIG_DIR",
    "DEFAULT_REDIRECT_PORT",
    "DEFAULT_REDIRECT_PATH",
    "GOOGLE_AUTH_URI",
    "GOOGLE_TOKEN_URI",
]
