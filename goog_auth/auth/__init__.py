"""OAuth 2.0 authentication for Google APIs.

This module provides the Authorization Code + PKCE flow for a desktop CLI:

- PKCE verifier/challenge and CSRF state generation
- A one-shot localhost listener that captures the OAuth redirect
- The Google provider (authorization URL, code exchange, refresh)
- Per-account token persistence on top of a secure store

Usage:
    >>> from goog_auth.auth import OAuthFlow, TokenManager, DEFAULT_SCOPES
    >>> from goog_auth.storage import open_store
    >>>
    >>> # Authenticate user (opens browser)
    >>> email, token = OAuthFlow().run(DEFAULT_SCOPES)
    >>>
    >>> # Store the token under an account alias
    >>> manager = TokenManager(open_store())
    >>> manager.save_token("work", token)
    >>>
    >>> # Later, get a token that refreshes itself
    >>> access_token = manager.get_token_source("work").token().access_token
"""

from goog_auth.auth.callback import CallbackListener
from goog_auth.auth.flow import AUTH_TIMEOUT_SECONDS, OAuthFlow, UserInfoFetcher
from goog_auth.auth.models import Token, TokenInfo
from goog_auth.auth.oauth import DEFAULT_SCOPES, OAuthProvider, TokenSource
from goog_auth.auth.pkce import (
    PKCEPair,
    generate_challenge,
    generate_pkce_pair,
    generate_state,
    generate_verifier,
)
from goog_auth.auth.tokens import TokenManager

__all__ = [
    # PKCE
    "PKCEPair",
    "generate_verifier",
    "generate_challenge",
    "generate_pkce_pair",
    "generate_state",
    # Callback
    "CallbackListener",
    # Provider
    "OAuthProvider",
    "TokenSource",
    "DEFAULT_SCOPES",
    # Tokens
    "Token",
    "TokenInfo",
    "TokenManager",
    # Flow
    "OAuthFlow",
    "UserInfoFetcher",
    "AUTH_TIMEOUT_SECONDS",
]
