"""goog-auth: OAuth2 login and secure token storage for Google APIs."""

from goog_auth.accounts import AccountService, LoginResult
from goog_auth.auth import OAuthFlow, OAuthProvider, Token, TokenManager
from goog_auth.storage import SecureStore, open_store

__version__ = "0.1.0"

__all__ = [
    "AccountService",
    "LoginResult",
    "OAuthFlow",
    "OAuthProvider",
    "Token",
    "TokenManager",
    "SecureStore",
    "open_store",
    "__version__",
]
