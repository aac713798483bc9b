"""Authentication glue: login call and token storage."""

from .login import login, LoginError, LoginResponse, LoginUser
from .token_store import AuthToken, TokenStore, TokenStoreError, TokenType

__all__ = [
    "login",
    "LoginError",
    "LoginResponse",
    "LoginUser",
    "AuthToken",
    "TokenStore",
    "TokenStoreError",
    "TokenType"
]
