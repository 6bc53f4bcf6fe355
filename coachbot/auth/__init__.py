"""Authentication — password hashing, bearer tokens, and account flows."""

from coachbot.auth.service import AuthResult, AuthService
from coachbot.auth.session import Identity, authenticate
from coachbot.auth.tokens import TokenService

__all__ = [
    "AuthResult",
    "AuthService",
    "Identity",
    "TokenService",
    "authenticate",
]
