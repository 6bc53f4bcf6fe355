"""Account flows: email signup, email login, and Google sign-in."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from coachbot.auth.google import verify_google_credential
from coachbot.auth.passwords import hash_password, verify_password
from coachbot.errors import Conflict, Unauthorized, ValidationError
from coachbot.store.models import normalize_email

if TYPE_CHECKING:
    from coachbot.auth.tokens import TokenService
    from coachbot.store.base import CredentialStore
    from coachbot.store.models import User

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100


@dataclass(frozen=True)
class AuthResult:
    """A freshly issued token and the account it belongs to."""

    token: str
    user: User


def _validate_email(email: str) -> str:
    normalized = normalize_email(email)
    local, at, domain = normalized.partition("@")
    if not at or not local or not domain or "@" in domain or " " in normalized:
        raise ValidationError("a valid email is required")
    return normalized


class AuthService:
    """Issues tokens for users who prove who they are."""

    def __init__(
        self,
        store: CredentialStore,
        tokens: TokenService,
        google_client_id: str = "",
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._google_client_id = google_client_id

    async def signup(self, email: str, password: str, name: str) -> AuthResult:
        """Create an email/password account. Raises ``Conflict`` on reuse."""
        normalized = _validate_email(email)
        name = (name or "").strip()[:MAX_NAME_LENGTH] or normalized.split("@")[0]
        if not password:
            raise ValidationError("password is required")

        # Fail fast on the common duplicate case; the store enforces it atomically.
        if await self._store.find_user_by_email(normalized) is not None:
            raise Conflict(f"email already registered: {normalized}")

        digest = await asyncio.to_thread(hash_password, password)
        user = await self._store.create_user(normalized, digest, name)
        logger.info("Signup: user=%s", user.id)
        return AuthResult(token=self._tokens.issue(user.id), user=user)

    async def login(self, email: str, password: str) -> AuthResult:
        """Check email/password. Every failure is the same ``Unauthorized``."""
        user = await self._store.find_user_by_email(email or "")
        if user is None or not user.password_hash:
            raise Unauthorized("invalid credentials")
        ok = await asyncio.to_thread(verify_password, password or "", user.password_hash)
        if not ok:
            logger.info("Login failed: user=%s", user.id)
            raise Unauthorized("invalid credentials")
        logger.info("Login: user=%s", user.id)
        return AuthResult(token=self._tokens.issue(user.id), user=user)

    async def google_login(self, credential: str) -> AuthResult:
        """Sign in with a Google ID token, creating the account on first use."""
        identity = await verify_google_credential(credential, self._google_client_id)

        user = await self._store.find_user_by_google_id(identity.subject)
        if user is None:
            user = await self._store.find_user_by_email(identity.email)
        if user is None:
            try:
                user = await self._store.create_user(
                    identity.email,
                    None,
                    identity.name,
                    google_id=identity.subject,
                    picture=identity.picture,
                )
            except Conflict:
                # A concurrent first sign-in created it; use that row.
                user = await self._store.find_user_by_email(identity.email)
                if user is None:
                    raise
        logger.info("Google login: user=%s", user.id)
        return AuthResult(token=self._tokens.issue(user.id), user=user)

