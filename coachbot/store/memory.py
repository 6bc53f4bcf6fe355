"""In-process CredentialStore for tests and single-process development."""

from __future__ import annotations

import itertools
import logging

from coachbot.errors import Conflict, ValidationError
from coachbot.store.models import (
    MESSAGE_ROLES,
    Message,
    User,
    make_user_id,
    matches_query,
    normalize_email,
    utc_now_iso,
)

logger = logging.getLogger(__name__)


class MemoryCredentialStore:
    """Keeps users and messages in dicts.

    No method awaits between reading and writing shared state, so each call
    is atomic with respect to other coroutines on the same event loop.
    """

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._ids_by_email: dict[str, str] = {}
        self._ids_by_google_id: dict[str, str] = {}
        self._messages: dict[str, list[Message]] = {}
        self._next_id = itertools.count(1)

    async def find_user_by_email(self, email: str) -> User | None:
        user_id = self._ids_by_email.get(normalize_email(email))
        return self._users.get(user_id) if user_id else None

    async def find_user_by_id(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def find_user_by_google_id(self, google_id: str) -> User | None:
        user_id = self._ids_by_google_id.get(google_id)
        return self._users.get(user_id) if user_id else None

    async def create_user(
        self,
        email: str,
        password_hash: str | None,
        name: str,
        *,
        google_id: str | None = None,
        picture: str | None = None,
    ) -> User:
        key = normalize_email(email)
        if key in self._ids_by_email:
            raise Conflict(f"email already registered: {key}")
        if google_id is not None and google_id in self._ids_by_google_id:
            raise Conflict(f"google account already linked: {google_id}")
        user = User(
            id=make_user_id(),
            email=key,
            password_hash=password_hash,
            name=name,
            google_id=google_id,
            picture=picture,
        )
        self._users[user.id] = user
        self._ids_by_email[key] = user.id
        if google_id is not None:
            self._ids_by_google_id[google_id] = user.id
        logger.info("Created user %s", user.id)
        return user

    async def append_message(
        self,
        user_id: str,
        role: str,
        content: str,
        *,
        created_at: str | None = None,
    ) -> Message:
        if role not in MESSAGE_ROLES:
            raise ValidationError(f"invalid role: {role}")
        message = Message(
            id=next(self._next_id),
            user_id=user_id,
            role=role,
            content=content,
            created_at=created_at or utc_now_iso(),
        )
        self._messages.setdefault(user_id, []).append(message)
        return message

    async def list_messages(self, user_id: str, limit: int | None = None) -> list[Message]:
        messages = sorted(self._messages.get(user_id, []), key=lambda m: m.sort_key)
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []
        return messages

    async def search_messages(
        self, user_id: str, query: str, limit: int | None = None
    ) -> list[Message]:
        matches = [m for m in self._messages.get(user_id, []) if matches_query(m.content, query)]
        matches.sort(key=lambda m: m.sort_key)
        if limit is not None:
            matches = matches[-limit:] if limit > 0 else []
        return matches

    async def close(self) -> None:
        return None
