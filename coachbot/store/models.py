"""User and Message data models."""

from __future__ import annotations

import string
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
MESSAGE_ROLES = frozenset({ROLE_USER, ROLE_ASSISTANT})

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def utc_now_iso() -> str:
    """Current UTC time, always rendered with microseconds.

    A fixed width keeps lexicographic order equal to chronological order,
    which the stores rely on when sorting ``created_at`` columns.
    """
    return datetime.now(UTC).isoformat(timespec="microseconds")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def matches_query(content: str, query: str) -> bool:
    """Substring match ignoring ASCII case, the same folding SQLite's LIKE does."""
    return query.translate(_ASCII_LOWER) in content.translate(_ASCII_LOWER)


def make_user_id() -> str:
    """Generate a new user ID."""
    return uuid.uuid4().hex


@dataclass
class User:
    """A registered account.

    Attributes:
        id: Unique identifier (UUID hex).
        email: Lowercased, unique email address.
        password_hash: Encoded digest, or None for federated (Google) users.
        name: Display name.
        google_id: Google account subject, if the user signed in with Google.
        picture: Avatar URL from the identity provider.
        created_at: ISO 8601 timestamp.
    """

    id: str
    email: str
    password_hash: str | None
    name: str
    google_id: str | None = None
    picture: str | None = None
    created_at: str = ""

    def __post_init__(self) -> None:
        self.email = normalize_email(self.email)
        if not self.created_at:
            self.created_at = utc_now_iso()

    def to_public(self) -> dict[str, Any]:
        """Client-facing representation. Never includes the password hash."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "picture": self.picture,
        }

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``users`` column order."""
        return (
            self.id,
            self.email,
            self.password_hash,
            self.name,
            self.google_id,
            self.picture,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> User:
        """Deserialize from a SQLite row tuple."""
        return cls(
            id=row[0],
            email=row[1],
            password_hash=row[2],
            name=row[3] or "",
            google_id=row[4],
            picture=row[5],
            created_at=row[6],
        )


@dataclass(frozen=True)
class Message:
    """One persisted chat turn. Append-only."""

    id: int
    user_id: str
    role: str
    content: str
    created_at: str

    @property
    def sort_key(self) -> tuple[str, int]:
        return (self.created_at, self.id)

    def to_public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.created_at,
        }

    @classmethod
    def from_row(cls, row: tuple) -> Message:
        return cls(
            id=row[0],
            user_id=row[1],
            role=row[2],
            content=row[3],
            created_at=row[4],
        )
