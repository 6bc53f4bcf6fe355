"""SqlCredentialStore — users and messages via libsql (local SQLite or Turso)."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from typing import TYPE_CHECKING

from coachbot.db import open_database
from coachbot.errors import ChatError, Conflict, StoreError, ValidationError
from coachbot.store.models import (
    MESSAGE_ROLES,
    Message,
    User,
    make_user_id,
    normalize_email,
    utc_now_iso,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from coachbot.config import Settings
    from coachbot.db import AsyncConnection

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id            TEXT PRIMARY KEY,
        email         TEXT NOT NULL UNIQUE,
        password_hash TEXT,
        name          TEXT NOT NULL DEFAULT '',
        google_id     TEXT UNIQUE,
        picture       TEXT,
        created_at    TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id         INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id    TEXT NOT NULL,
        role       TEXT NOT NULL,
        content    TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_messages_user_time
        ON messages (user_id, created_at, id)
    """,
)

_USER_COLUMNS = "id, email, password_hash, name, google_id, picture, created_at"
_MESSAGE_COLUMNS = "id, user_id, role, content, created_at"
_LIKE_SPECIALS = re.compile(r"[\\%_]")


class SqlCredentialStore:
    """Persists users and chat messages in SQLite / Turso.

    One connection is opened lazily and held for the life of the store;
    call ``close()`` on shutdown.  Pass an explicit *db_path* for test
    isolation (e.g. ``tmp_path / "test.db"``); otherwise the target comes from
    *config*, or the process-wide settings when no config is given.
    """

    def __init__(self, db_path: Path | None = None, config: Settings | None = None) -> None:
        self._db_path = db_path
        self._config = config
        self._db: AsyncConnection | None = None
        # The driver connection is not safe for overlapping use from
        # worker threads; this lock is the store's serialization point.
        self._lock = asyncio.Lock()

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> AsyncConnection:
        if self._db is None:
            db = await open_database(self._db_path, self._config)
            await db.apply_schema(_SCHEMA)
            self._db = db
        return self._db

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncConnection]:
        """Serialize access and translate driver failures into StoreError."""
        async with self._lock:
            try:
                yield await self._connect()
            except ChatError:
                raise
            except Exception as exc:
                logger.exception("Credential store operation failed")
                raise StoreError(str(exc)) from exc

    # -- Users -----------------------------------------------------------------

    async def _find_user(self, column: str, value: str) -> User | None:
        async with self._session() as db:
            cursor = await db.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE {column} = ?",  # noqa: S608
                (value,),
            )
            row = await cursor.fetchone()
            return User.from_row(row) if row else None

    async def find_user_by_email(self, email: str) -> User | None:
        return await self._find_user("email", normalize_email(email))

    async def find_user_by_id(self, user_id: str) -> User | None:
        return await self._find_user("id", user_id)

    async def find_user_by_google_id(self, google_id: str) -> User | None:
        return await self._find_user("google_id", google_id)

    async def create_user(
        self,
        email: str,
        password_hash: str | None,
        name: str,
        *,
        google_id: str | None = None,
        picture: str | None = None,
    ) -> User:
        """Insert a user. Uniqueness is enforced by the table constraints."""
        user = User(
            id=make_user_id(),
            email=email,
            password_hash=password_hash,
            name=name,
            google_id=google_id,
            picture=picture,
        )
        async with self._session() as db:
            cursor = await db.execute(
                f"""
                INSERT INTO users ({_USER_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT DO NOTHING
                """,
                user.to_row(),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise Conflict(f"user already registered: {user.email}")
        logger.info("Created user %s", user.id)
        return user

    # -- Messages --------------------------------------------------------------

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
        ts = created_at or utc_now_iso()
        async with self._session() as db:
            cursor = await db.execute(
                "INSERT INTO messages (user_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                (user_id, role, content, ts),
            )
            await db.commit()
            message_id = cursor.lastrowid
        return Message(id=message_id, user_id=user_id, role=role, content=content, created_at=ts)

    async def _select_messages(
        self, where: str, params: tuple, limit: int | None
    ) -> list[Message]:
        """Run an ascending ``(created_at, id)`` query, keeping the newest *limit* rows."""
        async with self._session() as db:
            if limit is None:
                cursor = await db.execute(
                    f"SELECT {_MESSAGE_COLUMNS} FROM messages "  # noqa: S608
                    f"WHERE {where} ORDER BY created_at ASC, id ASC",
                    params,
                )
                rows = await cursor.fetchall()
            else:
                cursor = await db.execute(
                    f"SELECT {_MESSAGE_COLUMNS} FROM messages "  # noqa: S608
                    f"WHERE {where} ORDER BY created_at DESC, id DESC LIMIT ?",
                    (*params, max(limit, 0)),
                )
                rows = list(reversed(await cursor.fetchall()))
        return [Message.from_row(row) for row in rows]

    async def list_messages(self, user_id: str, limit: int | None = None) -> list[Message]:
        return await self._select_messages("user_id = ?", (user_id,), limit)

    async def search_messages(
        self, user_id: str, query: str, limit: int | None = None
    ) -> list[Message]:
        # SQLite's LIKE ignores case for ASCII letters only.
        pattern = "%" + _LIKE_SPECIALS.sub(r"\\\g<0>", query) + "%"
        return await self._select_messages(
            "user_id = ? AND content LIKE ? ESCAPE '\\'", (user_id, pattern), limit
        )

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
