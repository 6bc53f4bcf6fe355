"""libsql access for the credential store.

The ``libsql`` driver is synchronous; every call is pushed onto a worker
thread with ``asyncio.to_thread()``.  Where the database lives:

- an explicit *path* (tests, tooling) always wins;
- ``TURSO_DATABASE_URL`` + ``TURSO_AUTH_TOKEN`` → remote Turso;
- otherwise the local SQLite file at ``DATABASE_PATH``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import libsql

from coachbot.config import settings

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from coachbot.config import Settings

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_MS = 5000


class AsyncCursor:
    """Result of one statement: rows plus the write counters.

    ``rowcount`` and ``lastrowid`` are captured when the statement runs, so
    later statements on the same connection do not change them.
    """

    def __init__(self, cursor: Any, rowcount: int, lastrowid: int | None) -> None:
        self._cursor = cursor
        # Rows written by the statement; 0 when an upsert was skipped.
        self.rowcount = rowcount
        self.lastrowid = lastrowid

    async def fetchone(self) -> tuple | None:
        return await asyncio.to_thread(self._cursor.fetchone)

    async def fetchall(self) -> list[tuple]:
        return await asyncio.to_thread(self._cursor.fetchall)


class AsyncConnection:
    """One libsql connection. Not safe for overlapping use; callers serialize."""

    def __init__(self, conn: Any, target: str) -> None:
        self._conn = conn
        self.target = target

    def _execute(self, sql: str, params: tuple) -> AsyncCursor:
        cursor = self._conn.execute(sql, params)
        return AsyncCursor(cursor, cursor.rowcount, cursor.lastrowid)

    async def execute(self, sql: str, params: tuple = ()) -> AsyncCursor:
        return await asyncio.to_thread(self._execute, sql, params)

    async def apply_schema(self, statements: Iterable[str]) -> None:
        """Run idempotent DDL statements and commit them together."""
        for statement in statements:
            await self.execute(statement)
        await self.commit()

    async def commit(self) -> None:
        await asyncio.to_thread(self._conn.commit)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)
        logger.debug("Closed database %s", self.target)


def _open_file(path: Path) -> Any:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = libsql.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    return conn


async def open_database(
    path: Path | None = None, config: Settings | None = None
) -> AsyncConnection:
    """Open the credential database described by *path* or *config*."""
    config = config or settings

    if path is None and config.turso_database_url:
        conn = await asyncio.to_thread(
            libsql.connect,
            database=config.turso_database_url,
            auth_token=config.turso_auth_token,
        )
        logger.info("Connected to Turso database")
        return AsyncConnection(conn, "turso")

    target = path or config.database_path
    conn = await asyncio.to_thread(_open_file, target)
    logger.info("Opened SQLite database at %s", target)
    return AsyncConnection(conn, str(target))
