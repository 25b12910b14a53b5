"""
Key-Value Blob Store
====================

Minimal async key -> text store backing the ride log.

Usage:
    store = SqliteBlobStore("logs/rides.db")
    await store.init_schema()

    await store.put("routes", "[]")
    raw = await store.get("routes")

    await store.close()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from .schema import BLOB_SCHEMA

logger = logging.getLogger(__name__)

# Exceptions a backend may raise for I/O failures
BACKEND_ERRORS: tuple[type[BaseException], ...] = (OSError, aiosqlite.Error)


class BlobStore(ABC):
    """Async key-value store of text blobs."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the blob stored under ``key`` or None."""

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        """Replace the blob stored under ``key``."""

    async def close(self) -> None:
        """Release backend resources."""


class MemoryBlobStore(BlobStore):
    """In-process store for tests and dry runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def put(self, key: str, value: str) -> None:
        self.data[key] = value


class SqliteBlobStore(BlobStore):
    """
    Blob store on a single SQLite table using aiosqlite.

    A connection is opened per operation; nothing is held between calls.
    """

    def __init__(self, db_path: str | Path, connect_timeout: float = 30.0) -> None:
        self.db_path = Path(db_path)
        self.connect_timeout = connect_timeout
        self._initialized = False

    async def init_schema(self) -> None:
        """Create the database directory and schema. Runs on first use if not called."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._get_connection() as conn:
            await conn.executescript(BLOB_SCHEMA)
            await conn.commit()
        self._initialized = True
        logger.info("Blob store initialized: %s", self.db_path)

    @asynccontextmanager
    async def _get_connection(self) -> AsyncIterator[aiosqlite.Connection]:
        conn = await aiosqlite.connect(str(self.db_path), timeout=self.connect_timeout)
        await conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
        finally:
            await conn.close()

    async def _ensure_schema(self) -> None:
        if not self._initialized:
            await self.init_schema()

    async def get(self, key: str) -> str | None:
        if not self._initialized and not self.db_path.exists():
            return None
        await self._ensure_schema()
        async with self._get_connection() as conn:
            cursor = await conn.execute("SELECT value FROM blobs WHERE key = ?", (key,))
            row = await cursor.fetchone()
            return row[0] if row else None

    async def put(self, key: str, value: str) -> None:
        await self._ensure_schema()
        now = datetime.now(UTC).isoformat()
        async with self._get_connection() as conn:
            await conn.execute(
                """
                INSERT INTO blobs (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, now),
            )
            await conn.commit()
        logger.debug("Blob %s written (%d bytes)", key, len(value))
