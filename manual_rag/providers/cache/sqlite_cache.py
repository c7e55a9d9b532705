"""SQLite-backed cache provider.

Persists JSON values with an absolute expiry so cached manual URLs
survive restarts.  Uses ``aiosqlite`` for async I/O.  Expired rows are
treated as absent and deleted when read.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from manual_rag.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/manual_cache.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS cache_entries (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    expires_at  REAL NOT NULL
);
"""

_UPSERT_SQL = """\
INSERT INTO cache_entries (key, value, expires_at)
VALUES (?, ?, ?)
ON CONFLICT(key)
DO UPDATE SET value = excluded.value, expires_at = excluded.expires_at;
"""


class SQLiteCacheProvider(ICacheProvider):
    """Persistent key-value cache with per-entry expiry."""

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        ttl: int = 3600,
        clock=time.time,
    ) -> None:
        self._db_path = Path(db_path)
        self._default_ttl = ttl
        self._clock = clock

    async def initialize(self) -> None:
        """Create the cache table if it doesn't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries(expires_at);"
            )
            await db.commit()
        logger.info("cache_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT value, expires_at FROM cache_entries WHERE key = ?", (key,)
            )
            row = await cursor.fetchone()
            if row is None:
                logger.debug("cache_miss", key=key)
                return None
            value, expires_at = row
            if expires_at <= self._clock():
                await db.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                await db.commit()
                logger.debug("cache_expired", key=key)
                return None
        logger.debug("cache_hit", key=key)
        return json.loads(value)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = self._clock() + (ttl if ttl is not None else self._default_ttl)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_UPSERT_SQL, (key, json.dumps(value), expires_at))
            await db.commit()
        logger.debug("cache_set", key=key)

    async def delete(self, key: str) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
            await db.commit()
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT 1 FROM cache_entries WHERE key = ? AND expires_at > ?",
                (key, self._clock()),
            )
            return await cursor.fetchone() is not None

    async def purge_expired(self) -> int:
        """Delete every expired row and return how many were removed."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "DELETE FROM cache_entries WHERE expires_at <= ?", (self._clock(),)
            )
            await db.commit()
            removed = cursor.rowcount
        logger.info("cache_purged", removed=removed)
        return removed
