"""Abstract base class for key-value cache providers.

Backs the manual URL cache.  Implementations may be in-process
(``cachetools``) or persistent (SQLite); values are JSON-compatible dicts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementations:
#   MemoryCacheProvider  - cachetools.TLRUCache, single process
#   SQLiteCacheProvider  - aiosqlite, survives restarts
# Located in: manual_rag/providers/cache/
class ICacheProvider(ABC):
    """Contract for key-value caches with per-entry TTL."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under *key*, or ``None`` if missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*.

        Parameters
        ----------
        key:
            Cache key.
        value:
            JSON-compatible value.
        ttl:
            Time-to-live in seconds.  ``None`` uses the provider default.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key* (no-op when absent)."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""
