"""In-memory cache provider using cachetools.

Suitable for tests and single-process use; entries vanish on restart.
``TLRUCache`` gives every entry its own expiry so the per-call ``ttl``
is honoured.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import structlog
from cachetools import TLRUCache

from manual_rag.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class _Entry:
    value: Any
    ttl: float


def _time_to_use(_key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by ``cachetools.TLRUCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Default time-to-live in seconds.
    """

    def __init__(self, max_size: int = 1000, ttl: int = 3600, timer=time.monotonic) -> None:
        self._default_ttl = ttl
        self._cache: TLRUCache[str, _Entry] = TLRUCache(
            maxsize=max_size, ttu=_time_to_use, timer=timer
        )

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return entry.value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        self._cache[key] = _Entry(value=value, ttl=ttl if ttl is not None else self._default_ttl)
        logger.debug("cache_set", key=key)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        return key in self._cache
