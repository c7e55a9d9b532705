"""Vehicle → manual URL cache on top of any :class:`ICacheProvider`.

Entries carry their own ``expires_at`` and are checked on every read, so
correctness never depends on the backend evicting on time.  Cache
failures are logged and read as misses.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog
from pydantic import ValidationError

from manual_rag.interfaces.cache_provider import ICacheProvider
from manual_rag.models.manual import CacheEntry, ManualSource
from manual_rag.models.vehicle import VehicleDescriptor

logger = structlog.get_logger(logger_name=__name__)

CACHE_RETENTION = timedelta(days=30)
_KEY_PREFIX = "manual:"


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class ManualCache:
    """Reads and writes :class:`CacheEntry` records keyed by vehicle."""

    def __init__(
        self,
        provider: ICacheProvider,
        retention: timedelta = CACHE_RETENTION,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._provider = provider
        self._retention = retention
        self._clock = clock

    @staticmethod
    def key_for(vehicle: VehicleDescriptor) -> str:
        return f"{_KEY_PREFIX}{vehicle.cache_key()}"

    async def get(self, vehicle: VehicleDescriptor) -> CacheEntry | None:
        key = self.key_for(vehicle)
        try:
            raw = await self._provider.get(key)
        except Exception as exc:
            logger.warning("manual_cache_read_failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None

        try:
            entry = CacheEntry.model_validate(raw)
        except ValidationError as exc:
            logger.warning("manual_cache_entry_invalid", key=key, error=str(exc))
            await self._discard(key)
            return None

        if entry.is_expired(self._clock()):
            logger.info("manual_cache_entry_expired", key=key, expires_at=entry.expires_at.isoformat())
            await self._discard(key)
            return None
        return entry

    async def put(
        self,
        vehicle: VehicleDescriptor,
        manual_url: str,
        source: ManualSource,
        manual_title: str | None = None,
    ) -> CacheEntry:
        now = self._clock()
        entry = CacheEntry(
            cache_key=vehicle.cache_key(),
            vehicle=vehicle,
            manual_url=manual_url,
            manual_title=manual_title,
            source=source,
            created_at=now,
            expires_at=now + self._retention,
        )
        key = self.key_for(vehicle)
        try:
            await self._provider.set(
                key,
                entry.model_dump(mode="json"),
                ttl=int(self._retention.total_seconds()),
            )
            logger.info("manual_cache_written", key=key, source=source.value)
        except Exception as exc:
            logger.warning("manual_cache_write_failed", key=key, error=str(exc))
        return entry

    async def invalidate(self, vehicle: VehicleDescriptor) -> None:
        await self._discard(self.key_for(vehicle))

    async def _discard(self, key: str) -> None:
        try:
            await self._provider.delete(key)
        except Exception as exc:
            logger.debug("manual_cache_delete_failed", key=key, error=str(exc))
