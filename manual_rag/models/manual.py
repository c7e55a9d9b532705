"""Manual registry, cache and acquisition-result models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from manual_rag.models.vehicle import VehicleDescriptor


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ManualSource(str, Enum):
    """Where a manual URL came from.

    ``WEB_SEARCH`` is the degraded fallback: the URL is a search-engine
    query the user has to follow, not a verified document.
    """

    CACHE = "cache"
    COMMERCIAL_API = "commercial_api"
    OEM_FALLBACK = "oem_fallback"
    AI_DISCOVERED = "ai_discovered"
    WEB_SEARCH = "web_search"


class Manual(BaseModel):
    """One owner's manual, keyed by the vehicle it describes."""

    model_config = ConfigDict(frozen=True)

    manual_id: str = Field(description="Stable manual identifier.")
    vehicle: VehicleDescriptor
    source_url: str | None = Field(default=None, description="Where the PDF was found.")
    source: ManualSource | None = Field(default=None, description="Waterfall stage that found it.")
    storage_url: str | None = Field(default=None, description="Public URL of our mirrored copy.")
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    page_count: int | None = Field(default=None, ge=0, description="Page count estimate.")
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class CacheEntry(BaseModel):
    """A resolved manual URL remembered for a vehicle until ``expires_at``."""

    model_config = ConfigDict(frozen=True)

    cache_key: str
    vehicle: VehicleDescriptor
    manual_url: str
    manual_title: str | None = None
    source: ManualSource = Field(description="Stage that originally resolved the URL.")
    created_at: datetime = Field(default_factory=_utc_now)
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or _utc_now()) >= self.expires_at


class ManualRetrievalResult(BaseModel):
    """Outcome of one acquisition request.  Always well-formed, never an error."""

    model_config = ConfigDict(frozen=True)

    source: ManualSource
    vehicle: VehicleDescriptor
    manual_url: str | None = Field(default=None, description="Manual (or search) URL.")
    manual_title: str | None = None
    retrieved_at: datetime = Field(default_factory=_utc_now)
    cached: bool = False
    mirrored_url: str | None = Field(
        default=None, description="Public URL of the stored copy, when mirroring succeeded."
    )
    manual_id: str | None = Field(default=None, description="Registry id, when one was recorded.")
    indexing_job_id: str | None = Field(default=None, description="Background indexing job.")
