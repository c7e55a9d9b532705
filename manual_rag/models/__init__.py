"""Pydantic models for vehicles, manuals, chunks, retrieval and indexing."""

from manual_rag.models.acquisition import (
    AcquisitionStage,
    DiscoveredManualUrl,
    LookupMissReason,
    ManualLookupHit,
    ManualLookupMiss,
    ManualLookupOutcome,
    ProgressEvent,
)
from manual_rag.models.chunk import (
    ChunkLevel,
    ContentType,
    GroundedContext,
    ManualChunk,
    RetrievalMethod,
    RetrievalResult,
    ScoredChunk,
    SearchOptions,
)
from manual_rag.models.indexing import (
    ExtractedText,
    IndexingJob,
    IndexingResult,
    IndexingStatus,
)
from manual_rag.models.manual import (
    CacheEntry,
    Manual,
    ManualRetrievalResult,
    ManualSource,
    ProcessingStatus,
)
from manual_rag.models.vehicle import VehicleDescriptor

__all__ = [
    "AcquisitionStage",
    "CacheEntry",
    "ChunkLevel",
    "ContentType",
    "DiscoveredManualUrl",
    "ExtractedText",
    "GroundedContext",
    "IndexingJob",
    "IndexingResult",
    "IndexingStatus",
    "LookupMissReason",
    "Manual",
    "ManualChunk",
    "ManualLookupHit",
    "ManualLookupMiss",
    "ManualLookupOutcome",
    "ManualRetrievalResult",
    "ManualSource",
    "ProcessingStatus",
    "ProgressEvent",
    "RetrievalMethod",
    "RetrievalResult",
    "ScoredChunk",
    "SearchOptions",
    "VehicleDescriptor",
]
