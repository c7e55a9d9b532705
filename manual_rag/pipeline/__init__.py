"""Acquisition orchestration, background indexing and progress reporting."""

from manual_rag.pipeline.indexing_queue import IndexingQueue, IndexingRequest
from manual_rag.pipeline.orchestrator import ManualAcquisitionPipeline
from manual_rag.pipeline.progress_tracker import ProgressReporter

__all__ = [
    "IndexingQueue",
    "IndexingRequest",
    "ManualAcquisitionPipeline",
    "ProgressReporter",
]
