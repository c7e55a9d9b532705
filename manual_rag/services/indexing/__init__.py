"""Manual indexing: chunking, embedding and storage."""

from manual_rag.services.indexing.chunker import ManualChunker
from manual_rag.services.indexing.indexing_service import IndexingService

__all__ = ["IndexingService", "ManualChunker"]
