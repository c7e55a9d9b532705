"""Abstract base class for the combined lexical + vector chunk store."""

from __future__ import annotations

from abc import ABC, abstractmethod

from manual_rag.models.chunk import ManualChunk, ScoredChunk


# Concrete implementations:
#   ChromaDBChunkStore - ChromaDB vectors + rank_bm25 lexical ranking
# Located in: manual_rag/providers/vector_store/
class IManualChunkStore(ABC):
    """Contract for persisting manual chunks and querying them two ways.

    Both search methods return at most *limit* results, best first, and
    accept an optional ``manual_id`` that scopes the search to one manual.
    """

    @abstractmethod
    async def upsert_chunks(
        self,
        chunks: list[ManualChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Insert or replace *chunks* with their *embeddings*.

        Parameters
        ----------
        chunks:
            Chunks to store.  Re-upserting the same chunk ids overwrites.
        embeddings:
            One vector per chunk, positionally aligned with *chunks*.

        Returns
        -------
        int
            Number of chunks actually stored.  Writes are batched and a
            failed batch is skipped, so this may be less than
            ``len(chunks)``.

        Raises
        ------
        manual_rag.utils.errors.EmbeddingDimensionError
            If any vector's length differs from the store's dimension.
        """

    @abstractmethod
    async def lexical_search(
        self,
        query: str,
        manual_id: str | None = None,
        limit: int = 16,
    ) -> list[ScoredChunk]:
        """Rank chunks by BM25, preferring those containing every query term."""

    @abstractmethod
    async def vector_search(
        self,
        query_embedding: list[float],
        manual_id: str | None = None,
        limit: int = 16,
        threshold: float = 0.65,
    ) -> list[ScoredChunk]:
        """Rank chunks by cosine similarity, dropping those below *threshold*."""

    @abstractmethod
    async def delete_manual(self, manual_id: str) -> int:
        """Delete every chunk of *manual_id* and return how many were removed."""

    @abstractmethod
    async def count_chunks(self, manual_id: str | None = None) -> int:
        """Return the number of stored chunks, optionally for one manual."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"chromadb"``."""
