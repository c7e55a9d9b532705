"""ChromaDB chunk store with BM25 lexical ranking.

Wraps ``chromadb.PersistentClient`` to implement :class:`IManualChunkStore`.
Vectors are compared by cosine distance inside ChromaDB.  Lexical search
loads the scoped manual's documents from the same collection and ranks
them with ``rank_bm25.BM25Plus``; the per-scope index is rebuilt lazily
after any write and only the most recently used scopes stay cached.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Any

# Must be set before chromadb is imported.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog
from cachetools import LRUCache
from rank_bm25 import BM25Plus

from manual_rag.interfaces.chunk_store import IManualChunkStore
from manual_rag.models.chunk import ChunkLevel, ContentType, ManualChunk, ScoredChunk
from manual_rag.utils.errors import EmbeddingDimensionError
from manual_rag.utils.text import query_terms, tokenize

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_BATCH_SIZE = 50
_GET_PAGE_SIZE = 1000
_ALL_MANUALS = "*"
_MAX_CACHED_LEXICAL_INDEXES = 32


@dataclass
class _LexicalIndex:
    """BM25 state for one search scope (one manual, or everything)."""

    chunks: list[ManualChunk]
    token_sets: list[frozenset[str]]
    bm25: BM25Plus


class ChromaDBChunkStore(IManualChunkStore):
    """Chunk store backed by a persistent ChromaDB collection.

    Parameters
    ----------
    persist_directory:
        Directory ChromaDB writes to.
    collection_name:
        Collection holding every manual's chunks.
    dimension:
        Expected embedding length.  When ``None`` it is learned from the
        stored vectors or the first upsert.
    batch_size:
        Rows per write (at most 50).
    max_cached_indexes:
        Lexical indexes kept in memory; the least recently searched scope
        is dropped first.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "owner_manual_chunks",
        dimension: int | None = None,
        batch_size: int = _DEFAULT_BATCH_SIZE,
        max_cached_indexes: int = _MAX_CACHED_LEXICAL_INDEXES,
    ) -> None:
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # embedding_function=None: vectors always come precomputed.
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )
        self._dimension = dimension
        self._batch_size = max(1, min(batch_size, _DEFAULT_BATCH_SIZE))
        self._lexical_indexes: LRUCache[str, _LexicalIndex] = LRUCache(
            maxsize=max(1, max_cached_indexes)
        )

        self._validate_embedding_dimensions()

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def _validate_embedding_dimensions(self) -> None:
        """Compare one stored vector against the expected dimension."""
        if self._collection.count() == 0:
            return
        sample = self._collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return

        stored_dim = len(embeddings[0])
        if self._dimension is None:
            self._dimension = stored_dim
            return
        if stored_dim != self._dimension:
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dim,
                expected_dim=self._dimension,
            )
            raise EmbeddingDimensionError(
                message=(
                    f"Chunk store holds {stored_dim}-dim vectors but the embedding "
                    f"provider produces {self._dimension}-dim vectors; reindex required."
                ),
                provider_name=self.get_provider_name(),
            )

    # ------------------------------------------------------------------
    # IManualChunkStore implementation
    # ------------------------------------------------------------------

    async def upsert_chunks(
        self,
        chunks: list[ManualChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Write chunks in batches of at most 50, skipping failed batches."""
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Got {len(chunks)} chunks but {len(embeddings)} embeddings"
            )
        if not chunks:
            return 0
        self._check_dimensions(embeddings)

        stored = 0
        for start in range(0, len(chunks), self._batch_size):
            batch = chunks[start : start + self._batch_size]
            vectors = embeddings[start : start + self._batch_size]
            try:
                await asyncio.to_thread(
                    self._collection.upsert,
                    ids=[chunk.chunk_id for chunk in batch],
                    embeddings=vectors,
                    documents=[chunk.text for chunk in batch],
                    metadatas=[self._chunk_to_metadata(chunk) for chunk in batch],
                )
            except Exception as exc:
                logger.warning(
                    "chunk_batch_store_failed",
                    manual_id=batch[0].manual_id,
                    batch_start=start,
                    batch_size=len(batch),
                    error=str(exc),
                )
                continue
            stored += len(batch)

        self._lexical_indexes.clear()
        logger.info(
            "chunks_upserted",
            manual_id=chunks[0].manual_id,
            requested=len(chunks),
            stored=stored,
        )
        return stored

    async def lexical_search(
        self,
        query: str,
        manual_id: str | None = None,
        limit: int = 16,
    ) -> list[ScoredChunk]:
        """Return chunks ranked by BM25 for *query*.

        Chunks containing every query term are preferred.  When none does,
        chunks containing any query term are ranked instead, so a query
        such as "5W-30 oil type" still matches the chunk quoting 5W-30.
        Ties keep manual order (``chunk_index``).
        """
        terms = query_terms(query)
        if not terms or limit <= 0:
            return []

        index = await self._get_lexical_index(manual_id)
        if index is None:
            return []

        required = set(terms)
        candidates = [i for i, tokens in enumerate(index.token_sets) if required <= tokens]
        if not candidates:
            candidates = [i for i, tokens in enumerate(index.token_sets) if tokens & required]
            logger.debug(
                "lexical_search_any_term",
                manual_id=manual_id,
                terms=terms,
                candidates=len(candidates),
            )
        if not candidates:
            return []

        scores = index.bm25.get_scores(terms)
        candidates.sort(key=lambda i: (-float(scores[i]), index.chunks[i].chunk_index))
        return [
            ScoredChunk(chunk=index.chunks[i], score=float(scores[i]))
            for i in candidates[:limit]
        ]

    async def vector_search(
        self,
        query_embedding: list[float],
        manual_id: str | None = None,
        limit: int = 16,
        threshold: float = 0.65,
    ) -> list[ScoredChunk]:
        """Return the nearest chunks with cosine similarity of at least *threshold*."""
        if limit <= 0:
            return []
        total = await asyncio.to_thread(self._collection.count)
        if total == 0:
            return []

        kwargs: dict[str, Any] = {
            "query_embeddings": [query_embedding],
            "n_results": min(limit, total),
            "include": ["documents", "metadatas", "distances"],
        }
        if manual_id:
            kwargs["where"] = {"manual_id": manual_id}

        results = await asyncio.to_thread(self._collection.query, **kwargs)

        ids = results["ids"][0] if results.get("ids") else []
        documents = results["documents"][0] if results.get("documents") else []
        metadatas = results["metadatas"][0] if results.get("metadatas") else []
        distances = results["distances"][0] if results.get("distances") else []

        scored: list[ScoredChunk] = []
        for chunk_id, document, metadata, distance in zip(ids, documents, metadatas, distances):
            similarity = 1.0 - float(distance)
            if similarity < threshold:
                continue
            chunk = self._metadata_to_chunk(chunk_id, document or "", metadata or {})
            scored.append(ScoredChunk(chunk=chunk, score=similarity))

        scored.sort(key=lambda item: -item.score)
        return scored[:limit]

    async def delete_manual(self, manual_id: str) -> int:
        existing = await asyncio.to_thread(
            self._collection.get, where={"manual_id": manual_id}, include=["metadatas"]
        )
        ids = existing.get("ids") or []
        if ids:
            await asyncio.to_thread(self._collection.delete, ids=ids)
        self._lexical_indexes.clear()
        logger.info("manual_chunks_deleted", manual_id=manual_id, deleted=len(ids))
        return len(ids)

    async def count_chunks(self, manual_id: str | None = None) -> int:
        if manual_id is None:
            return await asyncio.to_thread(self._collection.count)
        existing = await asyncio.to_thread(
            self._collection.get, where={"manual_id": manual_id}, include=["metadatas"]
        )
        return len(existing.get("ids") or [])

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Lexical index
    # ------------------------------------------------------------------

    async def _get_lexical_index(self, manual_id: str | None) -> _LexicalIndex | None:
        scope = manual_id or _ALL_MANUALS
        cached = self._lexical_indexes.get(scope)
        if cached is not None:
            return cached

        chunks = await asyncio.to_thread(self._load_chunks, manual_id)
        if not chunks:
            return None

        chunks.sort(key=lambda chunk: (chunk.manual_id, chunk.chunk_index))
        corpus = [tokenize(f"{chunk.section_title or ''} {chunk.text}") for chunk in chunks]
        index = _LexicalIndex(
            chunks=chunks,
            token_sets=[frozenset(tokens) for tokens in corpus],
            bm25=BM25Plus(corpus),
        )
        self._lexical_indexes[scope] = index
        logger.debug("lexical_index_built", scope=scope, documents=len(chunks))
        return index

    def _load_chunks(self, manual_id: str | None) -> list[ManualChunk]:
        """Page through the collection and rebuild chunks for *manual_id*."""
        chunks: list[ManualChunk] = []
        offset = 0
        while True:
            kwargs: dict[str, Any] = {
                "include": ["documents", "metadatas"],
                "limit": _GET_PAGE_SIZE,
                "offset": offset,
            }
            if manual_id:
                kwargs["where"] = {"manual_id": manual_id}
            page = self._collection.get(**kwargs)
            ids = page.get("ids") or []
            if not ids:
                break
            documents = page.get("documents") or [""] * len(ids)
            metadatas = page.get("metadatas") or [{}] * len(ids)
            for chunk_id, document, metadata in zip(ids, documents, metadatas):
                chunks.append(self._metadata_to_chunk(chunk_id, document or "", metadata or {}))
            if len(ids) < _GET_PAGE_SIZE:
                break
            offset += _GET_PAGE_SIZE
        return chunks

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------

    def _check_dimensions(self, embeddings: list[list[float]]) -> None:
        expected = self._dimension if self._dimension is not None else len(embeddings[0])
        for vector in embeddings:
            if len(vector) != expected:
                raise EmbeddingDimensionError(
                    message=f"Expected {expected}-dim vectors, got {len(vector)}",
                    provider_name=self.get_provider_name(),
                )
        self._dimension = expected

    @staticmethod
    def _chunk_to_metadata(chunk: ManualChunk) -> dict[str, Any]:
        """Flatten a chunk into ChromaDB metadata.  ``None`` values are omitted."""
        metadata: dict[str, Any] = {
            "manual_id": chunk.manual_id,
            "chunk_index": chunk.chunk_index,
            "level": chunk.level.value,
            "token_count": chunk.token_count,
            "content_type": chunk.content_type.value,
            "keywords": "|".join(chunk.keywords),
        }
        optional = {
            "parent_chunk_id": chunk.parent_chunk_id,
            "page_number": chunk.page_number,
            "section_title": chunk.section_title,
            "vehicle_make": chunk.vehicle_make,
            "vehicle_model": chunk.vehicle_model,
            "model_year": chunk.model_year,
        }
        metadata.update({key: value for key, value in optional.items() if value is not None})
        return metadata

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, document: str, metadata: dict[str, Any]) -> ManualChunk:
        keywords = metadata.get("keywords") or ""
        return ManualChunk(
            chunk_id=chunk_id,
            manual_id=str(metadata.get("manual_id", "")),
            chunk_index=int(metadata.get("chunk_index", 0)),
            level=ChunkLevel(metadata.get("level", ChunkLevel.SECTION.value)),
            parent_chunk_id=metadata.get("parent_chunk_id"),
            text=document,
            token_count=int(metadata.get("token_count", 0)),
            page_number=metadata.get("page_number"),
            section_title=metadata.get("section_title"),
            content_type=ContentType(metadata.get("content_type", ContentType.GENERAL.value)),
            keywords=[keyword for keyword in keywords.split("|") if keyword],
            vehicle_make=metadata.get("vehicle_make"),
            vehicle_model=metadata.get("vehicle_model"),
            model_year=metadata.get("model_year"),
        )
