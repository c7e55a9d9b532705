"""Two-leg retrieval fused with Reciprocal Rank Fusion (RRF).

Lexical search catches exact tokens that embeddings blur ("5W-30",
"32 psi"); vector search catches paraphrases that share no words with
the chunk.  Both legs run concurrently and each asks for ``2 × limit``
candidates.  An item at 0-indexed rank ``r`` in a leg earns
``weight / (K + r + 1)``; a chunk found by both legs sums its two partial
scores and is tagged ``hybrid``.
"""

from __future__ import annotations

import asyncio

import structlog

from manual_rag.interfaces.chunk_store import IManualChunkStore
from manual_rag.interfaces.embedding_provider import IEmbeddingProvider
from manual_rag.interfaces.manual_repository import IManualRepository
from manual_rag.models.chunk import (
    RetrievalMethod,
    RetrievalResult,
    ScoredChunk,
    SearchOptions,
)
from manual_rag.models.vehicle import VehicleDescriptor
from manual_rag.utils.logging import get_logger

RRF_K = 60
QUICK_SEARCH_LIMIT = 5


def reciprocal_rank_fusion(
    lexical: list[ScoredChunk],
    semantic: list[ScoredChunk],
    limit: int,
    lexical_weight: float = 0.4,
    semantic_weight: float = 0.6,
    k: int = RRF_K,
) -> list[RetrievalResult]:
    """Fuse two ranked lists into at most *limit* results, best first.

    Equal scores keep first-seen order (lexical list first), so the
    output is deterministic for a given pair of inputs.
    """
    fused: dict[str, tuple[ScoredChunk, float, set[RetrievalMethod]]] = {}

    for ranked, weight, method in (
        (lexical, lexical_weight, RetrievalMethod.BM25),
        (semantic, semantic_weight, RetrievalMethod.SEMANTIC),
    ):
        for rank, item in enumerate(ranked):
            partial = weight / (k + rank + 1)
            chunk_id = item.chunk.chunk_id
            if chunk_id in fused:
                first, score, methods = fused[chunk_id]
                methods.add(method)
                fused[chunk_id] = (first, score + partial, methods)
            else:
                fused[chunk_id] = (item, partial, {method})

    ordered = sorted(fused.values(), key=lambda entry: -entry[1])
    results: list[RetrievalResult] = []
    for item, score, methods in ordered[: max(limit, 0)]:
        method = RetrievalMethod.HYBRID if len(methods) > 1 else next(iter(methods))
        results.append(_to_result(item, score, method))
    return results


def _to_result(item: ScoredChunk, score: float, method: RetrievalMethod) -> RetrievalResult:
    chunk = item.chunk
    return RetrievalResult(
        chunk_id=chunk.chunk_id,
        manual_id=chunk.manual_id,
        text=chunk.text,
        page_number=chunk.page_number,
        section_title=chunk.section_title,
        score=score,
        method=method,
    )


class HybridRetriever:
    """Searches one manual (or all of them) by keyword and by meaning.

    Parameters
    ----------
    store:
        Chunk store answering both lexical and vector queries.
    embedding_provider:
        Embeds the query for the vector leg.  Must match the model used
        at indexing time.
    manual_repository:
        Resolves a :class:`VehicleDescriptor` target to its indexed
        manual.  Without it only manual-id targets can be scoped.
    default_options:
        Weights, threshold and K used when a call passes no options.
    """

    def __init__(
        self,
        store: IManualChunkStore,
        embedding_provider: IEmbeddingProvider,
        manual_repository: IManualRepository | None = None,
        default_options: SearchOptions | None = None,
        default_limit: int = 8,
    ) -> None:
        self._store = store
        self._embedding_provider = embedding_provider
        self._manual_repository = manual_repository
        self._default_options = default_options or SearchOptions()
        self._default_limit = default_limit
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        target: VehicleDescriptor | str | None = None,
        limit: int | None = None,
        options: SearchOptions | None = None,
    ) -> list[RetrievalResult]:
        """Return up to *limit* ranked excerpts for *query*.

        *target* is a manual id, a vehicle whose indexed manual should be
        searched, or ``None`` for every indexed manual.  An empty list
        means "no grounding available" and is never an error.
        """
        query = query.strip()
        limit = self._default_limit if limit is None else limit
        if not query or limit <= 0:
            return []

        opts = options or self._default_options
        manual_id = await self._resolve_manual_id(target)
        if isinstance(target, VehicleDescriptor) and manual_id is None:
            self._logger.info("no_indexed_manual", vehicle=target.cache_key())
            return []

        if not opts.use_lexical:
            semantic = await self._semantic_leg(query, manual_id, limit, opts.similarity_threshold)
            return [_to_result(item, item.score, RetrievalMethod.SEMANTIC) for item in semantic]

        candidate_count = 2 * limit
        lexical, semantic = await asyncio.gather(
            self._lexical_leg(query, manual_id, candidate_count),
            self._semantic_leg(query, manual_id, candidate_count, opts.similarity_threshold),
        )
        results = reciprocal_rank_fusion(
            lexical,
            semantic,
            limit,
            lexical_weight=opts.lexical_weight,
            semantic_weight=opts.semantic_weight,
            k=opts.rrf_k,
        )
        self._logger.info(
            "hybrid_search_complete",
            manual_id=manual_id,
            lexical_hits=len(lexical),
            semantic_hits=len(semantic),
            returned=len(results),
        )
        return results

    async def quick_search(
        self,
        query: str,
        target: VehicleDescriptor | str | None = None,
    ) -> list[RetrievalResult]:
        """Hybrid search with the short result list used for chat grounding."""
        return await self.search(query, target, limit=QUICK_SEARCH_LIMIT)

    # ------------------------------------------------------------------
    # Legs
    # ------------------------------------------------------------------

    async def _lexical_leg(
        self, query: str, manual_id: str | None, limit: int
    ) -> list[ScoredChunk]:
        try:
            return await self._store.lexical_search(query, manual_id=manual_id, limit=limit)
        except Exception as exc:
            self._logger.warning("lexical_search_failed", manual_id=manual_id, error=str(exc))
            return []

    async def _semantic_leg(
        self, query: str, manual_id: str | None, limit: int, threshold: float
    ) -> list[ScoredChunk]:
        try:
            embedding = await self._embedding_provider.embed_single(query)
            return await self._store.vector_search(
                embedding, manual_id=manual_id, limit=limit, threshold=threshold
            )
        except Exception as exc:
            self._logger.warning("semantic_search_failed", manual_id=manual_id, error=str(exc))
            return []

    async def _resolve_manual_id(self, target: VehicleDescriptor | str | None) -> str | None:
        if target is None or isinstance(target, str):
            return target or None
        if self._manual_repository is None:
            return None
        try:
            return await self._manual_repository.find_indexed_manual(target)
        except Exception as exc:
            self._logger.warning(
                "manual_lookup_failed", vehicle=target.cache_key(), error=str(exc)
            )
            return None
