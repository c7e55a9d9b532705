"""Chunk and retrieval models for the manual index.

A manual is split into a three-level hierarchy: chapters contain
sections, sections contain procedures.  Each :class:`ManualChunk` is
embedded and stored; a query returns :class:`RetrievalResult` rows that
reference chunks by id.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChunkLevel(str, Enum):
    """Hierarchy level of a chunk, widest first."""

    CHAPTER = "chapter"
    SECTION = "section"
    PROCEDURE = "procedure"

    @property
    def depth(self) -> int:
        return _LEVEL_DEPTH[self]


_LEVEL_DEPTH = {ChunkLevel.CHAPTER: 0, ChunkLevel.SECTION: 1, ChunkLevel.PROCEDURE: 2}


class ContentType(str, Enum):
    """Keyword-heuristic classification of what a chunk talks about."""

    SPECIFICATION = "specification"
    PROCEDURE = "procedure"
    WARNING = "warning"
    GENERAL = "general"


class RetrievalMethod(str, Enum):
    BM25 = "bm25"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


# ---------------------------------------------------------------------------
# ManualChunk: one retrievable slice of a manual.
# ---------------------------------------------------------------------------
class ManualChunk(BaseModel):
    """An immutable slice of manual text, ready for embedding and storage.

    Chapter chunks have no parent; section chunks point at a chapter and
    procedure chunks at a section.  ``chunk_index`` is contiguous from 0
    within a manual and fixes the order of the chunks.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Deterministic identifier of this chunk.")
    manual_id: str = Field(description="Identifier of the owning manual.")
    chunk_index: int = Field(ge=0, description="Position of the chunk within its manual.")
    level: ChunkLevel = Field(description="Hierarchy level.")
    parent_chunk_id: str | None = Field(default=None, description="Parent chunk, if any.")
    text: str = Field(description="Raw chunk text.")
    token_count: int = Field(default=0, ge=0, description="Estimated token count (chars / 4).")
    page_number: int | None = Field(default=None, description="Best-effort printed page number.")
    section_title: str | None = Field(default=None, description="Heading the chunk falls under.")
    content_type: ContentType = Field(default=ContentType.GENERAL)
    keywords: list[str] = Field(
        default_factory=list,
        description='Specification tokens found in the text, e.g. "5W-30", "35 psi".',
    )
    vehicle_make: str | None = None
    vehicle_model: str | None = None
    model_year: int | None = None


class ScoredChunk(BaseModel):
    """A chunk with the score one search leg gave it."""

    model_config = ConfigDict(frozen=True)

    chunk: ManualChunk
    score: float = Field(description="BM25 score or cosine similarity, higher is better.")


class RetrievalResult(BaseModel):
    """One ranked row returned by the hybrid retriever.  Never persisted."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    manual_id: str
    text: str
    page_number: int | None = None
    section_title: str | None = None
    score: float = Field(description="Fused RRF score, or similarity for vector-only search.")
    method: RetrievalMethod


class SearchOptions(BaseModel):
    """Per-query knobs for :class:`~manual_rag.services.retrieval.hybrid_retriever.HybridRetriever`."""

    model_config = ConfigDict(frozen=True)

    use_lexical: bool = Field(default=True, description="Disable to rank by vectors alone.")
    similarity_threshold: float = Field(default=0.65, ge=-1.0, le=1.0)
    lexical_weight: float = Field(default=0.4, ge=0.0)
    semantic_weight: float = Field(default=0.6, ge=0.0)
    rrf_k: int = Field(default=60, ge=0)


class GroundedContext(BaseModel):
    """Retrieved excerpts plus the prompt block rendered from them.

    ``has_grounding`` is False when nothing relevant was found; callers
    answer without citations in that case rather than treating it as an
    error.
    """

    model_config = ConfigDict(frozen=True)

    results: list[RetrievalResult] = Field(default_factory=list)
    context_text: str = ""

    @property
    def has_grounding(self) -> bool:
        return bool(self.results)
