"""Hybrid lexical + semantic retrieval over indexed manuals."""

from manual_rag.services.retrieval.grounding import (
    GroundingContextBuilder,
    ManualGroundingService,
)
from manual_rag.services.retrieval.hybrid_retriever import (
    HybridRetriever,
    reciprocal_rank_fusion,
)

__all__ = [
    "GroundingContextBuilder",
    "HybridRetriever",
    "ManualGroundingService",
    "reciprocal_rank_fusion",
]
