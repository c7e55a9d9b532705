"""Turn retrieval results into a citable prompt block for the assistant."""

from __future__ import annotations

from manual_rag.models.chunk import GroundedContext, RetrievalResult
from manual_rag.models.vehicle import VehicleDescriptor
from manual_rag.services.retrieval.hybrid_retriever import HybridRetriever
from manual_rag.utils.logging import get_logger

_HEADER = "Relevant Owner's Manual Excerpts:"
_CITATION_INSTRUCTION = (
    "Always cite the specific source number and page when using information "
    "from the manual excerpts above."
)


class GroundingContextBuilder:
    """Renders numbered ``[Source i]`` excerpts the assistant can cite."""

    def build(self, results: list[RetrievalResult], manual_title: str = "Owner's Manual") -> str:
        """Return the prompt block, or ``""`` when there is nothing to cite."""
        if not results:
            return ""

        parts = [_HEADER, ""]
        for position, result in enumerate(results, start=1):
            label = f"[Source {position}] {manual_title}"
            if result.page_number is not None:
                label += f", Page {result.page_number}"
            if result.section_title:
                label += f" - {result.section_title}"
            parts.append(f"{label}:")
            parts.append(result.text.strip())
            parts.append("")
        parts.append(_CITATION_INSTRUCTION)
        return "\n".join(parts)


class ManualGroundingService:
    """Looks up manual excerpts for a question about a specific vehicle."""

    def __init__(
        self,
        retriever: HybridRetriever,
        builder: GroundingContextBuilder | None = None,
    ) -> None:
        self._retriever = retriever
        self._builder = builder or GroundingContextBuilder()
        self._logger = get_logger(__name__)

    async def ground(self, question: str, vehicle: VehicleDescriptor) -> GroundedContext:
        results = await self._retriever.quick_search(question, vehicle)
        title = f"{vehicle.display_name()} Owner's Manual"
        context = GroundedContext(
            results=results,
            context_text=self._builder.build(results, manual_title=title),
        )
        self._logger.info(
            "grounding_built",
            vehicle=vehicle.cache_key(),
            sources=len(results),
        )
        return context
