"""Indexing pipeline for one manual: **extract → chunk → embed → store**.

:class:`IndexingService` coordinates the text extractor, chunker,
embedding provider and chunk store, and keeps the manual's
``processing_status`` in the registry current:

    pending → processing → completed
                         ↘ failed

Embedding is all-or-nothing: a failed batch fails the run before
anything is stored.  Storage is batched and may be partial; the run
still completes as long as at least one chunk was stored, and a later
run tops up the rest because chunk ids are deterministic.
"""

from __future__ import annotations

import math
import re
import time

import structlog

from manual_rag.interfaces.chunk_store import IManualChunkStore
from manual_rag.interfaces.embedding_provider import IEmbeddingProvider
from manual_rag.interfaces.manual_repository import IManualRepository
from manual_rag.interfaces.text_extractor import ITextExtractor
from manual_rag.models.indexing import IndexingResult
from manual_rag.models.manual import Manual, ProcessingStatus
from manual_rag.models.vehicle import VehicleDescriptor
from manual_rag.services.indexing.chunker import MIN_MANUAL_TEXT_CHARS, ManualChunker
from manual_rag.utils.errors import (
    ConfigurationError,
    ContentMismatchError,
    ManualTextTooShortError,
    RAGError,
)

logger = structlog.get_logger(logger_name=__name__)

_CHARS_PER_PAGE = 3000
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def estimate_page_count(text: str) -> int:
    return max(1, math.ceil(len(text) / _CHARS_PER_PAGE))


def mentions_vehicle(text: str, vehicle: VehicleDescriptor) -> bool:
    """Return ``True`` if *text* names both the make and the model.

    Punctuation and spacing are ignored, so "F-150" matches "F150".
    """
    haystack = _NON_ALNUM_RE.sub("", text.lower())
    make = _NON_ALNUM_RE.sub("", vehicle.make.lower())
    model = _NON_ALNUM_RE.sub("", vehicle.model.lower())
    return bool(make and model) and make in haystack and model in haystack


class IndexingService:
    """Indexes manual text into the chunk store.

    Parameters
    ----------
    chunker:
        Splits text into the chapter/section/procedure hierarchy.
    embedding_provider:
        Embeds every chunk.  Must be the model used for query embeddings.
    store:
        Destination for chunks and vectors.
    repository:
        Manual registry whose status is updated as the run progresses.
    text_extractor:
        Needed only by :meth:`index_pdf`.
    min_text_chars:
        Shorter text is rejected without indexing.
    """

    def __init__(
        self,
        chunker: ManualChunker,
        embedding_provider: IEmbeddingProvider,
        store: IManualChunkStore,
        repository: IManualRepository,
        text_extractor: ITextExtractor | None = None,
        min_text_chars: int = MIN_MANUAL_TEXT_CHARS,
    ) -> None:
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._store = store
        self._repository = repository
        self._text_extractor = text_extractor
        self._min_text_chars = min_text_chars

    async def index_pdf(
        self,
        manual: Manual,
        pdf_bytes: bytes,
        *,
        require_vehicle_mention: bool = False,
    ) -> IndexingResult:
        """Extract text from *pdf_bytes* and index it."""
        if self._text_extractor is None:
            raise ConfigurationError("No text extractor configured for PDF indexing")

        await self._repository.update_status(manual.manual_id, ProcessingStatus.PROCESSING)
        try:
            extracted = await self._text_extractor.extract(pdf_bytes)
        except Exception:
            await self._repository.update_status(manual.manual_id, ProcessingStatus.FAILED)
            raise

        return await self.index_text(
            manual,
            extracted.text,
            page_count=extracted.page_count or None,
            require_vehicle_mention=require_vehicle_mention,
        )

    async def index_text(
        self,
        manual: Manual,
        text: str,
        *,
        page_count: int | None = None,
        require_vehicle_mention: bool = False,
    ) -> IndexingResult:
        """Chunk, embed and store *text* for *manual*.

        Raises
        ------
        ManualTextTooShortError
            If *text* is below the minimum length.
        ContentMismatchError
            If *require_vehicle_mention* is set and the text never names
            the vehicle.
        manual_rag.utils.errors.EmbeddingError
            If embedding fails.  Nothing is stored in that case.
        """
        start = time.monotonic()
        manual_id = manual.manual_id
        await self._repository.update_status(manual_id, ProcessingStatus.PROCESSING)

        try:
            self._check_text(text, manual, require_vehicle_mention)
            chunks = self._chunker.chunk(text, manual_id, manual.vehicle)
            embeddings = await self._embedding_provider.embed([chunk.text for chunk in chunks])
            stored = await self._store.upsert_chunks(chunks, embeddings)
            if stored == 0:
                raise RAGError(
                    message=f"None of {len(chunks)} chunks could be stored",
                    provider_name=self._store.get_provider_name(),
                )
        except Exception as exc:
            await self._repository.update_status(manual_id, ProcessingStatus.FAILED)
            logger.error("manual_indexing_failed", manual_id=manual_id, error=str(exc))
            raise

        pages = page_count or estimate_page_count(text)
        await self._repository.update_status(
            manual_id, ProcessingStatus.COMPLETED, page_count=pages
        )

        result = IndexingResult(
            manual_id=manual_id,
            chunks_created=len(chunks),
            chunks_stored=stored,
            total_tokens=sum(chunk.token_count for chunk in chunks),
            page_count=pages,
            elapsed_seconds=round(time.monotonic() - start, 3),
        )
        logger.info(
            "manual_indexed",
            manual_id=manual_id,
            chunks_created=result.chunks_created,
            chunks_stored=result.chunks_stored,
            total_tokens=result.total_tokens,
            elapsed_seconds=result.elapsed_seconds,
        )
        return result

    async def mark_failed(self, manual_id: str) -> None:
        """Record that indexing *manual_id* failed before this service ran."""
        await self._repository.update_status(manual_id, ProcessingStatus.FAILED)

    def _check_text(self, text: str, manual: Manual, require_vehicle_mention: bool) -> None:
        length = len(text.strip())
        if length < self._min_text_chars:
            raise ManualTextTooShortError(
                f"Manual {manual.manual_id} has {length} characters of text; "
                f"at least {self._min_text_chars} are required"
            )
        if require_vehicle_mention and not mentions_vehicle(text, manual.vehicle):
            raise ContentMismatchError(
                f"Manual {manual.manual_id} never mentions {manual.vehicle.make} "
                f"{manual.vehicle.model}"
            )
