"""Unit tests for IndexingService and PyMuPDFTextExtractor."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import fitz
import pytest

from manual_rag.interfaces.chunk_store import IManualChunkStore
from manual_rag.interfaces.embedding_provider import IEmbeddingProvider
from manual_rag.interfaces.manual_repository import IManualRepository
from manual_rag.interfaces.text_extractor import ITextExtractor
from manual_rag.models.indexing import ExtractedText
from manual_rag.models.manual import ProcessingStatus
from manual_rag.providers.extraction.pymupdf_text_extractor import PyMuPDFTextExtractor
from manual_rag.services.indexing.chunker import ManualChunker
from manual_rag.services.indexing.indexing_service import (
    IndexingService,
    estimate_page_count,
    mentions_vehicle,
)
from manual_rag.utils.errors import (
    ConfigurationError,
    ContentMismatchError,
    EmbeddingError,
    ManualTextTooShortError,
    RAGError,
    TextExtractionError,
)

_MANUAL_TEXT = (
    "CHAPTER 1 Your Toyota Camry\n"
    "This manual covers the 2022 Toyota Camry. Read it before driving.\n"
    "CHAPTER 2 Maintenance\n"
    "1.1 Engine Oil\nUse SAE 0W-16 oil. Capacity is 4.8 quarts.\n"
    "1.2 Tires\nInflate tires to 35 psi.\n"
)


def _make_store(stored: int | None = None) -> MagicMock:
    store = MagicMock(spec=IManualChunkStore)

    async def upsert(chunks, embeddings):
        return len(chunks) if stored is None else stored

    store.upsert_chunks = AsyncMock(side_effect=upsert)
    store.get_provider_name.return_value = "fake_store"
    return store


def _make_repository() -> MagicMock:
    repository = MagicMock(spec=IManualRepository)
    repository.update_status = AsyncMock()
    return repository


def _statuses(repository: MagicMock) -> list[ProcessingStatus]:
    return [call.args[1] for call in repository.update_status.await_args_list]


def _make_service(embedder, store=None, repository=None, extractor=None, **kwargs) -> IndexingService:
    return IndexingService(
        chunker=ManualChunker(),
        embedding_provider=embedder,
        store=store or _make_store(),
        repository=repository or _make_repository(),
        text_extractor=extractor,
        **kwargs,
    )


class TestIndexText:
    @pytest.mark.asyncio
    async def test_chunks_embeds_and_stores(self, camry_manual, keyword_embedder) -> None:
        store = _make_store()
        repository = _make_repository()
        service = _make_service(keyword_embedder, store, repository)

        result = await service.index_text(camry_manual, _MANUAL_TEXT)

        chunks, embeddings = store.upsert_chunks.await_args.args
        assert result.chunks_created == len(chunks) == len(embeddings)
        assert result.chunks_stored == result.chunks_created
        assert result.total_tokens == sum(c.token_count for c in chunks)
        assert result.page_count == 1
        assert _statuses(repository) == [ProcessingStatus.PROCESSING, ProcessingStatus.COMPLETED]
        assert repository.update_status.await_args.kwargs["page_count"] == 1
        assert all(c.vehicle_model == "Camry" for c in chunks)

    @pytest.mark.asyncio
    async def test_explicit_page_count_wins(self, camry_manual, keyword_embedder) -> None:
        service = _make_service(keyword_embedder)
        result = await service.index_text(camry_manual, _MANUAL_TEXT, page_count=612)
        assert result.page_count == 612

    @pytest.mark.asyncio
    async def test_short_text_fails_without_embedding(self, camry_manual, keyword_embedder) -> None:
        repository = _make_repository()
        service = _make_service(keyword_embedder, repository=repository)

        with pytest.raises(ManualTextTooShortError):
            await service.index_text(camry_manual, "Too short.")

        assert keyword_embedder.calls == []
        assert _statuses(repository)[-1] is ProcessingStatus.FAILED

    @pytest.mark.asyncio
    async def test_vehicle_mention_required(self, camry_manual, keyword_embedder) -> None:
        service = _make_service(keyword_embedder)
        unrelated = "CHAPTER 1 Honda Civic\n" + "The Civic is a compact car. " * 10
        with pytest.raises(ContentMismatchError):
            await service.index_text(camry_manual, unrelated, require_vehicle_mention=True)

    @pytest.mark.asyncio
    async def test_vehicle_mention_satisfied(self, camry_manual, keyword_embedder) -> None:
        service = _make_service(keyword_embedder)
        result = await service.index_text(camry_manual, _MANUAL_TEXT, require_vehicle_mention=True)
        assert result.chunks_stored > 0

    @pytest.mark.asyncio
    async def test_embedding_failure_stores_nothing(self, camry_manual) -> None:
        embedder = MagicMock(spec=IEmbeddingProvider)
        embedder.embed = AsyncMock(side_effect=EmbeddingError("quota"))
        store = _make_store()
        repository = _make_repository()
        service = _make_service(embedder, store, repository)

        with pytest.raises(EmbeddingError):
            await service.index_text(camry_manual, _MANUAL_TEXT)

        store.upsert_chunks.assert_not_awaited()
        assert _statuses(repository)[-1] is ProcessingStatus.FAILED

    @pytest.mark.asyncio
    async def test_nothing_stored_is_a_failure(self, camry_manual, keyword_embedder) -> None:
        repository = _make_repository()
        service = _make_service(keyword_embedder, _make_store(stored=0), repository)

        with pytest.raises(RAGError, match="could be stored"):
            await service.index_text(camry_manual, _MANUAL_TEXT)
        assert _statuses(repository)[-1] is ProcessingStatus.FAILED

    @pytest.mark.asyncio
    async def test_partial_store_still_completes(self, camry_manual, keyword_embedder) -> None:
        repository = _make_repository()
        service = _make_service(keyword_embedder, _make_store(stored=2), repository)

        result = await service.index_text(camry_manual, _MANUAL_TEXT)

        assert result.chunks_stored == 2
        assert result.chunks_created > 2
        assert _statuses(repository)[-1] is ProcessingStatus.COMPLETED


class TestIndexPdf:
    @pytest.mark.asyncio
    async def test_extracts_then_indexes(self, camry_manual, keyword_embedder) -> None:
        extractor = MagicMock(spec=ITextExtractor)
        extractor.extract = AsyncMock(return_value=ExtractedText(text=_MANUAL_TEXT, page_count=9))
        service = _make_service(keyword_embedder, extractor=extractor)

        result = await service.index_pdf(camry_manual, b"%PDF-1.7 ...")

        extractor.extract.assert_awaited_once_with(b"%PDF-1.7 ...")
        assert result.page_count == 9

    @pytest.mark.asyncio
    async def test_extraction_failure_marks_failed(self, camry_manual, keyword_embedder) -> None:
        extractor = MagicMock(spec=ITextExtractor)
        extractor.extract = AsyncMock(side_effect=TextExtractionError("corrupt"))
        repository = _make_repository()
        service = _make_service(keyword_embedder, repository=repository, extractor=extractor)

        with pytest.raises(TextExtractionError):
            await service.index_pdf(camry_manual, b"%PDF-")
        assert _statuses(repository) == [ProcessingStatus.PROCESSING, ProcessingStatus.FAILED]

    @pytest.mark.asyncio
    async def test_requires_extractor(self, camry_manual, keyword_embedder) -> None:
        with pytest.raises(ConfigurationError):
            await _make_service(keyword_embedder).index_pdf(camry_manual, b"%PDF-")


class TestHelpers:
    def test_mentions_vehicle_ignores_punctuation(self) -> None:
        from manual_rag.models.vehicle import VehicleDescriptor

        f150 = VehicleDescriptor(year=2021, make="Ford", model="F-150")
        assert mentions_vehicle("2021 FORD F150 Owner's Manual", f150) is True
        assert mentions_vehicle("2021 Ford Ranger Owner's Manual", f150) is False

    def test_estimate_page_count(self) -> None:
        assert estimate_page_count("") == 1
        assert estimate_page_count("x" * 3001) == 2


class TestPyMuPDFTextExtractor:
    @staticmethod
    def _pdf(pages: list[str]) -> bytes:
        doc = fitz.open()
        for text in pages:
            page = doc.new_page()
            if text:
                page.insert_text((72, 72), text)
        data = doc.tobytes()
        doc.close()
        return data

    @pytest.mark.asyncio
    async def test_extracts_pages_with_markers(self) -> None:
        pdf = self._pdf(["Engine oil capacity 4.8 quarts", "", "Tire pressure 35 psi"])

        extracted = await PyMuPDFTextExtractor().extract(pdf)

        assert extracted.page_count == 3
        assert "Page 1\nEngine oil capacity 4.8 quarts" in extracted.text
        assert "Page 3\nTire pressure 35 psi" in extracted.text
        assert "Page 2" not in extracted.text

    @pytest.mark.asyncio
    async def test_garbage_bytes(self) -> None:
        with pytest.raises(TextExtractionError):
            await PyMuPDFTextExtractor().extract(b"not a pdf at all")
