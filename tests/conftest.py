"""Shared pytest fixtures for the manual_rag test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from manual_rag.interfaces.embedding_provider import IEmbeddingProvider
from manual_rag.models.chunk import ChunkLevel, ContentType, ManualChunk
from manual_rag.models.manual import Manual
from manual_rag.models.vehicle import VehicleDescriptor

# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------

# Each tuple is one vector dimension; a text scores on a dimension once per
# occurrence of any of its words.  Paraphrases of the same concept land
# close together without a real model.
_CONCEPTS: tuple[tuple[str, ...], ...] = (
    ("oil", "lubricant", "viscosity"),
    ("tire", "tyre", "inflation", "psi"),
    ("brake", "braking", "pedal"),
    ("battery", "jump", "jumper"),
)
_BIAS = 0.05


class KeywordEmbeddingProvider(IEmbeddingProvider):
    """Embeds text as counts of a few automotive concepts plus a small bias."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    @staticmethod
    def vector(text: str) -> list[float]:
        lowered = text.lower()
        values = [float(sum(lowered.count(word) for word in words)) for words in _CONCEPTS]
        return [*values, _BIAS]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vector(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return len(_CONCEPTS) + 1

    def get_provider_name(self) -> str:
        return "keyword_fake"

    def is_available(self) -> bool:
        return True


@pytest.fixture()
def keyword_embedder() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def camry() -> VehicleDescriptor:
    return VehicleDescriptor(year=2022, make="Toyota", model="Camry")


@pytest.fixture()
def camry_manual(camry: VehicleDescriptor) -> Manual:
    return Manual(manual_id="manual-camry", vehicle=camry)


@pytest.fixture()
def chroma_dir(tmp_path: Path) -> str:
    return str(tmp_path / "chroma")


def make_chunk(
    chunk_id: str = "c1",
    manual_id: str = "manual-camry",
    text: str = "Engine oil capacity is 4.8 quarts of 0W-16.",
    chunk_index: int = 0,
    level: ChunkLevel = ChunkLevel.SECTION,
    page_number: int | None = 12,
    section_title: str | None = "Maintenance",
    keywords: list[str] | None = None,
) -> ManualChunk:
    return ManualChunk(
        chunk_id=chunk_id,
        manual_id=manual_id,
        chunk_index=chunk_index,
        level=level,
        text=text,
        token_count=len(text) // 4,
        page_number=page_number,
        section_title=section_title,
        content_type=ContentType.SPECIFICATION,
        keywords=keywords if keywords is not None else [],
        vehicle_make="Toyota",
        vehicle_model="Camry",
        model_year=2022,
    )


@pytest.fixture()
def chunk_factory():
    """Return :func:`make_chunk` so tests can build chunks without importing conftest."""
    return make_chunk
