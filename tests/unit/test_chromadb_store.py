"""Unit tests for ChromaDBChunkStore against a real on-disk collection."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from manual_rag.models.chunk import ChunkLevel
from manual_rag.providers.vector_store.chromadb_provider import ChromaDBChunkStore
from manual_rag.utils.errors import EmbeddingDimensionError

_OIL = [1.0, 0.0, 0.0]
_TIRE = [0.0, 1.0, 0.0]
_MIXED = [0.7, 0.7, 0.0]


def _make_store(chroma_dir: str, name: str = "test_chunks", **kwargs) -> ChromaDBChunkStore:
    return ChromaDBChunkStore(persist_directory=chroma_dir, collection_name=name, **kwargs)


@pytest.fixture()
def seeded_chunks(chunk_factory):
    return [
        chunk_factory("oil-1", text="Engine oil: use SAE 5W-30 oil. Capacity 4.4 quarts.", chunk_index=0),
        chunk_factory("tire-1", text="Tire pressure should be 35 psi when cold.", chunk_index=1),
        chunk_factory("oil-2", text="Change the engine oil every 5000 miles.", chunk_index=2),
        chunk_factory(
            "other-oil",
            manual_id="manual-civic",
            text="Honda engine oil: 0W-20 is recommended.",
            chunk_index=0,
        ),
    ]


@pytest_asyncio.fixture()
async def seeded_store(chroma_dir, seeded_chunks) -> ChromaDBChunkStore:
    store = _make_store(chroma_dir)
    await store.upsert_chunks(seeded_chunks, [_OIL, _TIRE, _MIXED, _OIL])
    return store


class TestUpsert:
    @pytest.mark.asyncio
    async def test_returns_stored_count(self, chroma_dir, seeded_chunks) -> None:
        store = _make_store(chroma_dir)
        stored = await store.upsert_chunks(seeded_chunks, [_OIL, _TIRE, _MIXED, _OIL])
        assert stored == 4
        assert await store.count_chunks() == 4
        assert await store.count_chunks("manual-camry") == 3

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, chroma_dir, seeded_chunks) -> None:
        store = _make_store(chroma_dir)
        embeddings = [_OIL, _TIRE, _MIXED, _OIL]
        await store.upsert_chunks(seeded_chunks, embeddings)
        await store.upsert_chunks(seeded_chunks, embeddings)
        assert await store.count_chunks() == 4

    @pytest.mark.asyncio
    async def test_empty_input(self, chroma_dir) -> None:
        store = _make_store(chroma_dir)
        assert await store.upsert_chunks([], []) == 0

    @pytest.mark.asyncio
    async def test_length_mismatch_raises(self, chroma_dir, chunk_factory) -> None:
        store = _make_store(chroma_dir)
        with pytest.raises(ValueError):
            await store.upsert_chunks([chunk_factory()], [])

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self, chroma_dir, chunk_factory) -> None:
        store = _make_store(chroma_dir, dimension=3)
        with pytest.raises(EmbeddingDimensionError):
            await store.upsert_chunks([chunk_factory()], [[1.0, 0.0]])

    @pytest.mark.asyncio
    async def test_reopen_with_other_dimension_fails(self, chroma_dir, chunk_factory) -> None:
        store = _make_store(chroma_dir, name="dims")
        await store.upsert_chunks([chunk_factory()], [_OIL])
        with pytest.raises(EmbeddingDimensionError):
            _make_store(chroma_dir, name="dims", dimension=8)

    @pytest.mark.asyncio
    async def test_failed_batch_is_skipped(self, chroma_dir, chunk_factory) -> None:
        store = _make_store(chroma_dir)
        collection = MagicMock()
        collection.upsert.side_effect = [None, RuntimeError("disk full"), None]
        store._collection = collection

        chunks = [chunk_factory(f"c{i}", chunk_index=i) for i in range(120)]
        stored = await store.upsert_chunks(chunks, [_OIL] * 120)

        assert stored == 70
        assert collection.upsert.call_count == 3
        assert [len(call.kwargs["ids"]) for call in collection.upsert.call_args_list] == [50, 50, 20]

    @pytest.mark.asyncio
    async def test_metadata_round_trip(self, chroma_dir, chunk_factory) -> None:
        store = _make_store(chroma_dir)
        chunk = chunk_factory(
            "p1",
            text="Inflate to 35 psi.",
            level=ChunkLevel.PROCEDURE,
            page_number=None,
            keywords=["35 psi"],
        )
        await store.upsert_chunks([chunk], [_TIRE])

        results = await store.lexical_search("inflate")
        restored = results[0].chunk
        assert restored.level is ChunkLevel.PROCEDURE
        assert restored.page_number is None
        assert restored.keywords == ["35 psi"]
        assert restored.model_year == 2022


class TestLexicalSearch:
    @pytest.mark.asyncio
    async def test_matches_literal_oil_grade(self, seeded_store) -> None:
        results = await seeded_store.lexical_search("5W-30")
        assert [r.chunk.chunk_id for r in results] == ["oil-1"]
        assert results[0].score > 0

    @pytest.mark.asyncio
    async def test_requires_every_term(self, seeded_store) -> None:
        results = await seeded_store.lexical_search("engine oil quarts", manual_id="manual-camry")
        assert [r.chunk.chunk_id for r in results] == ["oil-1"]

    @pytest.mark.asyncio
    async def test_falls_back_to_any_term(self, seeded_store) -> None:
        results = await seeded_store.lexical_search("5W-30 oil type", manual_id="manual-camry")
        ids = [r.chunk.chunk_id for r in results]
        assert ids[0] == "oil-1"
        assert set(ids) == {"oil-1", "oil-2"}

    @pytest.mark.asyncio
    async def test_no_term_matches(self, seeded_store) -> None:
        assert await seeded_store.lexical_search("sunroof type", manual_id="manual-camry") == []

    @pytest.mark.asyncio
    async def test_scoped_to_manual(self, seeded_store) -> None:
        results = await seeded_store.lexical_search("engine oil", manual_id="manual-camry")
        assert {r.chunk.manual_id for r in results} == {"manual-camry"}
        assert {r.chunk.chunk_id for r in results} == {"oil-1", "oil-2"}

    @pytest.mark.asyncio
    async def test_all_manuals_without_scope(self, seeded_store) -> None:
        results = await seeded_store.lexical_search("engine oil")
        assert {r.chunk.chunk_id for r in results} == {"oil-1", "oil-2", "other-oil"}

    @pytest.mark.asyncio
    async def test_stop_words_only_query(self, seeded_store) -> None:
        assert await seeded_store.lexical_search("what is the") == []

    @pytest.mark.asyncio
    async def test_ties_keep_manual_order(self, chroma_dir, chunk_factory) -> None:
        store = _make_store(chroma_dir)
        chunks = [
            chunk_factory("b", text="Check coolant level.", chunk_index=1),
            chunk_factory("a", text="Check coolant level.", chunk_index=0),
        ]
        await store.upsert_chunks(chunks, [_OIL, _OIL])
        results = await store.lexical_search("coolant")
        assert [r.chunk.chunk_id for r in results] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_index_refreshes_after_write(self, seeded_store, chunk_factory) -> None:
        assert await seeded_store.lexical_search("wiper") == []
        await seeded_store.upsert_chunks(
            [chunk_factory("wiper", text="Replace wiper blades yearly.", chunk_index=3)], [_MIXED]
        )
        results = await seeded_store.lexical_search("wiper")
        assert [r.chunk.chunk_id for r in results] == ["wiper"]

    @pytest.mark.asyncio
    async def test_index_cache_is_bounded(self, chroma_dir, seeded_chunks) -> None:
        store = _make_store(chroma_dir, max_cached_indexes=2)
        await store.upsert_chunks(seeded_chunks, [_OIL, _TIRE, _MIXED, _OIL])

        await store.lexical_search("oil", manual_id="manual-camry")
        await store.lexical_search("oil", manual_id="manual-civic")
        await store.lexical_search("oil")

        assert len(store._lexical_indexes) == 2
        assert "manual-camry" not in store._lexical_indexes
        results = await store.lexical_search("5W-30", manual_id="manual-camry")
        assert [r.chunk.chunk_id for r in results] == ["oil-1"]

    @pytest.mark.asyncio
    async def test_empty_store(self, chroma_dir) -> None:
        store = _make_store(chroma_dir)
        assert await store.lexical_search("oil") == []


class TestVectorSearch:
    @pytest.mark.asyncio
    async def test_threshold_filters_and_sorts(self, seeded_store) -> None:
        results = await seeded_store.vector_search(_OIL, manual_id="manual-camry", threshold=0.65)
        assert [r.chunk.chunk_id for r in results] == ["oil-1", "oil-2"]
        assert results[0].score == pytest.approx(1.0, abs=1e-4)
        assert all(r.score >= 0.65 for r in results)

    @pytest.mark.asyncio
    async def test_scope_excludes_other_manuals(self, seeded_store) -> None:
        results = await seeded_store.vector_search(_OIL, manual_id="manual-civic", threshold=0.0)
        assert {r.chunk.manual_id for r in results} == {"manual-civic"}

    @pytest.mark.asyncio
    async def test_limit(self, seeded_store) -> None:
        results = await seeded_store.vector_search(_OIL, limit=1, threshold=0.0)
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_empty_store(self, chroma_dir) -> None:
        store = _make_store(chroma_dir)
        assert await store.vector_search(_OIL) == []


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_manual(self, seeded_store) -> None:
        deleted = await seeded_store.delete_manual("manual-camry")
        assert deleted == 3
        assert await seeded_store.count_chunks() == 1
        assert await seeded_store.lexical_search("engine oil", manual_id="manual-camry") == []

    def test_provider_name(self, chroma_dir) -> None:
        assert _make_store(chroma_dir).get_provider_name() == "chromadb"
