"""Unit tests for ManualChunker and its heuristics."""

from __future__ import annotations

import pytest

from manual_rag.models.chunk import ChunkLevel, ContentType
from manual_rag.models.vehicle import VehicleDescriptor
from manual_rag.services.indexing.chunker import (
    CHUNK_TOKEN_BUDGETS,
    ManualChunker,
    classify_content,
    estimate_tokens,
    extract_keywords,
    extract_title,
    find_page_number,
)

_STRUCTURED_MANUAL = """CHAPTER 1 Introduction
Welcome to your new vehicle. Read this manual carefully before driving.
Page 3

CHAPTER 2 Maintenance
Regular maintenance keeps the vehicle reliable.
1.1 Engine Oil
Use SAE 0W-16 oil. Oil capacity is 4.8 quarts with filter.
1.2 Tire Pressure
Inflate tires to 35 psi when cold.
WARNING
Never exceed the maximum pressure printed on the tire sidewall.
"""

_DRAIN_SENTENCE = "Remove the drain plug and let the oil drain completely. "


def _long_section_manual() -> str:
    return (
        "CHAPTER 1 Oil Service\n"
        "1.1 Changing the Oil\n"
        + _DRAIN_SENTENCE * 60
        + "\n1.2 Oil Filter\nReplace the filter at every oil change.\n"
        "CHAPTER 2 Tires\nCheck the tire pressure monthly.\n"
    )


class TestChunkStructure:
    @pytest.fixture()
    def chunker(self) -> ManualChunker:
        return ManualChunker()

    def test_blank_text_gives_no_chunks(self, chunker: ManualChunker) -> None:
        assert chunker.chunk("   \n\n", "m1") == []

    def test_splits_chapters_and_sections(self, chunker: ManualChunker) -> None:
        chunks = chunker.chunk(_STRUCTURED_MANUAL, "m1")

        levels = [chunk.level for chunk in chunks]
        assert levels.count(ChunkLevel.CHAPTER) == 2
        assert levels.count(ChunkLevel.SECTION) == 4
        assert ChunkLevel.PROCEDURE not in levels

        chapter_titles = [c.section_title for c in chunks if c.level is ChunkLevel.CHAPTER]
        assert chapter_titles == ["Introduction", "Maintenance"]

        section_titles = {c.section_title for c in chunks if c.level is ChunkLevel.SECTION}
        assert {"1.1 Engine Oil", "1.2 Tire Pressure"} <= section_titles

    def test_numbered_steps_stay_in_one_section(self, chunker: ManualChunker) -> None:
        text = (
            "Chapter 1 Engine\n"
            "Checking the engine oil level\n"
            "1. Park the vehicle on level ground.\n"
            "2. Turn off the engine and wait five minutes.\n"
            "3. Pull out the dipstick and wipe it clean.\n"
            "4. Reinsert the dipstick fully and read the level.\n"
            "Chapter 2 Tires\n"
            "Inflate tires to 35 psi when cold.\n"
        )

        sections = [c for c in chunker.chunk(text, "m1") if c.level is ChunkLevel.SECTION]

        assert len(sections) == 2
        assert "1. Park the vehicle" in sections[0].text
        assert "4. Reinsert the dipstick" in sections[0].text
        assert [s.section_title for s in sections] == ["Engine", "Tires"]

    def test_numbered_title_is_a_section_heading(self, chunker: ManualChunker) -> None:
        text = (
            "Chapter 3 Emergencies\n"
            "1. Jump Starting\n"
            "Connect the red jumper cable to the positive terminal first.\n"
            "2. Flat Tire\n"
            "Use the spare tire stored under the cargo floor.\n"
        )

        titles = [
            c.section_title for c in chunker.chunk(text, "m1") if c.level is ChunkLevel.SECTION
        ]

        assert titles == ["Emergencies", "1. Jump Starting", "2. Flat Tire"]

    def test_callout_is_not_a_chapter(self, chunker: ManualChunker) -> None:
        chunks = chunker.chunk(_STRUCTURED_MANUAL, "m1")
        tire = next(c for c in chunks if c.section_title == "1.2 Tire Pressure")
        assert "WARNING" in tire.text
        assert tire.content_type is ContentType.WARNING

    def test_indices_are_contiguous_and_ids_unique(self, chunker: ManualChunker) -> None:
        chunks = chunker.chunk(_long_section_manual(), "m1")
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert len({c.chunk_id for c in chunks}) == len(chunks)
        assert all(c.manual_id == "m1" for c in chunks)

    def test_parents_precede_children_one_level_up(self, chunker: ManualChunker) -> None:
        chunks = chunker.chunk(_long_section_manual(), "m1")
        by_id = {c.chunk_id: c for c in chunks}
        for chunk in chunks:
            if chunk.level is ChunkLevel.CHAPTER:
                assert chunk.parent_chunk_id is None
                continue
            parent = by_id[chunk.parent_chunk_id]
            assert parent.chunk_index < chunk.chunk_index
            assert parent.level.depth == chunk.level.depth - 1

    def test_token_budgets_hold(self, chunker: ManualChunker) -> None:
        chunks = chunker.chunk(_long_section_manual() * 3, "m1")
        for chunk in chunks:
            assert chunk.token_count == estimate_tokens(chunk.text)
            assert chunk.token_count <= CHUNK_TOKEN_BUDGETS[chunk.level]

    def test_oversized_section_gets_overlapping_procedures(self, chunker: ManualChunker) -> None:
        chunks = chunker.chunk(_long_section_manual(), "m1")
        procedures = [c for c in chunks if c.level is ChunkLevel.PROCEDURE]
        assert len(procedures) >= 2
        assert {c.section_title for c in procedures} == {"1.1 Changing the Oil"}
        for previous, following in zip(procedures, procedures[1:]):
            assert following.text[:20] in previous.text

    def test_headingless_text_falls_back_to_windows(self, chunker: ManualChunker) -> None:
        text = "Check the tire pressure monthly. " * 600
        chunks = chunker.chunk(text, "m1")
        chapters = [c for c in chunks if c.level is ChunkLevel.CHAPTER]
        assert len(chapters) >= 3
        assert all(c.token_count <= 2048 for c in chapters)

    def test_is_deterministic(self, chunker: ManualChunker) -> None:
        first = chunker.chunk(_long_section_manual(), "m1")
        second = chunker.chunk(_long_section_manual(), "m1")
        assert first == second

    def test_ids_depend_on_manual(self, chunker: ManualChunker) -> None:
        a = chunker.chunk(_STRUCTURED_MANUAL, "m1")
        b = chunker.chunk(_STRUCTURED_MANUAL, "m2")
        assert {c.chunk_id for c in a}.isdisjoint({c.chunk_id for c in b})

    def test_copies_vehicle_metadata(self, chunker: ManualChunker) -> None:
        vehicle = VehicleDescriptor(year=2022, make="Toyota", model="Camry")
        chunks = chunker.chunk(_STRUCTURED_MANUAL, "m1", vehicle)
        assert all(c.vehicle_make == "Toyota" and c.model_year == 2022 for c in chunks)

    def test_page_number_carried_to_sections(self, chunker: ManualChunker) -> None:
        chunks = chunker.chunk(_STRUCTURED_MANUAL, "m1")
        intro = [c for c in chunks if c.section_title == "Introduction"]
        assert intro and all(c.page_number == 3 for c in intro)


class TestHeuristics:
    def test_classify_warning_wins(self) -> None:
        assert classify_content("CAUTION: step 1, torque to 80 lb-ft") is ContentType.WARNING

    def test_classify_procedure(self) -> None:
        assert classify_content("Step 1 Open the hood.") is ContentType.PROCEDURE

    def test_classify_specification(self) -> None:
        assert classify_content("Oil capacity: 4.8 quarts") is ContentType.SPECIFICATION

    def test_classify_general(self) -> None:
        assert classify_content("Thank you for choosing us.") is ContentType.GENERAL

    def test_extract_keywords(self) -> None:
        keywords = extract_keywords("Use 5W-30. Capacity 4.8 quarts. Inflate to 35 psi. Torque 80 lb-ft.")
        assert keywords == ["5W-30", "4.8 quarts", "35 psi", "80 lb-ft"]

    def test_extract_keywords_caps_at_ten(self) -> None:
        text = " ".join(f"{n} psi" for n in range(20, 40))
        assert len(extract_keywords(text)) == 10

    def test_find_page_number(self) -> None:
        assert find_page_number("Some text\nPage 42\nmore") == 42
        assert find_page_number("no markers here") is None
        assert find_page_number("2022\n") is None

    def test_extract_title_strips_chapter_prefix(self) -> None:
        assert extract_title("\nChapter 4: Driving\nbody") == "Driving"
        assert extract_title("## Climate Control\nbody") == "Climate Control"

    def test_estimate_tokens_rounds_up(self) -> None:
        assert estimate_tokens("abcde") == 2
