"""Hierarchical chunking of owner's-manual text.

Splits a manual into three levels of :class:`~manual_rag.models.chunk.ManualChunk`:

1. **Chapters** (~2048 tokens) on lines such as "Chapter 4", "Part II",
   "Section 3" or an all-caps banner like "MAINTENANCE AND CARE".
2. **Sections** (~512 tokens) within each chapter, on numbered headers
   ("4.2 Tire Pressure", "3. Jump Starting") and markdown headers.
3. **Procedures** (~256 tokens, 40-token overlap) within any section that
   is still over its budget.

When a level finds no headings, its text is cut into fixed-width
overlapping windows instead.  A chapter or section chunk stores at most
its level budget of text; its children cover the rest of the block.

Token counts are estimated at 4 characters per token.  Output is a pure
function of the input: the same text and manual id always give the same
chunk ids, boundaries and order.
"""

from __future__ import annotations

import math
import re
import uuid
from collections.abc import Callable

import structlog

from manual_rag.models.chunk import ChunkLevel, ContentType, ManualChunk
from manual_rag.models.vehicle import VehicleDescriptor

logger = structlog.get_logger(logger_name=__name__)

CHARS_PER_TOKEN = 4
CHUNK_OVERLAP_TOKENS = 40
MIN_MANUAL_TEXT_CHARS = 100

CHUNK_TOKEN_BUDGETS: dict[ChunkLevel, int] = {
    ChunkLevel.CHAPTER: 2048,
    ChunkLevel.SECTION: 512,
    ChunkLevel.PROCEDURE: 256,
}

_MAX_HEADING_CHARS = 80
_MAX_TITLE_CHARS = 120
_MAX_KEYWORDS = 10

_CHUNK_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "manual-rag/chunks")

# -- Heading patterns -------------------------------------------------------

_CHAPTER_WORD_RE = re.compile(
    r"^(?i:chapter|part|section)\s+(?:\d+|[IVXLCDM]+)\b(?!\.\d)"
)
_ALL_CAPS_RE = re.compile(r"^[A-Z][A-Z &/,'\-]{3,}$")
_CALLOUT_WORDS = frozenset({"WARNING", "CAUTION", "DANGER", "NOTE", "NOTICE", "IMPORTANT"})

_SECTION_RE = re.compile(r"^(?:#{1,3}\s+\S|\d+\.\d+(?:\.\d+)?\s+\S)")
# "3. Jump Starting" is a heading; "3. Park the vehicle." is a step.
_NUMBERED_TITLE_RE = re.compile(r"^\d{1,2}\.\s+([A-Z][^.!?:;]*)$")
_MAX_NUMBERED_TITLE_WORDS = 6

_TITLE_PREFIX_RE = re.compile(
    r"^(?:#{1,6}\s*)?(?:(?:chapter|part|section)\s+(?:\d+|[ivxlcdm]+)\s*[:\-–—.]?\s*)?",
    re.IGNORECASE,
)

# A line holding only "12" or "Page 12".
_PAGE_MARKER_RE = re.compile(r"^[ \t]*(?:page[ \t]+)?(\d{1,4})[ \t]*$", re.IGNORECASE | re.MULTILINE)

# -- Content classification -------------------------------------------------

_WARNING_RE = re.compile(r"\b(?:warning|caution|danger)\b", re.IGNORECASE)
_PROCEDURE_RE = re.compile(r"\b(?:step\s+\d|procedure|how\s+to|instructions?)\b", re.IGNORECASE)
_SPECIFICATION_RE = re.compile(
    r"\b(?:capacity|capacities|specifications?|torque|psi|kpa|quarts?|liters?|litres?|lbs?|dimensions?)\b",
    re.IGNORECASE,
)

_KEYWORD_PATTERNS = (
    re.compile(r"\b\d{1,2}W-\d{1,2}\b", re.IGNORECASE),
    re.compile(r"\b\d+(?:\.\d+)?\s*(?:quarts?|qt|liters?|litres?|gallons?|gal)\b", re.IGNORECASE),
    re.compile(r"\b\d+\s*(?:psi|kpa)\b", re.IGNORECASE),
    re.compile(r"\b\d+\s*(?:lb[-\s]?ft|ft[-\s]?lbs?|n[·.]?m)\b", re.IGNORECASE),
)


def estimate_tokens(text: str) -> int:
    """Estimate the token count of *text* (1 token ≈ 4 characters)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _is_chapter_heading(line: str) -> bool:
    if _CHAPTER_WORD_RE.match(line):
        return True
    if _ALL_CAPS_RE.match(line):
        first_word = re.split(r"[\s:]", line, maxsplit=1)[0]
        return first_word not in _CALLOUT_WORDS
    return False


def _is_section_heading(line: str) -> bool:
    if _SECTION_RE.match(line):
        return True
    match = _NUMBERED_TITLE_RE.match(line)
    if match is None:
        return False
    words = match.group(1).split()
    if len(words) > _MAX_NUMBERED_TITLE_WORDS:
        return False
    # Title case: every word longer than three letters is capitalised.
    return all(word[0].isupper() or len(word) <= 3 for word in words)


def classify_content(text: str) -> ContentType:
    """Tag *text* by keyword heuristics, warnings first."""
    if _WARNING_RE.search(text):
        return ContentType.WARNING
    if _PROCEDURE_RE.search(text):
        return ContentType.PROCEDURE
    if _SPECIFICATION_RE.search(text):
        return ContentType.SPECIFICATION
    return ContentType.GENERAL


def extract_keywords(text: str) -> list[str]:
    """Return up to 10 distinct specification tokens (oil grades, capacities, pressures, torques)."""
    keywords: list[str] = []
    seen: set[str] = set()
    for pattern in _KEYWORD_PATTERNS:
        for match in pattern.finditer(text):
            keyword = " ".join(match.group(0).split())
            if keyword.lower() in seen:
                continue
            seen.add(keyword.lower())
            keywords.append(keyword)
            if len(keywords) >= _MAX_KEYWORDS:
                return keywords
    return keywords


def find_page_number(text: str) -> int | None:
    """Return the first plausible page marker in *text*, if any."""
    for match in _PAGE_MARKER_RE.finditer(text):
        page = int(match.group(1))
        if 0 < page < 2000:
            return page
    return None


def extract_title(text: str) -> str | None:
    """Return the block's first line with heading decoration removed."""
    for line in text.splitlines():
        first = line.strip()
        if not first:
            continue
        title = _TITLE_PREFIX_RE.sub("", first).strip() or first.lstrip("#").strip()
        return title[:_MAX_TITLE_CHARS] or None
    return None


class ManualChunker:
    """Splits manual text into a chapter → section → procedure hierarchy.

    Parameters
    ----------
    overlap_tokens:
        Tokens shared by consecutive fixed-width windows (default 40).
        Never more than half of the shorter window.
    budgets:
        Per-level token budgets.  Defaults to :data:`CHUNK_TOKEN_BUDGETS`.
    """

    def __init__(
        self,
        overlap_tokens: int = CHUNK_OVERLAP_TOKENS,
        budgets: dict[ChunkLevel, int] | None = None,
    ) -> None:
        self._overlap_chars = overlap_tokens * CHARS_PER_TOKEN
        self._budgets = dict(budgets or CHUNK_TOKEN_BUDGETS)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(
        self,
        raw_text: str,
        manual_id: str,
        vehicle: VehicleDescriptor | None = None,
    ) -> list[ManualChunk]:
        """Split *raw_text* into an ordered list of chunks for *manual_id*.

        Returns an empty list only for blank input.
        """
        text = raw_text.replace("\r\n", "\n").strip()
        if not text:
            return []

        builder = _ChunkListBuilder(manual_id, vehicle)
        chapter_budget = self._budgets[ChunkLevel.CHAPTER]
        section_budget = self._budgets[ChunkLevel.SECTION]

        chapter_blocks, _ = self._split_blocks(text, _is_chapter_heading, chapter_budget)
        for chapter_block in chapter_blocks:
            chapter_title = extract_title(chapter_block)
            chapter_page = find_page_number(chapter_block)
            chapter = builder.add(
                level=ChunkLevel.CHAPTER,
                text=self._leading_window(chapter_block, chapter_budget),
                parent=None,
                title=chapter_title,
                page=chapter_page,
            )

            section_blocks, headed = self._split_blocks(
                chapter_block, _is_section_heading, section_budget
            )
            for section_block in section_blocks:
                section_title = (extract_title(section_block) if headed else None) or chapter_title
                section_page = find_page_number(section_block) or chapter_page
                section = builder.add(
                    level=ChunkLevel.SECTION,
                    text=self._leading_window(section_block, section_budget),
                    parent=chapter,
                    title=section_title,
                    page=section_page,
                )

                if estimate_tokens(section_block) <= section_budget:
                    continue
                for window in self._fixed_windows(
                    section_block, self._budgets[ChunkLevel.PROCEDURE]
                ):
                    builder.add(
                        level=ChunkLevel.PROCEDURE,
                        text=window,
                        parent=section,
                        title=section_title,
                        page=find_page_number(window) or section_page,
                    )

        chunks = builder.chunks
        logger.debug(
            "chunking_complete",
            manual_id=manual_id,
            input_chars=len(text),
            chapters=builder.count(ChunkLevel.CHAPTER),
            sections=builder.count(ChunkLevel.SECTION),
            procedures=builder.count(ChunkLevel.PROCEDURE),
        )
        return chunks

    # ------------------------------------------------------------------
    # Splitting
    # ------------------------------------------------------------------

    def _split_blocks(
        self,
        text: str,
        is_heading: Callable[[str], bool],
        budget: int,
    ) -> tuple[list[str], bool]:
        """Split *text* at heading lines.

        Returns the blocks and whether they came from headings.  Fewer than
        two heading-delimited blocks falls back to fixed-width windows.
        """
        offsets: list[int] = []
        position = 0
        for line in text.splitlines(keepends=True):
            stripped = line.strip()
            if stripped and len(stripped) <= _MAX_HEADING_CHARS and is_heading(stripped):
                offsets.append(position)
            position += len(line)

        if offsets and offsets[0] != 0:
            offsets.insert(0, 0)
        bounds = [*offsets, len(text)]
        blocks = [text[start:end].strip() for start, end in zip(bounds, bounds[1:])]
        blocks = [block for block in blocks if block]

        if len(blocks) <= 1:
            return self._fixed_windows(text, budget), False
        return blocks, True

    def _fixed_windows(self, text: str, max_tokens: int) -> list[str]:
        """Cut *text* into windows of at most *max_tokens* with overlap."""
        text = text.strip()
        max_chars = max_tokens * CHARS_PER_TOKEN
        if len(text) <= max_chars:
            return [text] if text else []

        windows: list[str] = []
        start = 0
        while start < len(text):
            end = self._window_end(text, start, max_chars)
            window = text[start:end].strip()
            if window:
                windows.append(window)
            if end >= len(text):
                break
            overlap = min(self._overlap_chars, (end - start) // 2)
            start = end - overlap
        return windows

    def _leading_window(self, block: str, max_tokens: int) -> str:
        max_chars = max_tokens * CHARS_PER_TOKEN
        if len(block) <= max_chars:
            return block
        return block[: self._window_end(block, 0, max_chars)].strip()

    @staticmethod
    def _window_end(text: str, start: int, max_chars: int) -> int:
        """Return where a window starting at *start* should end.

        Prefers the last sentence break, then the last whitespace, in the
        second half of the window.
        """
        end = start + max_chars
        if end >= len(text):
            return len(text)
        floor = start + max_chars // 2
        sentence_break = text.rfind(". ", floor, end)
        if sentence_break != -1:
            return sentence_break + 1
        space = text.rfind(" ", floor, end)
        if space != -1:
            return space
        newline = text.rfind("\n", floor, end)
        if newline != -1:
            return newline
        return end


class _ChunkListBuilder:
    """Assigns contiguous indices and deterministic ids while chunks are emitted."""

    def __init__(self, manual_id: str, vehicle: VehicleDescriptor | None) -> None:
        self._manual_id = manual_id
        self._vehicle = vehicle
        self.chunks: list[ManualChunk] = []

    def add(
        self,
        level: ChunkLevel,
        text: str,
        parent: ManualChunk | None,
        title: str | None,
        page: int | None,
    ) -> ManualChunk:
        index = len(self.chunks)
        chunk = ManualChunk(
            chunk_id=str(uuid.uuid5(_CHUNK_NAMESPACE, f"{self._manual_id}:{index}:{level.value}")),
            manual_id=self._manual_id,
            chunk_index=index,
            level=level,
            parent_chunk_id=parent.chunk_id if parent else None,
            text=text,
            token_count=estimate_tokens(text),
            page_number=page,
            section_title=title,
            content_type=classify_content(text),
            keywords=extract_keywords(text),
            vehicle_make=self._vehicle.make if self._vehicle else None,
            vehicle_model=self._vehicle.model if self._vehicle else None,
            model_year=self._vehicle.year if self._vehicle else None,
        )
        self.chunks.append(chunk)
        return chunk

    def count(self, level: ChunkLevel) -> int:
        return sum(1 for chunk in self.chunks if chunk.level is level)
