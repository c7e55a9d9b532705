"""PDF text extraction via PyMuPDF (``fitz``).

Plain text only: tables and images are not reconstructed.  Each page's
text is preceded by a ``Page N`` line, which the chunker reads back as a
page marker.
"""

from __future__ import annotations

import asyncio

import fitz  # PyMuPDF
import structlog

from manual_rag.interfaces.text_extractor import ITextExtractor
from manual_rag.models.indexing import ExtractedText
from manual_rag.utils.errors import TextExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PyMuPDFTextExtractor(ITextExtractor):
    """Extracts page text from in-memory PDF bytes."""

    async def extract(self, pdf_bytes: bytes) -> ExtractedText:
        return await asyncio.to_thread(self._extract_sync, pdf_bytes)

    def get_provider_name(self) -> str:
        return "pymupdf"

    def _extract_sync(self, pdf_bytes: bytes) -> ExtractedText:
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as exc:
            raise TextExtractionError(
                message=f"Failed to open PDF: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        pages: list[str] = []
        empty_pages = 0
        try:
            for page_number, page in enumerate(doc, start=1):
                try:
                    text = page.get_text("text").strip()
                except Exception as exc:
                    # One unreadable page degrades the manual, it doesn't void it.
                    logger.warning("pdf_page_extract_failed", page=page_number, error=str(exc))
                    text = ""
                if not text:
                    empty_pages += 1
                    continue
                pages.append(f"Page {page_number}\n{text}")
            page_count = doc.page_count
        finally:
            doc.close()

        logger.info(
            "pdf_text_extracted",
            pages=page_count,
            empty_pages=empty_pages,
            chars=sum(len(p) for p in pages),
        )
        return ExtractedText(text="\n\n".join(pages), page_count=page_count)
