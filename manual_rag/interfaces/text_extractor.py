"""Abstract base class for PDF-to-text extraction."""

from __future__ import annotations

from abc import ABC, abstractmethod

from manual_rag.models.indexing import ExtractedText


class ITextExtractor(ABC):
    """Contract for turning PDF bytes into plain text.

    Layout (tables, images) is not reconstructed.  Implementations insert
    a ``Page N`` marker line at each page start so the chunker can
    recover page numbers.
    """

    @abstractmethod
    async def extract(self, pdf_bytes: bytes) -> ExtractedText:
        """Return the document text and page count.

        Raises
        ------
        manual_rag.utils.errors.TextExtractionError
            If the bytes cannot be parsed as a PDF.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"pymupdf"``."""
