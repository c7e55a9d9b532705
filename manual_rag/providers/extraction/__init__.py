from manual_rag.providers.extraction.pymupdf_text_extractor import PyMuPDFTextExtractor

__all__ = ["PyMuPDFTextExtractor"]
