"""Collaborators of the acquisition waterfall."""

from manual_rag.services.acquisition.manual_cache import ManualCache
from manual_rag.services.acquisition.manual_mirror import ManualMirror, MirrorOutcome
from manual_rag.services.acquisition.manufacturer_patterns import ManufacturerUrlResolver
from manual_rag.services.acquisition.pdf_fetcher import PDF_MAGIC, PdfFetcher
from manual_rag.services.acquisition.url_discovery import ManualUrlDiscoveryService

__all__ = [
    "PDF_MAGIC",
    "ManualCache",
    "ManualMirror",
    "ManualUrlDiscoveryService",
    "ManufacturerUrlResolver",
    "MirrorOutcome",
    "PdfFetcher",
]
