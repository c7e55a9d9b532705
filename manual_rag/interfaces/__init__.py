"""Abstract interfaces for every external collaborator.

Concrete adapters live under ``manual_rag/providers/``:

    ICacheProvider         → providers/cache/
    IEmbeddingProvider     → providers/embedding/
    IManualChunkStore      → providers/vector_store/
    ILLMProvider           → providers/llm/
    IBlobStore             → providers/storage/
    IManualLookupProvider  → providers/lookup/
    IManualRepository      → providers/repository/
    ITextExtractor         → providers/extraction/
    IVinDecoder            → providers/vin/
"""

from manual_rag.interfaces.blob_store import IBlobStore
from manual_rag.interfaces.cache_provider import ICacheProvider
from manual_rag.interfaces.chunk_store import IManualChunkStore
from manual_rag.interfaces.embedding_provider import IEmbeddingProvider
from manual_rag.interfaces.llm_provider import ILLMProvider
from manual_rag.interfaces.manual_lookup_provider import IManualLookupProvider
from manual_rag.interfaces.manual_repository import IManualRepository
from manual_rag.interfaces.text_extractor import ITextExtractor
from manual_rag.interfaces.vin_decoder import IVinDecoder

__all__ = [
    "IBlobStore",
    "ICacheProvider",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IManualChunkStore",
    "IManualLookupProvider",
    "IManualRepository",
    "ITextExtractor",
    "IVinDecoder",
]
