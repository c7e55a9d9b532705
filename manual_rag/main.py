"""Composition root for the manual retrieval subsystem.

Builds every provider and service from :class:`Settings` and hands them
back in a :class:`ManualServices` container.  Callers (the CLI, an
assistant backend, tests) use the container and must ``await
services.aclose()`` when done so pending indexing jobs finish and HTTP
clients are released.

Providers whose credentials are missing are simply left out:

- no LLM key: the AI-discovery stage is skipped.
- no VehicleDatabases key: the commercial-API stage reports a miss.
- no embedding key: indexing and retrieval are disabled; acquisition
  still works and returns URLs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import structlog

from manual_rag.config.settings import Settings
from manual_rag.interfaces.blob_store import IBlobStore
from manual_rag.interfaces.cache_provider import ICacheProvider
from manual_rag.interfaces.embedding_provider import IEmbeddingProvider
from manual_rag.interfaces.llm_provider import ILLMProvider
from manual_rag.models.chunk import SearchOptions
from manual_rag.pipeline.indexing_queue import IndexingQueue
from manual_rag.pipeline.orchestrator import ManualAcquisitionPipeline
from manual_rag.providers.cache.memory_cache import MemoryCacheProvider
from manual_rag.providers.cache.sqlite_cache import SQLiteCacheProvider
from manual_rag.providers.extraction.pymupdf_text_extractor import PyMuPDFTextExtractor
from manual_rag.providers.lookup.vehicle_databases_provider import VehicleDatabasesProvider
from manual_rag.providers.repository.sqlite_manual_repository import SQLiteManualRepository
from manual_rag.providers.vector_store.chromadb_provider import ChromaDBChunkStore
from manual_rag.providers.vin.nhtsa_vin_decoder import NHTSAVinDecoder
from manual_rag.services.acquisition.manual_cache import ManualCache
from manual_rag.services.acquisition.manual_mirror import ManualMirror
from manual_rag.services.acquisition.manufacturer_patterns import ManufacturerUrlResolver
from manual_rag.services.acquisition.pdf_fetcher import PdfFetcher
from manual_rag.services.acquisition.url_discovery import ManualUrlDiscoveryService
from manual_rag.services.indexing.chunker import ManualChunker
from manual_rag.services.indexing.indexing_service import IndexingService
from manual_rag.services.retrieval.grounding import ManualGroundingService
from manual_rag.services.retrieval.hybrid_retriever import HybridRetriever
from manual_rag.utils.errors import ConfigurationError
from manual_rag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider | None:
    """Select the first configured LLM provider.

    Priority order: Anthropic -> OpenAI.  ``None`` when neither has a key.
    """
    if app_settings.anthropic_api_key:
        from manual_rag.providers.llm.anthropic_provider import AnthropicLLMProvider

        return AnthropicLLMProvider(settings=app_settings)
    if app_settings.openai_api_key:
        from manual_rag.providers.llm.openai_provider import OpenAILLMProvider

        return OpenAILLMProvider(settings=app_settings)
    return None


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider | None:
    """Return the OpenAI(-compatible) embedding provider, or ``None``."""
    if not app_settings.openai_api_key:
        return None

    from manual_rag.providers.embedding.openai_embedding_provider import (
        OpenAIEmbeddingProvider,
    )

    provider = OpenAIEmbeddingProvider(settings=app_settings)
    return provider if provider.is_available() else None


def _build_cache(app_settings: Settings) -> ICacheProvider:
    backend = app_settings.cache_backend.lower()
    ttl = app_settings.manual_cache_ttl_days * 86400
    if backend == "memory":
        return MemoryCacheProvider(ttl=ttl)
    if backend == "sqlite":
        return SQLiteCacheProvider(db_path=app_settings.cache_db_path, ttl=ttl)
    raise ConfigurationError(f"Unknown cache backend: {app_settings.cache_backend!r}")


def _build_blob_store(app_settings: Settings) -> IBlobStore | None:
    backend = app_settings.blob_backend.lower()
    if backend == "none":
        return None
    if backend == "local":
        from manual_rag.providers.storage.local_blob_store import LocalBlobStore

        return LocalBlobStore(
            base_dir=app_settings.blob_local_dir,
            public_base_url=app_settings.blob_public_base_url,
        )
    if backend == "s3":
        if not app_settings.s3_bucket:
            raise ConfigurationError("BLOB_BACKEND=s3 requires S3_BUCKET")
        from manual_rag.providers.storage.s3_blob_store import S3BlobStore

        return S3BlobStore(
            bucket=app_settings.s3_bucket,
            region=app_settings.s3_region,
            prefix=app_settings.s3_prefix,
        )
    raise ConfigurationError(f"Unknown blob backend: {app_settings.blob_backend!r}")


def _build_search_options(app_settings: Settings) -> SearchOptions:
    return SearchOptions(
        similarity_threshold=app_settings.retrieval_similarity_threshold,
        lexical_weight=app_settings.retrieval_lexical_weight,
        semantic_weight=app_settings.retrieval_semantic_weight,
        rrf_k=app_settings.retrieval_rrf_k,
    )


# ---------------------------------------------------------------------------
# Service container
# ---------------------------------------------------------------------------


@dataclass
class ManualServices:
    """Everything a caller needs, wired together."""

    settings: Settings
    repository: SQLiteManualRepository
    store: ChromaDBChunkStore
    manual_cache: ManualCache
    fetcher: PdfFetcher
    lookup_provider: VehicleDatabasesProvider
    vin_decoder: NHTSAVinDecoder
    pipeline: ManualAcquisitionPipeline
    embedding_provider: IEmbeddingProvider | None = None
    indexing_service: IndexingService | None = None
    indexing_queue: IndexingQueue | None = None
    retriever: HybridRetriever | None = None
    grounding: ManualGroundingService | None = None

    @property
    def retrieval_enabled(self) -> bool:
        return self.retriever is not None

    async def aclose(self) -> None:
        """Wait for queued indexing, then release HTTP clients."""
        if self.indexing_queue is not None:
            await self.indexing_queue.join()
        await self.fetcher.close()
        await self.lookup_provider.close()
        await self.vin_decoder.close()


async def build_services(app_settings: Settings | None = None) -> ManualServices:
    """Construct and initialise every component.

    Raises
    ------
    ConfigurationError
        If a backend name in settings is not recognised.
    """
    app_settings = app_settings or Settings()

    # -- Persistence --
    repository = SQLiteManualRepository(db_path=app_settings.manual_db_path)
    await repository.initialize()

    cache_provider = _build_cache(app_settings)
    if isinstance(cache_provider, SQLiteCacheProvider):
        await cache_provider.initialize()
    manual_cache = ManualCache(
        cache_provider,
        retention=timedelta(days=app_settings.manual_cache_ttl_days),
    )

    embedding_provider = _build_embedding_provider(app_settings)
    store = ChromaDBChunkStore(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
        dimension=embedding_provider.get_dimension() if embedding_provider else None,
        batch_size=app_settings.store_batch_size,
    )

    # -- Acquisition --
    fetcher = PdfFetcher(
        verify_timeout=app_settings.verify_timeout,
        download_timeout=app_settings.download_timeout,
        max_bytes=app_settings.max_pdf_bytes,
    )
    mirror = ManualMirror(fetcher, blob_store=_build_blob_store(app_settings))
    lookup_provider = VehicleDatabasesProvider(settings=app_settings)
    vin_decoder = NHTSAVinDecoder(settings=app_settings)

    llm = _build_llm_provider(app_settings)
    url_discovery = ManualUrlDiscoveryService(llm) if llm is not None else None

    # -- Indexing & retrieval (need embeddings) --
    indexing_service = None
    indexing_queue = None
    retriever = None
    grounding = None
    if embedding_provider is not None:
        indexing_service = IndexingService(
            chunker=ManualChunker(),
            embedding_provider=embedding_provider,
            store=store,
            repository=repository,
            text_extractor=PyMuPDFTextExtractor(),
            min_text_chars=app_settings.min_manual_text_chars,
        )
        indexing_queue = IndexingQueue(
            indexing_service,
            fetcher=fetcher,
            concurrency=app_settings.indexing_concurrency,
        )
        retriever = HybridRetriever(
            store=store,
            embedding_provider=embedding_provider,
            manual_repository=repository,
            default_options=_build_search_options(app_settings),
            default_limit=app_settings.retrieval_default_limit,
        )
        grounding = ManualGroundingService(retriever)
        _logger.info(
            "retrieval_enabled",
            embedding_provider=embedding_provider.get_provider_name(),
            store=store.get_provider_name(),
            persist_dir=app_settings.chromadb_persist_dir,
        )
    else:
        _logger.warning(
            "retrieval_disabled",
            msg="No embedding provider configured; manuals will be located but not indexed.",
        )

    pipeline = ManualAcquisitionPipeline(
        cache=manual_cache,
        fetcher=fetcher,
        mirror=mirror,
        lookup_provider=lookup_provider,
        pattern_resolver=ManufacturerUrlResolver(),
        url_discovery=url_discovery,
        repository=repository,
        indexing_queue=indexing_queue,
        vin_decoder=vin_decoder,
    )

    return ManualServices(
        settings=app_settings,
        repository=repository,
        store=store,
        manual_cache=manual_cache,
        fetcher=fetcher,
        lookup_provider=lookup_provider,
        vin_decoder=vin_decoder,
        pipeline=pipeline,
        embedding_provider=embedding_provider,
        indexing_service=indexing_service,
        indexing_queue=indexing_queue,
        retriever=retriever,
        grounding=grounding,
    )
