"""Acquisition waterfall: find, verify and persist a vehicle's owner's manual.

Stages run strictly in order and the first success wins:

    checking_cache                → hit: done
    querying_commercial_api       → hit: cache, done
    trying_manufacturer_patterns  → verified: download, cache, done
    asking_ai_for_url → verifying_url → verified: download, cache, done
    fallback_web_search_link      → done (degraded, never fails)

Every stage catches its own failures and falls through to the next one,
so :meth:`ManualAcquisitionPipeline.acquire` always returns a
:class:`ManualRetrievalResult` for a valid descriptor.  A persisted
success is recorded in the manual registry and handed to the
:class:`IndexingQueue`, whose outcome never changes the result.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from urllib.parse import quote_plus

import structlog

from manual_rag.interfaces.manual_lookup_provider import IManualLookupProvider
from manual_rag.interfaces.manual_repository import IManualRepository
from manual_rag.interfaces.vin_decoder import IVinDecoder
from manual_rag.models.acquisition import AcquisitionStage, ManualLookupHit
from manual_rag.models.manual import ManualRetrievalResult, ManualSource
from manual_rag.models.vehicle import VehicleDescriptor
from manual_rag.pipeline.indexing_queue import IndexingQueue, IndexingRequest
from manual_rag.pipeline.progress_tracker import ProgressCallback, ProgressReporter
from manual_rag.services.acquisition.manual_cache import ManualCache
from manual_rag.services.acquisition.manual_mirror import ManualMirror, MirrorOutcome
from manual_rag.services.acquisition.manufacturer_patterns import ManufacturerUrlResolver
from manual_rag.services.acquisition.pdf_fetcher import PdfFetcher
from manual_rag.services.acquisition.url_discovery import ManualUrlDiscoveryService
from manual_rag.utils.errors import (
    ConfigurationError,
    InvalidVehicleError,
    PdfVerificationError,
    ProviderUnavailableError,
)
from manual_rag.utils.logging import get_logger

_WEB_SEARCH_URL = "https://www.google.com/search?q="


def manual_title(vehicle: VehicleDescriptor) -> str:
    return f"{vehicle.year} {vehicle.make} {vehicle.model} Owner's Manual"


class ManualAcquisitionPipeline:
    """Walks the manual-source waterfall for one vehicle at a time.

    Parameters
    ----------
    cache:
        Vehicle → URL cache consulted first and written on success.
    fetcher:
        Verifies candidate URLs.
    mirror:
        Downloads verified PDFs and stores our copy.
    lookup_provider:
        Commercial manual API.  ``None`` skips that stage.
    pattern_resolver:
        Manufacturer URL templates.
    url_discovery:
        LLM-assisted URL guessing.  ``None`` skips that stage.
    repository:
        Manual registry.  ``None`` disables recording and indexing.
    indexing_queue:
        Background indexer.  ``None`` disables indexing.
    vin_decoder:
        Needed only by :meth:`acquire_by_vin`.
    """

    def __init__(
        self,
        cache: ManualCache,
        fetcher: PdfFetcher,
        mirror: ManualMirror,
        lookup_provider: IManualLookupProvider | None = None,
        pattern_resolver: ManufacturerUrlResolver | None = None,
        url_discovery: ManualUrlDiscoveryService | None = None,
        repository: IManualRepository | None = None,
        indexing_queue: IndexingQueue | None = None,
        vin_decoder: IVinDecoder | None = None,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._mirror = mirror
        self._lookup_provider = lookup_provider
        self._pattern_resolver = pattern_resolver or ManufacturerUrlResolver()
        self._url_discovery = url_discovery
        self._repository = repository
        self._indexing_queue = indexing_queue
        self._vin_decoder = vin_decoder
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def acquire(
        self,
        vehicle: VehicleDescriptor,
        on_progress: ProgressCallback | None = None,
    ) -> ManualRetrievalResult:
        """Locate a manual for *vehicle*, degrading to a web-search link."""
        reporter = ProgressReporter(on_progress)
        self._logger.info("acquisition_started", vehicle=vehicle.cache_key())

        stages: list[tuple[str, Callable[[], Awaitable[ManualRetrievalResult | None]]]] = [
            ("cache", lambda: self._from_cache(vehicle, reporter)),
            ("commercial_api", lambda: self._from_commercial_api(vehicle, reporter)),
            ("manufacturer_patterns", lambda: self._from_manufacturer_patterns(vehicle, reporter)),
            ("ai_discovery", lambda: self._from_ai_discovery(vehicle, reporter)),
        ]

        result: ManualRetrievalResult | None = None
        for name, stage in stages:
            try:
                result = await stage()
            except Exception as exc:
                self._logger.warning(
                    "acquisition_stage_failed",
                    stage=name,
                    vehicle=vehicle.cache_key(),
                    error=str(exc),
                )
                continue
            if result is not None:
                break

        if result is None:
            result = self._web_search_fallback(vehicle, reporter)

        reporter.emit(AcquisitionStage.DONE, f"Manual source: {result.source.value}")
        self._logger.info(
            "acquisition_complete",
            vehicle=vehicle.cache_key(),
            source=result.source.value,
            cached=result.cached,
            mirrored=result.mirrored_url is not None,
        )
        return result

    async def acquire_by_vin(
        self,
        vin: str,
        on_progress: ProgressCallback | None = None,
    ) -> ManualRetrievalResult:
        """Decode *vin* and acquire the manual for the resulting vehicle.

        Raises
        ------
        InvalidVehicleError
            If the VIN is malformed or cannot be resolved to a vehicle.
        """
        if self._vin_decoder is None:
            raise ConfigurationError("No VIN decoder configured")
        try:
            vehicle = await self._vin_decoder.decode(vin)
        except ProviderUnavailableError as exc:
            raise InvalidVehicleError(
                message=f"Could not resolve VIN {vin}; provide year, make and model instead",
                provider_name=exc.provider_name,
            ) from exc
        return await self.acquire(vehicle, on_progress)

    # ------------------------------------------------------------------
    # Waterfall stages
    # ------------------------------------------------------------------

    async def _from_cache(
        self, vehicle: VehicleDescriptor, reporter: ProgressReporter
    ) -> ManualRetrievalResult | None:
        reporter.emit(AcquisitionStage.CHECKING_CACHE, "Checking for a saved manual")
        entry = await self._cache.get(vehicle)
        if entry is None:
            return None
        return ManualRetrievalResult(
            source=ManualSource.CACHE,
            vehicle=vehicle,
            manual_url=entry.manual_url,
            manual_title=entry.manual_title or manual_title(vehicle),
            cached=True,
        )

    async def _from_commercial_api(
        self, vehicle: VehicleDescriptor, reporter: ProgressReporter
    ) -> ManualRetrievalResult | None:
        if self._lookup_provider is None:
            return None
        reporter.emit(
            AcquisitionStage.QUERYING_COMMERCIAL_API,
            f"Querying {self._lookup_provider.get_provider_name()}",
        )
        outcome = await self._lookup_provider.lookup(vehicle)
        if not isinstance(outcome, ManualLookupHit):
            self._logger.info(
                "commercial_lookup_miss",
                vehicle=vehicle.cache_key(),
                reason=outcome.reason.value,
            )
            return None
        return await self._persist(
            vehicle,
            outcome.manual_url,
            outcome.manual_title or manual_title(vehicle),
            ManualSource.COMMERCIAL_API,
            MirrorOutcome(),
        )

    async def _from_manufacturer_patterns(
        self, vehicle: VehicleDescriptor, reporter: ProgressReporter
    ) -> ManualRetrievalResult | None:
        if not self._pattern_resolver.supports(vehicle.make):
            return None
        reporter.emit(
            AcquisitionStage.TRYING_MANUFACTURER_PATTERNS,
            f"Trying {vehicle.make} manual locations",
        )
        url = self._pattern_resolver.candidate_url(vehicle)
        if url is None or not await self._fetcher.verify(url):
            return None
        return await self._accept_candidate(
            vehicle, url, ManualSource.OEM_FALLBACK, reporter, require_vehicle_mention=False
        )

    async def _from_ai_discovery(
        self, vehicle: VehicleDescriptor, reporter: ProgressReporter
    ) -> ManualRetrievalResult | None:
        if self._url_discovery is None or not self._url_discovery.is_available():
            return None
        reporter.emit(AcquisitionStage.ASKING_AI_FOR_URL, "Asking AI for the manual location")
        url = await self._url_discovery.discover(vehicle)
        if url is None:
            return None
        reporter.emit(AcquisitionStage.VERIFYING_URL, url)
        if not await self._fetcher.verify(url):
            return None
        return await self._accept_candidate(
            vehicle, url, ManualSource.AI_DISCOVERED, reporter, require_vehicle_mention=True
        )

    def _web_search_fallback(
        self, vehicle: VehicleDescriptor, reporter: ProgressReporter
    ) -> ManualRetrievalResult:
        reporter.emit(
            AcquisitionStage.FALLBACK_WEB_SEARCH_LINK,
            "No verified manual found; returning a search link",
        )
        query = f"{vehicle.year} {vehicle.make} {vehicle.model} owner's manual PDF filetype:pdf"
        return ManualRetrievalResult(
            source=ManualSource.WEB_SEARCH,
            vehicle=vehicle,
            manual_url=_WEB_SEARCH_URL + quote_plus(query),
            manual_title=f"Search for {vehicle.year} {vehicle.make} {vehicle.model} Owner's Manual",
            cached=False,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _accept_candidate(
        self,
        vehicle: VehicleDescriptor,
        url: str,
        source: ManualSource,
        reporter: ProgressReporter,
        require_vehicle_mention: bool,
    ) -> ManualRetrievalResult | None:
        reporter.emit(AcquisitionStage.DOWNLOADING, url)
        try:
            outcome = await self._mirror.mirror(url, vehicle)
        except PdfVerificationError as exc:
            self._logger.info("candidate_rejected", url=url, error=str(exc))
            return None
        except Exception as exc:
            self._logger.warning("manual_mirror_failed", url=url, error=str(exc))
            outcome = MirrorOutcome()

        return await self._persist(
            vehicle,
            url,
            manual_title(vehicle),
            source,
            outcome,
            require_vehicle_mention=require_vehicle_mention,
        )

    async def _persist(
        self,
        vehicle: VehicleDescriptor,
        url: str,
        title: str,
        source: ManualSource,
        outcome: MirrorOutcome,
        require_vehicle_mention: bool = False,
    ) -> ManualRetrievalResult:
        await self._cache.put(vehicle, url, source, manual_title=title)

        manual_id: str | None = None
        job_id: str | None = None
        if self._repository is not None:
            try:
                manual = await self._repository.upsert_manual(
                    vehicle, url, source, storage_url=outcome.storage_url
                )
                manual_id = manual.manual_id
                if self._indexing_queue is not None:
                    job = self._indexing_queue.submit(
                        IndexingRequest(
                            manual=manual,
                            pdf_url=url,
                            pdf_bytes=outcome.pdf_bytes,
                            require_vehicle_mention=require_vehicle_mention,
                        )
                    )
                    job_id = job.job_id
            except Exception as exc:
                self._logger.warning(
                    "manual_record_failed",
                    vehicle=vehicle.cache_key(),
                    error=str(exc),
                )

        return ManualRetrievalResult(
            source=source,
            vehicle=vehicle,
            manual_url=url,
            manual_title=title,
            cached=False,
            mirrored_url=outcome.storage_url,
            manual_id=manual_id,
            indexing_job_id=job_id,
        )
