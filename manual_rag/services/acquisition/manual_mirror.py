"""Download a verified manual and keep our own copy in blob storage.

Mirroring is best effort: when the download or upload fails for network
or storage reasons the manual is still usable by reference, so the
outcome simply carries no stored URL.  A body that turns out not to be
a PDF is different; that raises so the caller can drop the candidate.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from manual_rag.interfaces.blob_store import IBlobStore
from manual_rag.models.vehicle import VehicleDescriptor
from manual_rag.services.acquisition.pdf_fetcher import PdfFetcher
from manual_rag.utils.errors import BlobStoreError
from manual_rag.utils.text import slugify

logger = structlog.get_logger(logger_name=__name__)


def manual_blob_path(vehicle: VehicleDescriptor) -> str:
    """Return the deterministic storage path for *vehicle*'s manual."""
    parts = [str(vehicle.year), vehicle.make, vehicle.model]
    if vehicle.trim:
        parts.append(vehicle.trim)
    return f"manuals/{slugify('-'.join(parts))}.pdf"


@dataclass(frozen=True)
class MirrorOutcome:
    pdf_bytes: bytes | None = None
    storage_url: str | None = None

    @property
    def mirrored(self) -> bool:
        return self.storage_url is not None


class ManualMirror:
    """Downloads manual PDFs and uploads them to an :class:`IBlobStore`."""

    def __init__(self, fetcher: PdfFetcher, blob_store: IBlobStore | None = None) -> None:
        self._fetcher = fetcher
        self._blob_store = blob_store

    async def mirror(self, url: str, vehicle: VehicleDescriptor) -> MirrorOutcome:
        """Download *url* and store it.

        Raises
        ------
        manual_rag.utils.errors.PdfVerificationError
            If the downloaded body is not a PDF.
        """
        try:
            data = await self._fetcher.download(url)
        except httpx.HTTPError as exc:
            logger.warning("manual_download_failed", url=url, error=str(exc))
            return MirrorOutcome()

        if self._blob_store is None:
            return MirrorOutcome(pdf_bytes=data)

        path = manual_blob_path(vehicle)
        try:
            storage_url = await self._blob_store.upload(path, data, "application/pdf")
        except BlobStoreError as exc:
            logger.warning("manual_upload_failed", path=path, error=str(exc))
            return MirrorOutcome(pdf_bytes=data)

        logger.info("manual_mirrored", vehicle=vehicle.cache_key(), storage_url=storage_url)
        return MirrorOutcome(pdf_bytes=data, storage_url=storage_url)
