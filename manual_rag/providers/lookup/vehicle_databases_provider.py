"""VehicleDatabases owner's-manual API adapter.

Looks a manual up by VIN when one is known, otherwise by year/make/model.
The JSON payload is validated with pydantic at this boundary and turned
into a :class:`ManualLookupHit` or a :class:`ManualLookupMiss`; nothing
here raises for upstream trouble.
"""

from __future__ import annotations

from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from manual_rag.config.settings import Settings
from manual_rag.interfaces.manual_lookup_provider import IManualLookupProvider
from manual_rag.models.acquisition import LookupMissReason, ManualLookupHit, ManualLookupMiss
from manual_rag.models.vehicle import VehicleDescriptor

logger = structlog.get_logger(logger_name=__name__)


class _ManualData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    owner_manual_url: str | None = None


class _ManualResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str
    data: _ManualData | None = None


class VehicleDatabasesProvider(IManualLookupProvider):
    """Commercial manual lookup via ``api.vehicledatabases.com``."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._api_key = settings.vehicle_databases_api_key
        self._base_url = settings.vehicle_databases_base_url.rstrip("/")
        self._timeout = settings.commercial_api_timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))

    async def lookup(self, vehicle: VehicleDescriptor) -> ManualLookupHit | ManualLookupMiss:
        if not self.is_available():
            return ManualLookupMiss(reason=LookupMissReason.NOT_CONFIGURED)

        url = self._build_url(vehicle)
        try:
            response = await self._client.get(
                url,
                headers={"x-AuthKey": self._api_key, "Accept": "application/json"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("manual_lookup_request_failed", url=url, error=str(exc))
            return ManualLookupMiss(reason=LookupMissReason.UPSTREAM_ERROR, detail=str(exc))

        if response.status_code == 404:
            return ManualLookupMiss(reason=LookupMissReason.NOT_FOUND)
        if response.is_error:
            logger.warning("manual_lookup_http_error", url=url, status=response.status_code)
            return ManualLookupMiss(
                reason=LookupMissReason.UPSTREAM_ERROR,
                detail=f"HTTP {response.status_code}",
            )

        try:
            payload = _ManualResponse.model_validate_json(response.content)
        except ValidationError as exc:
            logger.warning("manual_lookup_malformed_response", url=url, error=str(exc))
            return ManualLookupMiss(reason=LookupMissReason.MALFORMED_RESPONSE, detail=str(exc))

        manual_url = payload.data.owner_manual_url if payload.data else None
        if payload.status != "success" or not manual_url:
            return ManualLookupMiss(reason=LookupMissReason.NOT_FOUND, detail=payload.status)

        logger.info("manual_lookup_hit", vehicle=vehicle.cache_key(), manual_url=manual_url)
        return ManualLookupHit(
            manual_url=manual_url,
            manual_title=f"{vehicle.year} {vehicle.make} {vehicle.model} Owner's Manual",
        )

    def get_provider_name(self) -> str:
        return "vehicledatabases"

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _build_url(self, vehicle: VehicleDescriptor) -> str:
        if vehicle.vin:
            return f"{self._base_url}/owner-manual/vin/{quote(vehicle.vin, safe='')}"
        return (
            f"{self._base_url}/owner-manual/{vehicle.year}/"
            f"{quote(vehicle.make, safe='')}/{quote(vehicle.model, safe='')}"
        )
