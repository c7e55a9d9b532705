"""NHTSA vPIC VIN decoder adapter.

Calls ``/vehicles/DecodeVin/<vin>?format=json`` and reads the year, make,
model and trim out of the ``Results`` variable list.  The VIN's check
digit is validated locally first so malformed input never costs a
request.
"""

from __future__ import annotations

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from manual_rag.config.settings import Settings
from manual_rag.interfaces.vin_decoder import IVinDecoder
from manual_rag.models.vehicle import VehicleDescriptor
from manual_rag.utils.errors import InvalidVehicleError, ProviderUnavailableError
from manual_rag.utils.vin import validate_vin

logger = structlog.get_logger(logger_name=__name__)

# vPIC variable ids.
_MODEL_YEAR = 29
_MAKE = 26
_MODEL = 28
_TRIM = 38
_SERIES = 109
_ERROR_CODE = 143


class _VpicVariable(BaseModel):
    model_config = ConfigDict(extra="ignore")

    Value: str | None = None
    VariableId: int


class _VpicResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    Results: list[_VpicVariable]


class NHTSAVinDecoder(IVinDecoder):
    """VIN decoding via the free NHTSA vPIC API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._base_url = settings.nhtsa_vpic_base_url.rstrip("/")
        self._timeout = settings.vin_decode_timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))

    async def decode(self, vin: str) -> VehicleDescriptor:
        normalized = validate_vin(vin)
        url = f"{self._base_url}/vehicles/DecodeVin/{normalized}"
        try:
            response = await self._client.get(url, params={"format": "json"}, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                message=f"VIN decode request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        try:
            payload = _VpicResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise ProviderUnavailableError(
                message="VIN decode returned an unexpected payload",
                provider_name=self.get_provider_name(),
            ) from exc

        values = {
            variable.VariableId: (variable.Value or "").strip()
            for variable in payload.Results
        }
        error_code = values.get(_ERROR_CODE, "0")
        # Code "0" is a clean decode; other codes still often carry usable data.
        if error_code and not error_code.startswith("0"):
            logger.info("vin_decode_warning", vin=normalized, error_code=error_code)

        year = values.get(_MODEL_YEAR, "")
        if not year.isdigit() or not values.get(_MAKE) or not values.get(_MODEL):
            raise InvalidVehicleError(
                message=f"VIN {normalized} could not be decoded (code {error_code})",
                provider_name=self.get_provider_name(),
            )

        vehicle = VehicleDescriptor.from_mapping(
            {
                "year": int(year),
                "make": values[_MAKE].title(),
                "model": values[_MODEL],
                "trim": values.get(_TRIM) or values.get(_SERIES) or None,
                "vin": normalized,
            }
        )
        logger.info("vin_decoded", vin=normalized, vehicle=vehicle.cache_key())
        return vehicle

    def get_provider_name(self) -> str:
        return "nhtsa_vpic"

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
