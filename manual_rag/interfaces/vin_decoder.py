"""Abstract base class for VIN decoding services."""

from __future__ import annotations

from abc import ABC, abstractmethod

from manual_rag.models.vehicle import VehicleDescriptor


class IVinDecoder(ABC):
    """Contract for resolving a VIN to year, make, model and trim."""

    @abstractmethod
    async def decode(self, vin: str) -> VehicleDescriptor:
        """Return the vehicle described by *vin*.

        Raises
        ------
        manual_rag.utils.errors.InvalidVehicleError
            If the VIN is malformed or the service cannot decode it.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"nhtsa_vpic"``."""
