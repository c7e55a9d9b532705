"""Abstract base class for commercial owner's-manual lookup APIs."""

from __future__ import annotations

from abc import ABC, abstractmethod

from manual_rag.models.acquisition import ManualLookupHit, ManualLookupMiss
from manual_rag.models.vehicle import VehicleDescriptor


class IManualLookupProvider(ABC):
    """Contract for services that map a vehicle to a manual URL.

    Implementations never raise for upstream trouble: network errors,
    missing credentials and odd payloads all come back as a
    :class:`ManualLookupMiss` with a reason code.
    """

    @abstractmethod
    async def lookup(self, vehicle: VehicleDescriptor) -> ManualLookupHit | ManualLookupMiss:
        """Return a hit carrying the manual URL, or a miss with its reason."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"vehicledatabases"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""
