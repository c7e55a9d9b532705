"""Abstract base class for the manual registry."""

from __future__ import annotations

from abc import ABC, abstractmethod

from manual_rag.models.manual import Manual, ManualSource, ProcessingStatus
from manual_rag.models.vehicle import VehicleDescriptor


# Concrete implementations:
#   SQLiteManualRepository - aiosqlite
# Located in: manual_rag/providers/repository/
class IManualRepository(ABC):
    """Contract for recording one manual per distinct vehicle description.

    Year, make, model and trim identify a manual (case-insensitively);
    the VIN is informational.
    """

    @abstractmethod
    async def upsert_manual(
        self,
        vehicle: VehicleDescriptor,
        source_url: str | None,
        source: ManualSource | None,
        storage_url: str | None = None,
    ) -> Manual:
        """Create the manual for *vehicle*, or update its source fields.

        An update resets ``processing_status`` to ``pending`` so the new
        document gets indexed.
        """

    @abstractmethod
    async def get_manual(self, manual_id: str) -> Manual | None:
        """Return the manual with *manual_id*, or ``None``."""

    @abstractmethod
    async def find_manual(self, vehicle: VehicleDescriptor) -> Manual | None:
        """Return the manual recorded for *vehicle* in any status."""

    @abstractmethod
    async def find_indexed_manual(self, vehicle: VehicleDescriptor) -> str | None:
        """Return the id of *vehicle*'s manual if indexing completed, else ``None``."""

    @abstractmethod
    async def update_status(
        self,
        manual_id: str,
        status: ProcessingStatus,
        page_count: int | None = None,
    ) -> None:
        """Set the processing status (and page count, when given)."""

    @abstractmethod
    async def list_manuals(self, status: ProcessingStatus | None = None) -> list[Manual]:
        """Return manuals, newest first, optionally filtered by status."""
