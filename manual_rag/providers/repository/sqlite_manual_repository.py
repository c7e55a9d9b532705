"""SQLite-backed manual registry.

One row per distinct vehicle description, keyed by the normalized
``year:make:model[:trim]`` string.  Uses ``aiosqlite`` for async I/O.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from manual_rag.interfaces.manual_repository import IManualRepository
from manual_rag.models.manual import Manual, ManualSource, ProcessingStatus
from manual_rag.models.vehicle import VehicleDescriptor

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/manuals.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS manuals (
    manual_id          TEXT PRIMARY KEY,
    vehicle_key        TEXT NOT NULL UNIQUE,
    year               INTEGER NOT NULL,
    make               TEXT NOT NULL,
    model              TEXT NOT NULL,
    trim               TEXT,
    vin                TEXT,
    source_url         TEXT,
    source             TEXT,
    storage_url        TEXT,
    processing_status  TEXT NOT NULL DEFAULT 'pending',
    page_count         INTEGER,
    created_at         TEXT NOT NULL,
    updated_at         TEXT NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_manuals_status ON manuals(processing_status);",
]

_SELECT_COLUMNS = (
    "manual_id, year, make, model, trim, vin, source_url, source, storage_url, "
    "processing_status, page_count, created_at, updated_at"
)


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


class SQLiteManualRepository(IManualRepository):
    """SQLite manual registry."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the manuals table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("manual_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # IManualRepository implementation
    # ------------------------------------------------------------------

    async def upsert_manual(
        self,
        vehicle: VehicleDescriptor,
        source_url: str | None,
        source: ManualSource | None,
        storage_url: str | None = None,
    ) -> Manual:
        now = _now_iso()
        source_value = source.value if source else None
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            await db.execute(
                "INSERT INTO manuals (manual_id, vehicle_key, year, make, model, trim, vin, "
                "source_url, source, storage_url, processing_status, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?) "
                "ON CONFLICT(vehicle_key) DO UPDATE SET "
                "source_url = excluded.source_url, source = excluded.source, "
                "storage_url = excluded.storage_url, "
                "vin = COALESCE(excluded.vin, manuals.vin), "
                "processing_status = 'pending', updated_at = excluded.updated_at",
                (
                    str(uuid.uuid4()),
                    vehicle.cache_key(),
                    vehicle.year,
                    vehicle.make,
                    vehicle.model,
                    vehicle.trim,
                    vehicle.vin,
                    source_url,
                    source_value,
                    storage_url,
                    now,
                    now,
                ),
            )
            await db.commit()
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM manuals WHERE vehicle_key = ?",
                (vehicle.cache_key(),),
            )
            row = await cursor.fetchone()

        manual = self._row_to_manual(dict(row))
        logger.info(
            "manual_recorded",
            manual_id=manual.manual_id,
            vehicle=vehicle.cache_key(),
            source=source_value,
        )
        return manual

    async def get_manual(self, manual_id: str) -> Manual | None:
        return await self._fetch_one("manual_id = ?", (manual_id,))

    async def find_manual(self, vehicle: VehicleDescriptor) -> Manual | None:
        return await self._fetch_one("vehicle_key = ?", (vehicle.cache_key(),))

    async def find_indexed_manual(self, vehicle: VehicleDescriptor) -> str | None:
        manual = await self._fetch_one(
            "vehicle_key = ? AND processing_status = ?",
            (vehicle.cache_key(), ProcessingStatus.COMPLETED.value),
        )
        return manual.manual_id if manual else None

    async def update_status(
        self,
        manual_id: str,
        status: ProcessingStatus,
        page_count: int | None = None,
    ) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "UPDATE manuals SET processing_status = ?, "
                "page_count = COALESCE(?, page_count), updated_at = ? WHERE manual_id = ?",
                (status.value, page_count, _now_iso(), manual_id),
            )
            await db.commit()
        logger.debug("manual_status_updated", manual_id=manual_id, status=status.value)

    async def list_manuals(self, status: ProcessingStatus | None = None) -> list[Manual]:
        query = f"SELECT {_SELECT_COLUMNS} FROM manuals"
        params: tuple[Any, ...] = ()
        if status is not None:
            query += " WHERE processing_status = ?"
            params = (status.value,)
        query += " ORDER BY updated_at DESC"
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [self._row_to_manual(dict(row)) for row in rows]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fetch_one(self, where: str, params: tuple[Any, ...]) -> Manual | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM manuals WHERE {where}", params
            )
            row = await cursor.fetchone()
        return self._row_to_manual(dict(row)) if row else None

    @staticmethod
    def _row_to_manual(row: dict[str, Any]) -> Manual:
        return Manual(
            manual_id=row["manual_id"],
            vehicle=VehicleDescriptor(
                year=row["year"],
                make=row["make"],
                model=row["model"],
                trim=row["trim"],
                vin=row["vin"],
            ),
            source_url=row["source_url"],
            source=ManualSource(row["source"]) if row["source"] else None,
            storage_url=row["storage_url"],
            processing_status=ProcessingStatus(row["processing_status"]),
            page_count=row["page_count"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
