"""Unit tests for the manual-rag command line."""

from __future__ import annotations

import argparse
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from manual_rag.cli import manuals
from manual_rag.models.manual import Manual, ManualRetrievalResult, ManualSource, ProcessingStatus
from manual_rag.utils.errors import InvalidVehicleError, ProviderUnavailableError


def _parse(*argv: str) -> argparse.Namespace:
    return manuals._build_parser().parse_args(list(argv))


class TestParser:
    def test_acquire_by_description(self) -> None:
        args = _parse("acquire", "--year", "2022", "--make", "Toyota", "--model", "Camry", "--wait")
        assert args.command == "acquire"
        assert args.year == 2022
        assert args.wait is True
        assert args.vin is None

    def test_search_options(self) -> None:
        args = _parse("search", "-q", "oil capacity", "--manual-id", "m1", "--limit", "3", "--no-lexical")
        assert args.query == "oil capacity"
        assert args.manual_id == "m1"
        assert args.limit == 3
        assert args.no_lexical is True
        assert args.context is False

    def test_index_requires_file(self) -> None:
        with pytest.raises(SystemExit):
            _parse("index-pdf", "--year", "2022")

    def test_no_command_exits(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            manuals.main([])
        assert exc_info.value.code == 1


class TestVehicleFromArgs:
    def test_absent(self) -> None:
        args = _parse("search", "-q", "x")
        assert manuals._vehicle_from_args(args) is None

    def test_complete(self) -> None:
        args = _parse("search", "-q", "x", "--year", "2019", "--make", "Honda", "--model", "Civic")
        vehicle = manuals._vehicle_from_args(args)
        assert (vehicle.year, vehicle.make, vehicle.model) == (2019, "Honda", "Civic")

    def test_partial_is_rejected(self) -> None:
        args = _parse("search", "-q", "x", "--make", "Honda")
        with pytest.raises(InvalidVehicleError):
            manuals._vehicle_from_args(args)


class TestHandlers:
    @pytest.mark.asyncio
    async def test_acquire_prints_result(self, camry, capsys) -> None:
        pipeline = MagicMock()
        pipeline.acquire = AsyncMock(
            return_value=ManualRetrievalResult(
                source=ManualSource.OEM_FALLBACK,
                vehicle=camry,
                manual_url="https://oem/om.pdf",
                manual_title="2022 Toyota Camry Owner's Manual",
            )
        )
        services = SimpleNamespace(pipeline=pipeline, indexing_queue=None)
        args = _parse("acquire", "--year", "2022", "--make", "Toyota", "--model", "Camry")

        code = await manuals._handle_acquire(args, services)

        assert code == 0
        out = capsys.readouterr().out
        assert "oem_fallback" in out
        assert "https://oem/om.pdf" in out

    @pytest.mark.asyncio
    async def test_stats_counts_by_status(self, camry, capsys) -> None:
        repository = MagicMock()
        repository.list_manuals = AsyncMock(
            return_value=[
                Manual(manual_id="a", vehicle=camry, processing_status=ProcessingStatus.COMPLETED),
                Manual(manual_id="b", vehicle=camry, processing_status=ProcessingStatus.FAILED),
            ]
        )
        store = MagicMock()
        store.count_chunks = AsyncMock(return_value=42)
        services = SimpleNamespace(repository=repository, store=store, retrieval_enabled=True)

        code = await manuals._handle_stats(_parse("stats"), services)

        assert code == 0
        out = capsys.readouterr().out
        assert "Stored chunks:  42" in out
        assert "completed" in out
        assert "failed" in out

    @pytest.mark.asyncio
    async def test_search_without_retriever(self, capsys) -> None:
        services = SimpleNamespace(retriever=None)
        code = await manuals._handle_search(_parse("search", "-q", "oil"), services)
        assert code == 1
        assert "embedding provider" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_run_reports_library_errors(self, monkeypatch, capsys) -> None:
        pipeline = MagicMock()
        pipeline.acquire_by_vin = AsyncMock(side_effect=ProviderUnavailableError("vpic down"))
        services = SimpleNamespace(pipeline=pipeline, indexing_queue=None, aclose=AsyncMock())

        import manual_rag.main

        monkeypatch.setattr(manual_rag.main, "build_services", AsyncMock(return_value=services))

        code = await manuals._run(_parse("acquire", "--vin", "1HGCM82633A004352"), MagicMock())

        assert code == 1
        assert "vpic down" in capsys.readouterr().err
        services.aclose.assert_awaited_once()
