"""Operator CLI for owner's-manual acquisition, indexing and search.

Usage::

    manual-rag acquire --year 2022 --make Toyota --model Camry --wait

    manual-rag acquire --vin 1HGCM82633A004352

    manual-rag index-pdf --file camry.pdf --year 2022 --make Toyota --model Camry

    manual-rag index-text --file camry.txt --year 2022 --make Toyota --model Camry

    manual-rag search --query "oil capacity" --year 2022 --make Toyota --model Camry

    manual-rag stats

Configuration comes from environment variables / ``.env`` (see
:class:`manual_rag.config.settings.Settings`).
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from manual_rag.config.settings import Settings
from manual_rag.models.acquisition import ProgressEvent
from manual_rag.models.chunk import SearchOptions
from manual_rag.models.indexing import IndexingStatus
from manual_rag.models.manual import ProcessingStatus
from manual_rag.models.vehicle import VehicleDescriptor
from manual_rag.utils.errors import ManualRagError
from manual_rag.utils.logging import configure_logging


def _vehicle_from_args(args: argparse.Namespace) -> VehicleDescriptor | None:
    """Build a descriptor from ``--year/--make/--model/--trim``, if given.

    Raises InvalidVehicleError when only some of the fields are present
    or a value is out of range.
    """
    if args.year is None and args.make is None and args.model is None:
        return None
    return VehicleDescriptor.from_mapping(
        {
            "year": args.year,
            "make": args.make,
            "model": args.model,
            "trim": args.trim,
            "vin": getattr(args, "vin", None),
        }
    )


def _print_progress(event: ProgressEvent) -> None:
    detail = f" - {event.detail}" if event.detail else ""
    print(f"  [{event.stage.value}]{detail}")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_acquire(args: argparse.Namespace, services) -> int:  # noqa: ANN001
    """Run the acquisition waterfall for one vehicle."""
    if args.vin and args.make is None:
        print(f"Acquiring manual for VIN {args.vin}")
        result = await services.pipeline.acquire_by_vin(args.vin, on_progress=_print_progress)
    else:
        vehicle = _vehicle_from_args(args)
        if vehicle is None:
            print("Error: provide --vin or --year/--make/--model", file=sys.stderr)
            return 2
        print(f"Acquiring manual for {vehicle.display_name()}")
        result = await services.pipeline.acquire(vehicle, on_progress=_print_progress)

    print("\nAcquisition complete:")
    print(f"  Source:    {result.source.value}")
    print(f"  Title:     {result.manual_title}")
    print(f"  URL:       {result.manual_url}")
    print(f"  Cached:    {result.cached}")
    if result.mirrored_url:
        print(f"  Mirrored:  {result.mirrored_url}")
    if result.manual_id:
        print(f"  Manual ID: {result.manual_id}")

    if args.wait and result.indexing_job_id and services.indexing_queue is not None:
        print("\nWaiting for indexing...")
        job = await services.indexing_queue.wait(result.indexing_job_id)
        print(f"  Status:         {job.status.value}")
        print(f"  Chunks stored:  {job.chunks_stored}")
        if job.error:
            print(f"  Error:          {job.error}")
        return 0 if job.status == IndexingStatus.COMPLETED else 1
    return 0


async def _handle_index(args: argparse.Namespace, services) -> int:  # noqa: ANN001
    """Index a local text or PDF file as the manual for a vehicle."""
    if services.indexing_service is None:
        print("Error: indexing needs an embedding provider (set OPENAI_API_KEY).", file=sys.stderr)
        return 1

    vehicle = _vehicle_from_args(args)
    if vehicle is None:
        print("Error: --year, --make and --model are required", file=sys.stderr)
        return 2

    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    print(f"Indexing {path.name} for {vehicle.display_name()}")
    manual = await services.repository.upsert_manual(
        vehicle, source_url=path.resolve().as_uri(), source=None
    )
    if args.command == "index-pdf":
        result = await services.indexing_service.index_pdf(manual, path.read_bytes())
    else:
        result = await services.indexing_service.index_text(
            manual, path.read_text(encoding="utf-8", errors="replace")
        )

    print("\nIndexing complete:")
    print(f"  Manual ID:      {result.manual_id}")
    print(f"  Chunks created: {result.chunks_created}")
    print(f"  Chunks stored:  {result.chunks_stored}")
    print(f"  Total tokens:   {result.total_tokens}")
    print(f"  Pages:          {result.page_count}")
    print(f"  Time:           {result.elapsed_seconds:.2f}s")
    return 0


async def _handle_search(args: argparse.Namespace, services) -> int:  # noqa: ANN001
    """Hybrid search over indexed manuals."""
    if services.retriever is None:
        print("Error: search needs an embedding provider (set OPENAI_API_KEY).", file=sys.stderr)
        return 1

    vehicle = _vehicle_from_args(args)
    target: VehicleDescriptor | str | None = args.manual_id or vehicle
    defaults = services.settings
    options = SearchOptions(
        use_lexical=not args.no_lexical,
        similarity_threshold=defaults.retrieval_similarity_threshold,
        lexical_weight=defaults.retrieval_lexical_weight,
        semantic_weight=defaults.retrieval_semantic_weight,
        rrf_k=defaults.retrieval_rrf_k,
    )

    if args.context:
        if vehicle is None:
            print("Error: --context needs --year/--make/--model", file=sys.stderr)
            return 2
        grounded = await services.grounding.ground(args.query, vehicle)
        print(grounded.context_text or "No manual excerpts found.")
        return 0

    results = await services.retriever.search(
        args.query, target=target, limit=args.limit, options=options
    )
    if not results:
        print("No results.")
        return 0

    for rank, result in enumerate(results, start=1):
        page = f"p.{result.page_number}" if result.page_number is not None else "p.?"
        section = result.section_title or ""
        print(f"{rank:>2}. [{result.method.value:<8}] {result.score:.5f}  {page}  {section}")
        snippet = " ".join(result.text.split())[:160]
        print(f"      {snippet}")
    return 0


async def _handle_stats(args: argparse.Namespace, services) -> int:  # noqa: ANN001, ARG001
    """Display manual registry and chunk store statistics."""
    manuals = await services.repository.list_manuals()
    total_chunks = await services.store.count_chunks()

    print("Manual Statistics")
    print("=" * 40)
    print(f"  Manuals:        {len(manuals)}")
    print(f"  Stored chunks:  {total_chunks}")
    print(f"  Retrieval:      {'enabled' if services.retrieval_enabled else 'disabled'}")

    if manuals:
        print("\n  Manuals by status:")
        for status in ProcessingStatus:
            count = sum(1 for manual in manuals if manual.processing_status == status)
            if count:
                print(f"    {status.value:<12} {count}")
    return 0


_HANDLERS = {
    "acquire": _handle_acquire,
    "index-text": _handle_index,
    "index-pdf": _handle_index,
    "search": _handle_search,
    "stats": _handle_stats,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    from manual_rag.main import build_services

    services = await build_services(app_settings)
    try:
        return await _HANDLERS[args.command](args, services)
    except ManualRagError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await services.aclose()


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_vehicle_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--year", type=int, help="Model year")
    parser.add_argument("--make", help="Manufacturer, e.g. Toyota")
    parser.add_argument("--model", help="Model name, e.g. Camry")
    parser.add_argument("--trim", help="Trim level (optional)")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the manuals CLI."""
    parser = argparse.ArgumentParser(
        prog="manual-rag",
        description="Acquire, index and search vehicle owner's manuals.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Manual commands")

    # -- acquire --
    acquire_parser = subparsers.add_parser("acquire", help="Locate a vehicle's manual")
    _add_vehicle_arguments(acquire_parser)
    acquire_parser.add_argument("--vin", help="17-character VIN (instead of year/make/model)")
    acquire_parser.add_argument(
        "--wait", action="store_true", help="Wait for background indexing to finish"
    )

    # -- index-text / index-pdf --
    for name, help_text in (
        ("index-text", "Index a plain-text manual file"),
        ("index-pdf", "Index a PDF manual file"),
    ):
        index_parser = subparsers.add_parser(name, help=help_text)
        index_parser.add_argument("--file", required=True, help="Path to the manual file")
        _add_vehicle_arguments(index_parser)

    # -- search --
    search_parser = subparsers.add_parser("search", help="Hybrid search over indexed manuals")
    search_parser.add_argument("--query", "-q", required=True, help="Search text")
    _add_vehicle_arguments(search_parser)
    search_parser.add_argument("--manual-id", dest="manual_id", help="Restrict to one manual")
    search_parser.add_argument("--limit", type=int, default=None, help="Maximum results")
    search_parser.add_argument(
        "--no-lexical",
        action="store_true",
        dest="no_lexical",
        help="Semantic search only",
    )
    search_parser.add_argument(
        "--context",
        action="store_true",
        help="Print the citable grounding block instead of a result list",
    )

    # -- stats --
    subparsers.add_parser("stats", help="Show manual and chunk statistics")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse, configure logging, dispatch, exit."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    exit_code = asyncio.run(_run(args, app_settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
