"""Standalone CLI for ingesting documents into a collection.

Usage::

    python -m src.cli.ingest file --path notes/meeting.pdf --collection team

    python -m src.cli.ingest text --filename todo.txt --collection team \\
        --content "Buy milk"

    echo "piped text" | python -m src.cli.ingest text --filename pipe.txt \\
        --collection team --from-stdin

    python -m src.cli.ingest directory --path ./docs --collection team

    python -m src.cli.ingest list --collection team

    python -m src.cli.ingest delete --id 3f1c...

Providers are selected exactly as in the web server (see
:func:`src.main.build_components`).  Progress events print as they
arrive.  Exit code is 0 on success and 1 on fatal errors.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.models.ingestion import IngestionProgressEvent, IngestionStage, IngestionSummary
from src.services.ingestion.ingestion_service import IngestionService
from src.utils.errors import IngestFlowError


def _build_components(app_settings: Settings) -> dict[str, Any]:
    """Assemble providers and the ingestion service.

    Imported lazily so ``--help`` does not load the provider SDKs.
    """
    from src.main import build_components

    return build_components(app_settings)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_progress(event: IngestionProgressEvent) -> None:
    """Progress sink that writes one line per event."""
    if event.stage is IngestionStage.WARNING:
        print(f"  [warning] {event.message}", file=sys.stderr)
        return
    print(f"  [{event.progress_percent:5.1f}%] {event.stage.value}: {event.message}")


def _print_summary(summary: IngestionSummary) -> None:
    print("\nIngestion complete:")
    print(f"  Document ID:     {summary.document.id}")
    print(f"  Chunks stored:   {summary.chunks_stored}/{summary.total_chunks}")
    if summary.chunks_skipped:
        print(f"  Chunks skipped:  {summary.chunks_skipped}")
    print(f"  Method:          {summary.processing_method.value}")
    print(f"  Content length:  {summary.content_length}")
    print(f"  Time:            {summary.processing_time_ms / 1000:.2f}s")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_file(args: argparse.Namespace, service: IngestionService) -> int:
    print(f"Ingesting file: {args.path} -> {args.collection}")
    try:
        summary = await service.ingest_file(
            args.path,
            collection_id=args.collection,
            progress_sink=_print_progress,
        )
    except IngestFlowError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    _print_summary(summary)
    return 0


async def _handle_text(args: argparse.Namespace, service: IngestionService) -> int:
    content = sys.stdin.read() if args.from_stdin else args.content
    print(f"Ingesting text: {args.filename} -> {args.collection}")
    try:
        summary = await service.ingest_text(
            filename=args.filename,
            content=content,
            collection_id=args.collection,
            progress_sink=_print_progress,
        )
    except IngestFlowError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    _print_summary(summary)
    return 0


async def _handle_directory(
    args: argparse.Namespace,
    service: IngestionService,
    extensions: frozenset[str],
) -> int:
    """Ingest every supported file in a directory (non-recursive).

    A failing file is reported and the rest are still ingested; the exit
    code is 1 if any file failed.
    """
    path = Path(args.path)
    if not path.is_dir():
        print(f"Error: not a directory: {path}", file=sys.stderr)
        return 1

    files = sorted(p for p in path.iterdir() if p.is_file() and p.suffix.lower() in extensions)
    print(f"Ingesting directory: {path} ({len(files)} files) -> {args.collection}")

    failures = 0
    total_stored = 0
    total_skipped = 0
    for file_path in files:
        print(f"\n{file_path.name}")
        try:
            summary = await service.ingest_file(
                file_path,
                collection_id=args.collection,
                progress_sink=_print_progress,
            )
        except IngestFlowError as exc:
            failures += 1
            print(f"  Error: {exc}", file=sys.stderr)
            continue
        total_stored += summary.chunks_stored
        total_skipped += summary.chunks_skipped

    print("\nDirectory ingestion complete:")
    print(f"  Files processed: {len(files) - failures}/{len(files)}")
    print(f"  Chunks stored:   {total_stored}")
    print(f"  Chunks skipped:  {total_skipped}")
    return 1 if failures else 0


async def _handle_delete(args: argparse.Namespace, service: IngestionService) -> int:
    deleted = await service.delete_document(args.id)
    if not deleted:
        print(f"Document {args.id} not found.", file=sys.stderr)
        return 1
    print(f"Deleted document {args.id}.")
    return 0


async def _handle_list(args: argparse.Namespace, service: IngestionService) -> int:
    records = await service.list_documents(args.collection)
    if not records:
        print("No documents found.")
        return 0
    for record in records:
        print(
            f"{record.id}  {record.collection_id:<16} {record.file_type:<5} "
            f"{record.created_at:%Y-%m-%d %H:%M}  {record.filename}"
        )
    print(f"\n{len(records)} document(s)")
    return 0


async def _run(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Initialise the document store and dispatch to a subcommand handler."""
    await components["document_store"].initialize()
    service: IngestionService = components["ingestion_service"]

    if args.command == "file":
        return await _handle_file(args, service)
    if args.command == "text":
        return await _handle_text(args, service)
    if args.command == "directory":
        extensions = components["extractor"].supported_extensions()
        return await _handle_directory(args, service, extensions)
    if args.command == "delete":
        return await _handle_delete(args, service)
    if args.command == "list":
        return await _handle_list(args, service)
    return 1


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ingest",
        description="Ingest documents into ingestflow collections.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Ingestion commands")

    # -- file --
    file_parser = subparsers.add_parser("file", help="Ingest one file")
    file_parser.add_argument("--path", required=True, help="Path to the file")
    file_parser.add_argument("--collection", required=True, help="Target collection id")

    # -- text --
    text_parser = subparsers.add_parser("text", help="Ingest a typed note")
    text_parser.add_argument("--filename", required=True, help="Name to store the note under")
    text_parser.add_argument("--collection", required=True, help="Target collection id")
    source = text_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--content", help="Note text")
    source.add_argument(
        "--from-stdin",
        action="store_true",
        dest="from_stdin",
        help="Read the note text from standard input",
    )

    # -- directory --
    dir_parser = subparsers.add_parser("directory", help="Ingest all files in a directory")
    dir_parser.add_argument("--path", required=True, help="Directory path")
    dir_parser.add_argument("--collection", required=True, help="Target collection id")

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a document and its vectors")
    delete_parser.add_argument("--id", required=True, help="Document id")

    # -- list --
    list_parser = subparsers.add_parser("list", help="List ingested documents")
    list_parser.add_argument("--collection", default=None, help="Only this collection")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ingestion tool."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    components = _build_components(app_settings)
    exit_code = asyncio.run(_run(args, components))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
