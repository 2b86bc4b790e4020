"""Tidelink CLI entry points.

This module exposes commands for registering, unifying, listing, and
exporting sampling-event data. It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
import sys
from typing import Any, Sequence

from cli.run_batch_command import add_run_batch_command, run_run_batch_command
from core.config import TidelinkConfig
from core.constants import DEFAULT_CATEGORY, DEFAULT_QUERY_LIMIT, SUPPORTED_EXPORT_FORMATS
from core.errors import TidelinkError
from core.types import AggregateFilter, DataFile, S3ExportRequest
from store.tidelink_sdk import TidelinkClient


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="tidelink", description="Tidelink unification CLI")
    parser.add_argument("--data-root", help="Override TIDELINK_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_register_command(subparsers)
    _add_unify_command(subparsers)
    _add_process_command(subparsers)
    _add_status_command(subparsers)
    _add_list_command(subparsers)
    _add_export_command(subparsers)
    add_run_batch_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Tidelink CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        client = _build_client(args.data_root)
        return _dispatch(parser, client, args)
    except TidelinkError as error:
        print(f"error: {error}", file=sys.stderr)
        return 1


def _dispatch(
    parser: argparse.ArgumentParser,
    client: TidelinkClient,
    args: argparse.Namespace,
) -> int:
    if args.command == "register":
        return _run_register_command(client, args)
    if args.command == "unify":
        return _run_unify_command(client, args)
    if args.command == "process":
        return _run_process_command(client, args)
    if args.command == "status":
        return _run_status_command(client, args)
    if args.command == "list":
        return _run_list_command(client, args)
    if args.command == "export":
        return _run_export_command(client, args)
    if args.command == "run-batch":
        return run_run_batch_command(client, args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(data_root: str | None) -> TidelinkClient:
    """Build SDK client with optional data-root override.

    Args:
        data_root: Optional override path.

    Returns:
        Configured SDK client.
    """
    config = TidelinkConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return TidelinkClient(config)


def _run_register_command(client: TidelinkClient, args: argparse.Namespace) -> int:
    """Handle register command."""
    data_file = client.register_file(
        args.path,
        category=args.category,
        original_name=args.name,
        mime_type=args.mime_type,
    )
    print(f"{data_file.file_id}\t{data_file.original_name}\t{data_file.file_type}")
    return 0


def _run_unify_command(client: TidelinkClient, args: argparse.Namespace) -> int:
    """Handle unify command."""
    report = client.unify(args.file_id)
    print(f"records={report.record_count}")
    print(f"created={report.created_count}")
    print(f"merged={report.merged_count}")
    for composite_key in report.composite_keys:
        print(f"aggregate={composite_key}")
    for note in report.notes:
        print(f"note={note}")
    return 0


def _run_process_command(client: TidelinkClient, args: argparse.Namespace) -> int:
    """Handle process command.

    Registers every path and unifies them concurrently through the worker pool.
    """
    data_files = [client.register_file(path, category=args.category) for path in args.paths]
    jobs = client.process_files([data_file.file_id for data_file in data_files])
    failed = False
    for job in jobs:
        data_file = client.file_status(job.file_id)
        print(format_file_status(data_file))
        failed = failed or job.error is not None
    return 1 if failed else 0


def _run_status_command(client: TidelinkClient, args: argparse.Namespace) -> int:
    """Handle status command."""
    data_file = client.file_status(args.file_id)
    print(f"file_id={data_file.file_id}")
    print(f"name={data_file.original_name}")
    print(f"category={data_file.category}")
    print(f"file_type={data_file.file_type}")
    print(f"status={data_file.status}")
    print(f"record_count={data_file.record_count}")
    print(f"unified_count={data_file.unified_count}")
    print(f"error={data_file.error_message or '-'}")
    for note in data_file.notes:
        print(f"note={note}")
    return 0


def _run_list_command(client: TidelinkClient, args: argparse.Namespace) -> int:
    """Handle list command."""
    if args.files:
        for data_file in client.list_files(file_type=args.file_type, category=args.category):
            print(format_file_status(data_file))
        return 0
    for aggregate in client.list_aggregates(_filter_from_args(args)):
        print(
            f"{aggregate.composite_key}\t"
            f"fish={len(aggregate.fish)}\t"
            f"ocean={len(aggregate.ocean_observations)}\t"
            f"otolith={len(aggregate.otolith_features)}\t"
            f"eDNA={len(aggregate.edna)}\t"
            f"files={len(aggregate.metadata_refs)}"
        )
    return 0


def _run_export_command(client: TidelinkClient, args: argparse.Namespace) -> int:
    """Handle export command."""
    filter_spec = _filter_from_args(args)
    if args.output_uri:
        output_uri = client.export_to_s3(
            S3ExportRequest(
                export_format=args.format,
                output_uri=args.output_uri,
                filter_spec=filter_spec,
            )
        )
        print(output_uri)
        return 0
    payload = client.export_aggregates(args.format, filter_spec)
    if args.output:
        output_path = Path(args.output).expanduser().resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(payload)
        print(output_path)
        return 0
    sys.stdout.buffer.write(payload)
    sys.stdout.flush()
    return 0


def format_file_status(data_file: DataFile) -> str:
    """Render one tab-separated file status line."""
    detail = data_file.error_message if data_file.status == "failed" else data_file.unified_count
    return (
        f"{data_file.file_id}\t{data_file.original_name}\t{data_file.status}\t{detail}"
    )


def _filter_from_args(args: argparse.Namespace) -> AggregateFilter:
    return AggregateFilter(
        location=args.location,
        date_start=args.date_start,
        date_end=args.date_end,
        species=args.species,
        limit=args.limit,
    )


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--location", help="Case-insensitive location substring")
    parser.add_argument("--date-start", help="Inclusive lower date bound, YYYY-MM-DD")
    parser.add_argument("--date-end", help="Inclusive upper date bound, YYYY-MM-DD")
    parser.add_argument("--species", help="Case-insensitive fish species substring")
    parser.add_argument(
        "--limit", type=int, default=DEFAULT_QUERY_LIMIT, help="Maximum aggregates returned"
    )


def _add_register_command(subparsers: Any) -> None:
    """Register register subcommand."""
    parser = subparsers.add_parser("register", help="Register a local file for unification")
    parser.add_argument("path", help="Local file path")
    parser.add_argument("--category", default=DEFAULT_CATEGORY, help="Upload category")
    parser.add_argument("--name", help="Original file name, defaults to the path name")
    parser.add_argument("--mime-type", help="MIME type hint for unknown extensions")


def _add_unify_command(subparsers: Any) -> None:
    """Register unify subcommand."""
    parser = subparsers.add_parser("unify", help="Unify one registered file into aggregates")
    parser.add_argument("file_id", help="Registered file id")


def _add_process_command(subparsers: Any) -> None:
    """Register process subcommand."""
    parser = subparsers.add_parser(
        "process",
        help="Register and unify local files through the worker pool",
    )
    parser.add_argument("paths", nargs="+", help="Local file paths")
    parser.add_argument("--category", default=DEFAULT_CATEGORY, help="Upload category")


def _add_status_command(subparsers: Any) -> None:
    """Register status subcommand."""
    parser = subparsers.add_parser("status", help="Show processing status of a file")
    parser.add_argument("file_id", help="Registered file id")


def _add_list_command(subparsers: Any) -> None:
    """Register list subcommand."""
    parser = subparsers.add_parser("list", help="List aggregates or registered files")
    parser.add_argument("--files", action="store_true", help="List registered files instead")
    parser.add_argument("--file-type", help="With --files, keep only this detected file type")
    parser.add_argument("--category", help="With --files, keep only this upload category")
    _add_filter_arguments(parser)


def _add_export_command(subparsers: Any) -> None:
    """Register export subcommand."""
    parser = subparsers.add_parser("export", help="Export aggregates")
    parser.add_argument(
        "--format", default="json", choices=SUPPORTED_EXPORT_FORMATS, help="Export format"
    )
    destination = parser.add_mutually_exclusive_group()
    destination.add_argument("--output", help="Local output file, defaults to stdout")
    destination.add_argument("--output-uri", help="Destination s3://bucket/key")
    _add_filter_arguments(parser)
