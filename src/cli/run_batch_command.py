"""Batch CLI command wiring.

This module registers the run-batch subcommand and delegates execution to
the SDK batch runner shared by CLI and SDK entry points.
"""

from __future__ import annotations

import argparse
from typing import Any

from store.tidelink_sdk import TidelinkClient


def add_run_batch_command(subparsers: Any) -> None:
    """Register run-batch subcommand."""
    parser = subparsers.add_parser(
        "run-batch",
        help="Register and unify every file in a YAML batch spec",
    )
    parser.add_argument("spec_file", help="Path to YAML batch spec file")


def run_run_batch_command(client: TidelinkClient, args: argparse.Namespace) -> int:
    """Handle run-batch command invocation."""
    results = client.run_batch(args.spec_file)
    for result in results:
        detail = result.error if result.error else f"unified={result.data_file.unified_count}"
        print(
            f"{result.data_file.file_id}\t{result.data_file.original_name}\t"
            f"{result.data_file.status}\t{detail}"
        )
    return 1 if any(result.error for result in results) else 0
