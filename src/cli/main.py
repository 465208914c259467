"""pto-import CLI entry points.
This module exposes commands for validating, staging, and batch importing rows.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from core.config import ImportConfig
from core.errors import BatchWriteFailure, PtoImportError
from core.types import ImportSummary, ValidationReport
from ingest.input_reader import read_import_rows
from store.import_sdk import ImportClient


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="pto-import", description="PTO batch import CLI")
    parser.add_argument("--data-root", help="Override PTO_IMPORT_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_validate_command(subparsers)
    _add_stage_command(subparsers)
    _add_run_batch_command(subparsers)
    subparsers.add_parser("run", help="Run all batches from a fresh start")
    subparsers.add_parser("progress", help="Show the current run cursor")
    subparsers.add_parser("clear-staging", help="Remove staged import rows")
    _add_remove_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the pto-import CLI.

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
    except BatchWriteFailure as error:
        print(f"error={error}")
        print(f"failed_batch={error.batch_index}")
        print(f"committed_records={error.committed_records}")
        return 1
    except PtoImportError as error:
        print(f"error={error}")
        return 1


def _dispatch(
    parser: argparse.ArgumentParser,
    client: ImportClient,
    args: argparse.Namespace,
) -> int:
    if args.command == "validate":
        return _run_validate_command(client, args)
    if args.command == "stage":
        return _run_stage_command(client, args)
    if args.command == "run-batch":
        return _run_batch_command(client, args)
    if args.command == "run":
        _print_summary(client.run_to_completion())
        return 0
    if args.command == "progress":
        return _run_progress_command(client)
    if args.command == "clear-staging":
        print(f"removed_keys={client.clear_staging()}")
        return 0
    if args.command == "remove":
        print(f"removed_keys={client.remove(args.key)}")
        return 0
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(data_root: str | None) -> ImportClient:
    """Build SDK client with optional data-root override.

    Args:
        data_root: Optional override path.

    Returns:
        Configured SDK client.
    """
    config = ImportConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return ImportClient(config)


def _run_validate_command(client: ImportClient, args: argparse.Namespace) -> int:
    """Handle validate command.

    Returns:
        Exit code, 1 when any row is invalid.
    """
    rows = read_import_rows(Path(args.rows))
    report = client.validate(rows, resolve_identities=args.resolve)
    _print_report(report)
    return 0 if report.is_valid else 1


def _run_stage_command(client: ImportClient, args: argparse.Namespace) -> int:
    """Handle stage command: validate with resolution, then stage accepted rows."""
    rows = read_import_rows(Path(args.rows))
    report, result = client.validate_and_stage(rows)
    _print_report(report)
    print(f"staged_records={len(report.valid_records)}")
    print(f"staged_chunks={result.chunks}")
    return 0


def _run_batch_command(client: ImportClient, args: argparse.Namespace) -> int:
    """Handle run-batch command."""
    outcome = client.run_batch(args.index)
    print(f"finished={str(outcome.finished).lower()}")
    if outcome.progress is not None:
        print(f"current_batch={outcome.progress.current_batch}")
        print(f"total_batches={outcome.progress.total_batches}")
    if outcome.result is not None:
        _print_summary(outcome.result)
    return 0


def _run_progress_command(client: ImportClient) -> int:
    """Handle progress command."""
    progress = client.progress()
    if progress is None:
        print("status=not_started")
        return 0
    print("status=running")
    print(f"current_batch={progress.current_batch}")
    print(f"total_batches={progress.total_batches}")
    print(f"percent_complete={client.percent_complete()}")
    return 0


def _print_report(report: ValidationReport) -> None:
    print(f"total_records={report.total_records}")
    print(f"valid_records={len(report.valid_records)}")
    print(f"invalid_records={report.invalid_records}")
    for message in report.messages:
        print(f"message={message}")
    for error in report.errors:
        payload = {"row": error.row, "kind": error.kind, "reasons": list(error.reasons)}
        print(f"row_error={json.dumps(payload)}")
    for warning in report.warnings:
        print(f"duplicate_row={warning.row}\tduplicate_of={warning.duplicate_of}")


def _print_summary(summary: ImportSummary) -> None:
    print(f"total_records={summary.total_records}")
    print(f"imported_records={summary.imported_records}")
    print(f"failed_records={summary.failed_records}")
    for failure in summary.errors:
        print(f"row_failure={failure.index}\t{failure.error}")


def _add_validate_command(subparsers: Any) -> None:
    """Register validate subcommand."""
    parser = subparsers.add_parser("validate", help="Validate an import rows file")
    parser.add_argument("rows", help="JSON array or JSONL rows file")
    parser.add_argument(
        "--resolve",
        action="store_true",
        help="Resolve requester and manager emails through the identity directory",
    )


def _add_stage_command(subparsers: Any) -> None:
    """Register stage subcommand."""
    parser = subparsers.add_parser("stage", help="Validate, enrich, and stage import rows")
    parser.add_argument("rows", help="JSON array or JSONL rows file")


def _add_run_batch_command(subparsers: Any) -> None:
    """Register run-batch subcommand."""
    parser = subparsers.add_parser("run-batch", help="Run one batch engine invocation")
    parser.add_argument("--index", type=int, required=True, help="Zero-based batch index")


def _add_remove_command(subparsers: Any) -> None:
    """Register remove subcommand."""
    parser = subparsers.add_parser("remove", help="Remove a stored entry and its chunks")
    parser.add_argument("key", help="Base key of the entry")
