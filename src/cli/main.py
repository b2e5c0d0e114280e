"""etcd-dump CLI entry points.
This module exposes the dump command and its recovery options.
It maps argparse options onto SDK calls and run outcomes onto exit codes.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from core.config import DumpConfig, parse_log_level
from core.constants import (
    EXIT_CODE_CANCELLED,
    EXIT_CODE_COMPLETE,
    EXIT_CODE_COMPLETED_WITH_FAILURES,
    EXIT_CODE_FAILED,
    SUPPORTED_LOG_LEVELS,
)
from core.errors import EtcdDumpError
from core.logging_config import configure_logging, get_logger
from core.process_limits import raise_open_files_limit
from core.types import DumpOptions, RunOutcome, RunSummary
from dump.pipeline import dump_etcd
from dump.summary_io import failed_keys, read_run_summary
from snapshot.key_path import display_key

_LOGGER = get_logger(__name__)
_EXIT_CODES = {
    RunOutcome.COMPLETE: EXIT_CODE_COMPLETE,
    RunOutcome.COMPLETED_WITH_FAILURES: EXIT_CODE_COMPLETED_WITH_FAILURES,
    RunOutcome.FAILED: EXIT_CODE_FAILED,
    RunOutcome.CANCELLED: EXIT_CODE_CANCELLED,
}


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="etcd-dump",
        description="Dump and decode every key of an etcd store into a directory tree",
    )
    parser.add_argument("--etcd-endpoint", required=True, help="etcd endpoint to dump")
    parser.add_argument("--output-dir", required=True, help="Dump output directory")
    parser.add_argument("--page-size", type=_positive_int, help="Keys per etcd range request")
    parser.add_argument("--concurrency", type=_positive_int, help="Decode/write worker count")
    parser.add_argument("--revision", type=_positive_int, help="Explicit snapshot revision")
    parser.add_argument("--decode-url", help="Override ETCD_DUMP_DECODE_URL for this run")
    parser.add_argument(
        "--decode-server-command",
        help="Command that starts the decode service for the duration of the dump",
    )
    parser.add_argument("--summary-file", help="Write the run summary JSON to this path")
    parser.add_argument(
        "--retry-failed",
        metavar="SUMMARY_FILE",
        help="Re-run only the failed keys of an earlier run at its revision",
    )
    parser.add_argument(
        "--log-level",
        choices=SUPPORTED_LOG_LEVELS,
        help="Override ETCD_DUMP_LOG_LEVEL for this run",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the etcd-dump CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args)
        configure_logging(config.log_level)
        options = _build_options(args)
        raise_open_files_limit()
        summary = dump_etcd(options, config)
    except EtcdDumpError as error:
        _LOGGER.error("dump_aborted", error_type=type(error).__name__, error=str(error))
        print(f"error: {error}")
        return EXIT_CODE_FAILED
    except KeyboardInterrupt:
        _LOGGER.warning("dump_interrupted")
        print("cancelled before a run summary was produced")
        return EXIT_CODE_CANCELLED
    _print_summary(summary)
    return _EXIT_CODES[summary.outcome]


def _build_config(args: argparse.Namespace) -> DumpConfig:
    """Build config from environment with CLI overrides.

    Args:
        args: Parsed CLI args.

    Returns:
        Validated config.
    """
    config = DumpConfig.from_env()
    if args.decode_url:
        config = replace(config, decode_url=args.decode_url.rstrip("/"))
    if args.log_level:
        config = replace(config, log_level=parse_log_level(args.log_level))
    return config


def _build_options(args: argparse.Namespace) -> DumpOptions:
    """Build dump options, loading the earlier summary for --retry-failed.

    Args:
        args: Parsed CLI args.

    Returns:
        Dump options.
    """
    options = DumpOptions(
        etcd_endpoint=args.etcd_endpoint,
        output_dir=Path(args.output_dir).expanduser().resolve(),
        page_size=args.page_size,
        concurrency=args.concurrency,
        revision=args.revision,
        summary_path=_optional_path(args.summary_file),
        decode_server_command=args.decode_server_command,
    )
    if not args.retry_failed:
        return options
    previous = read_run_summary(Path(args.retry_failed).expanduser())
    return replace(
        options,
        revision=args.revision or previous.revision,
        only_keys=failed_keys(previous),
    )


def _print_summary(summary: RunSummary) -> None:
    """Print the run summary for operators."""
    print(f"outcome={summary.outcome.value}")
    print(f"revision={summary.revision if summary.revision is not None else '-'}")
    print(f"total={summary.total}")
    print(f"decoded={summary.decoded}")
    print(f"failed={summary.failed}")
    print(f"written={summary.written}")
    if summary.fatal_error:
        print(f"fatal_error={summary.fatal_error}")
    for failure in summary.failures:
        print(
            f"failed_key\t{display_key(failure.key)}\t"
            f"{failure.stage}\t{failure.kind}\t{failure.reason}"
        )


def _optional_path(raw_value: str | None) -> Path | None:
    if not raw_value:
        return None
    return Path(raw_value).expanduser().resolve()


def _positive_int(raw_value: str) -> int:
    try:
        value = int(raw_value)
    except ValueError as error:
        raise argparse.ArgumentTypeError(f"expected integer, got '{raw_value}'") from error
    if value < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return value
