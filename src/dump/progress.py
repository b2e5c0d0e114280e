"""Structured dump progress reporting.

This module emits start, periodic progress and completion events for
long-running dumps, including throughput estimates.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from core.logging_config import get_logger
from core.types import RunSummary

_LOGGER = get_logger(__name__)


@dataclass
class DumpProgressTracker:
    """Track and emit dump progress events."""

    etcd_endpoint: str
    output_dir: str
    log_interval_keys: int
    run_started_at: float = field(default_factory=time.monotonic)

    def log_dump_started(self, page_size: int, concurrency: int, revision: int | None) -> None:
        """Log one event when a dump run starts."""
        self.run_started_at = time.monotonic()
        _LOGGER.info(
            "dump_started",
            etcd_endpoint=self.etcd_endpoint,
            output_dir=self.output_dir,
            page_size=page_size,
            concurrency=concurrency,
            requested_revision=revision,
        )

    def log_key_processed(self, processed: int, failed: int) -> None:
        """Log periodic progress after each processed key."""
        if processed % self.log_interval_keys != 0:
            return
        elapsed_s = time.monotonic() - self.run_started_at
        _LOGGER.info(
            "dump_progress",
            processed=processed,
            failed=failed,
            elapsed_s=round(elapsed_s, 1),
            keys_per_s=_rate(processed, elapsed_s),
        )

    def log_dump_completed(self, summary: RunSummary) -> None:
        """Log final counts for a finished run."""
        elapsed_s = time.monotonic() - self.run_started_at
        log_method = _LOGGER.info if summary.fatal_error is None else _LOGGER.error
        log_method(
            "dump_completed",
            outcome=summary.outcome.value,
            revision=summary.revision,
            total=summary.total,
            decoded=summary.decoded,
            failed=summary.failed,
            written=summary.written,
            elapsed_s=round(elapsed_s, 1),
            keys_per_s=_rate(summary.total, elapsed_s),
            fatal_error=summary.fatal_error,
        )


def _rate(count: int, elapsed_s: float) -> float:
    if elapsed_s <= 0:
        return 0.0
    return round(count / elapsed_s, 1)
