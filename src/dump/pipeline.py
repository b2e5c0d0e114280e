"""Dump orchestration: scan, decode and write under bounded concurrency.

One producer walks the snapshot and feeds a bounded queue; a fixed pool of
worker threads decodes and writes. Per-key failures are recorded in the run
summary; snapshot read errors and an unusable output root end the run.
"""

from __future__ import annotations

from contextlib import ExitStack
import queue
import threading
from typing import Iterator, Protocol

from core.config import DumpConfig
from core.errors import OutputRootError, SnapshotReadError, WriteFailure
from core.logging_config import get_logger
from core.retry import RetryPolicy
from core.types import (
    DecodeFailure,
    DecodeResult,
    DumpOptions,
    KeyEntry,
    KeyFailure,
    RunOutcome,
    RunSummary,
    WriteResult,
)
from decode.decode_client import DecodeClient
from decode.decode_server import DecodeServerProcess
from dump.progress import DumpProgressTracker
from dump.summary_io import write_run_summary
from dump.writer import DumpWriter
from snapshot.etcd_source import EtcdRangeSource
from snapshot.key_path import display_key, map_key_to_path
from snapshot.snapshot_reader import RangeSource, SnapshotReader

_LOGGER = get_logger(__name__)
_QUEUE_POLL_S = 0.1


class KeyDecoder(Protocol):
    """Capability turning one raw value into a decoded document."""

    def decode(self, key: bytes, value: bytes) -> DecodeResult:
        """Decode one value or return a failure marker."""
        ...


class _SummaryBuilder:
    """Thread-safe run counters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = 0
        self._decoded = 0
        self._written = 0
        self._failures: list[KeyFailure] = []

    @property
    def failed(self) -> int:
        with self._lock:
            return len(self._failures)

    def record_seen(self) -> None:
        with self._lock:
            self._total += 1

    def record_decoded(self) -> None:
        with self._lock:
            self._decoded += 1

    def record_written(self) -> tuple[int, int]:
        """Count one written key; return (processed, failed) after it."""
        with self._lock:
            self._written += 1
            return self._progress()

    def record_failure(self, failure: KeyFailure) -> tuple[int, int]:
        """Record one key failure; return (processed, failed) after it."""
        with self._lock:
            self._failures.append(failure)
            return self._progress()

    def _progress(self) -> tuple[int, int]:
        return self._written + len(self._failures), len(self._failures)

    def build(
        self,
        revision: int | None,
        outcome: RunOutcome,
        fatal_error: str | None,
    ) -> RunSummary:
        with self._lock:
            failures = tuple(sorted(self._failures, key=lambda failure: failure.key))
            return RunSummary(
                revision=revision,
                total=self._total,
                decoded=self._decoded,
                failed=len(failures),
                written=self._written,
                failures=failures,
                outcome=outcome,
                fatal_error=fatal_error,
            )


class DumpPipelineRunner:
    """Runner for one scan, decode and write pass over a snapshot.

    ``stop_event`` may be shared with the decoder so that cancelling the run
    also cuts short any decode retries in flight.
    """

    def __init__(
        self,
        options: DumpOptions,
        config: DumpConfig,
        source: RangeSource,
        decoder: KeyDecoder,
        writer: DumpWriter | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._options = options
        self._page_size = options.page_size or config.page_size
        self._concurrency = options.concurrency or config.concurrency
        self._reader = SnapshotReader(
            source,
            self._page_size,
            RetryPolicy(max_attempts=config.max_attempts),
            revision=options.revision,
        )
        self._decoder = decoder
        self._writer = writer or DumpWriter(options.output_dir)
        self._queue: queue.Queue[KeyEntry] = queue.Queue(maxsize=config.queue_size)
        self._summary = _SummaryBuilder()
        self._progress = DumpProgressTracker(
            etcd_endpoint=options.etcd_endpoint,
            output_dir=str(options.output_dir),
            log_interval_keys=config.progress_interval,
        )
        self._stop = stop_event if stop_event is not None else threading.Event()
        self._scan_done = threading.Event()
        self._cancelled = threading.Event()
        self._fatal_lock = threading.Lock()
        self._fatal_error: str | None = None

    def cancel(self) -> None:
        """Stop producing and abandon queued and in-flight keys."""
        self._cancelled.set()
        self._stop.set()

    def run(self) -> RunSummary:
        """Execute the dump and return its run summary.

        A ``KeyboardInterrupt`` at any point of the scan or the drain of
        queued keys cancels the run instead of propagating.
        """
        self._progress.log_dump_started(self._page_size, self._concurrency, self._options.revision)
        try:
            self._writer.ensure_root()
        except OutputRootError as error:
            self._record_fatal("write", error)
            return self._finish()
        workers = self._start_workers()
        try:
            self._scan()
            self._join_workers(workers)
        except KeyboardInterrupt:
            _LOGGER.warning("dump_cancel_requested")
            self.cancel()
            self._join_workers(workers)
        return self._finish()

    def _scan(self) -> None:
        try:
            self._produce()
        except SnapshotReadError as error:
            self._record_fatal("scan", error)
        finally:
            self._scan_done.set()

    def _produce(self) -> None:
        for entry in self._iter_entries():
            if self._stop.is_set():
                return
            self._summary.record_seen()
            if not self._enqueue(entry):
                return

    def _iter_entries(self) -> Iterator[KeyEntry]:
        if self._options.only_keys is not None:
            return self._reader.entries_for_keys(self._options.only_keys)
        return self._reader.entries()

    def _enqueue(self, entry: KeyEntry) -> bool:
        while not self._stop.is_set():
            try:
                self._queue.put(entry, timeout=_QUEUE_POLL_S)
            except queue.Full:
                continue
            return True
        return False

    def _start_workers(self) -> list[threading.Thread]:
        workers = [
            threading.Thread(target=self._work, name=f"dump-worker-{index}", daemon=True)
            for index in range(self._concurrency)
        ]
        for worker in workers:
            worker.start()
        return workers

    @staticmethod
    def _join_workers(workers: list[threading.Thread]) -> None:
        for worker in workers:
            worker.join()

    def _work(self) -> None:
        while True:
            try:
                entry = self._queue.get(timeout=_QUEUE_POLL_S)
            except queue.Empty:
                # nothing is enqueued once the scan is done
                if self._scan_done.is_set() and self._queue.empty():
                    return
                continue
            if self._stop.is_set():
                continue
            try:
                self._process(entry)
            except Exception as error:
                self._record_fatal("worker", error, entry.key)

    def _process(self, entry: KeyEntry) -> None:
        result = self._decoder.decode(entry.key, entry.value)
        if self._stop.is_set():
            return
        if isinstance(result, DecodeFailure):
            failure = KeyFailure(
                key=entry.key, stage="decode", kind=result.kind.value, reason=result.reason
            )
            self._log_processed(self._summary.record_failure(failure))
            return
        self._summary.record_decoded()
        try:
            write_result = self._writer.write(map_key_to_path(entry.key), result.content)
        except WriteFailure as error:
            _LOGGER.warning("dump_write_failed", key=display_key(entry.key), error=str(error))
            progress = self._summary.record_failure(
                KeyFailure(key=entry.key, stage="write", kind="write_failure", reason=str(error))
            )
        else:
            if write_result is WriteResult.UNCHANGED:
                _LOGGER.debug("dump_file_unchanged", key=display_key(entry.key))
            progress = self._summary.record_written()
        self._log_processed(progress)

    def _log_processed(self, progress: tuple[int, int]) -> None:
        processed, failed = progress
        self._progress.log_key_processed(processed, failed)

    def _record_fatal(self, stage: str, error: Exception, key: bytes | None = None) -> None:
        with self._fatal_lock:
            if self._fatal_error is None:
                self._fatal_error = f"{stage} stage failed: {error}"
        _LOGGER.error(
            "dump_fatal_error",
            stage=stage,
            key=display_key(key) if key is not None else None,
            error_type=type(error).__name__,
            error=str(error),
        )
        self._stop.set()

    def _finish(self) -> RunSummary:
        summary = self._summary.build(self._reader.revision, self._outcome(), self._fatal_error)
        self._progress.log_dump_completed(summary)
        return summary

    def _outcome(self) -> RunOutcome:
        if self._fatal_error is not None:
            return RunOutcome.FAILED
        if self._cancelled.is_set():
            return RunOutcome.CANCELLED
        if self._summary.failed:
            return RunOutcome.COMPLETED_WITH_FAILURES
        return RunOutcome.COMPLETE


def dump_etcd(options: DumpOptions, config: DumpConfig) -> RunSummary:
    """Dump and decode every key of an etcd endpoint to the output directory.

    Args:
        options: Dump request options.
        config: Runtime configuration.

    Returns:
        Final run summary; the outcome reports fatal errors.

    Raises:
        DumpConfigError: If the etcd endpoint is invalid.
        DumpDependencyError: If the etcd client library is missing.
        DecodeServiceError: If a requested decode server cannot be started.
    """
    with ExitStack() as stack:
        if options.decode_server_command:
            stack.enter_context(
                DecodeServerProcess(options.decode_server_command, config.decode_url)
            )
        stop_event = threading.Event()
        source = EtcdRangeSource(options.etcd_endpoint, config.etcd_timeout_s)
        stack.callback(source.close)
        decoder = stack.enter_context(
            DecodeClient(
                config.decode_url,
                config.decode_timeout_s,
                RetryPolicy(max_attempts=config.max_attempts),
                stop_event=stop_event,
            )
        )
        runner = DumpPipelineRunner(options, config, source, decoder, stop_event=stop_event)
        summary = runner.run()
    if options.summary_path is not None:
        write_run_summary(options.summary_path, summary)
    return summary
