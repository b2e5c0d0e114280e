"""Paginated reads of the etcd keyspace at one pinned revision.

This module owns snapshot consistency: the first page fixes the revision,
every later page is pinned to it, and any revision drift is fatal.
"""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, Protocol, TypeVar

from core.constants import KEYSPACE_START, NEXT_KEY_SUFFIX
from core.errors import ReadFailed, SnapshotExpired, TransientReadError
from core.logging_config import get_logger
from core.retry import RetryPolicy, call_with_retry
from core.types import KeyEntry, RangePage
from snapshot.key_path import display_key

_LOGGER = get_logger(__name__)
T = TypeVar("T")


class RangeSource(Protocol):
    """Capability for revision-pinned range reads against a key-value store."""

    def fetch_page(self, start_key: bytes, limit: int, revision: int | None) -> RangePage:
        """Return up to ``limit`` entries with keys >= ``start_key``."""
        ...

    def fetch_key(self, key: bytes, revision: int) -> KeyEntry | None:
        """Return one key at ``revision`` or None when absent."""
        ...

    def close(self) -> None:
        """Release client resources."""
        ...


class SnapshotReader:
    """Restartable, lazily paginated iterator over one snapshot revision."""

    def __init__(
        self,
        source: RangeSource,
        page_size: int,
        retry_policy: RetryPolicy,
        revision: int | None = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("SnapshotReader.page_size must be >= 1")
        self._source = source
        self._page_size = page_size
        self._retry_policy = retry_policy
        self._revision = revision

    @property
    def revision(self) -> int | None:
        """Pinned snapshot revision, once established."""
        return self._revision

    def entries(self, start_after: bytes | None = None) -> Iterator[KeyEntry]:
        """Yield every key entry at the snapshot revision in key order.

        Args:
            start_after: Optional checkpoint key; only later keys are yielded.

        Yields:
            Key entries in lexicographic key order.

        Raises:
            SnapshotExpired: If the pinned revision is compacted or drifts.
            ReadFailed: If a page cannot be read within the retry budget.
        """
        start_key = KEYSPACE_START if start_after is None else start_after + NEXT_KEY_SUFFIX
        while True:
            page = self._read_page(start_key)
            for entry in page.entries:
                yield entry
            if len(page.entries) < self._page_size:
                return
            start_key = page.entries[-1].key + NEXT_KEY_SUFFIX

    def entries_for_keys(self, keys: Iterable[bytes]) -> Iterator[KeyEntry]:
        """Yield entries for the named keys at the snapshot revision.

        Args:
            keys: Keys to read, typically failed keys of an earlier run.

        Yields:
            Entries for keys that exist at the revision.

        Raises:
            ReadFailed: If no revision is pinned or a read exhausts retries.
            SnapshotExpired: If the pinned revision was compacted.
        """
        if self._revision is None:
            raise ReadFailed(
                "Cannot read individual keys without a pinned revision. "
                "Pass the revision recorded by the earlier run."
            )
        revision = self._revision
        for key in keys:
            entry = self._with_retry(lambda: self._source.fetch_key(key, revision), key)
            if entry is None:
                _LOGGER.warning("snapshot_key_missing", key=display_key(key), revision=revision)
                continue
            yield entry

    def _read_page(self, start_key: bytes) -> RangePage:
        page = self._with_retry(
            lambda: self._source.fetch_page(start_key, self._page_size, self._revision),
            start_key,
        )
        if self._revision is None:
            self._revision = page.revision
            _LOGGER.info("snapshot_revision_pinned", revision=page.revision)
        elif page.revision != self._revision:
            raise SnapshotExpired(
                f"Snapshot revision changed from {self._revision} to {page.revision} "
                f"while reading from key {display_key(start_key)}. "
                "Re-run the dump to capture a new consistent snapshot."
            )
        return page

    def _with_retry(self, operation: Callable[[], T], key: bytes) -> T:
        def _log_retry(attempt: int, error: BaseException, delay: float) -> None:
            _LOGGER.warning(
                "snapshot_read_retry",
                key=display_key(key),
                attempt=attempt,
                delay_s=round(delay, 3),
                error=str(error),
            )

        try:
            return call_with_retry(
                operation,
                lambda error: isinstance(error, TransientReadError),
                self._retry_policy,
                on_retry=_log_retry,
            )
        except TransientReadError as error:
            raise ReadFailed(
                f"Failed to read etcd at key {display_key(key)} after "
                f"{self._retry_policy.max_attempts} attempts: {error}. "
                "Check that the etcd endpoint is reachable and retry."
            ) from error
