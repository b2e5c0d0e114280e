"""Shared typed models.

This module defines immutable data models passed between the snapshot,
decode and dump layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal

FailureStage = Literal["decode", "write"]


@dataclass(frozen=True)
class KeyEntry:
    """One key/value pair read at the pinned snapshot revision.

    Attributes:
        key: Raw etcd key bytes.
        value: Raw stored value bytes.
        mod_revision: Revision at which the key was last modified.
    """

    key: bytes
    value: bytes
    mod_revision: int


@dataclass(frozen=True)
class RangePage:
    """One page of a range scan.

    Attributes:
        entries: Entries in lexicographic key order.
        revision: Store revision the page was served at.
    """

    entries: tuple[KeyEntry, ...]
    revision: int


@dataclass(frozen=True)
class DecodedDocument:
    """Successfully decoded value for one key."""

    key: bytes
    content: str


class DecodeFailureKind(str, Enum):
    """Classification of decode failures."""

    SERVICE_UNREACHABLE = "service_unreachable"
    DECODE_REJECTED = "decode_rejected"
    MALFORMED_RESPONSE = "malformed_response"


@dataclass(frozen=True)
class DecodeFailure:
    """Decode failure marker carrying the original key."""

    key: bytes
    kind: DecodeFailureKind
    reason: str


DecodeResult = DecodedDocument | DecodeFailure


class WriteResult(str, Enum):
    """Outcome of one successful writer call."""

    WRITTEN = "written"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class KeyFailure:
    """One per-key failure recorded in a run summary.

    Attributes:
        key: Raw etcd key bytes.
        stage: Pipeline stage that failed.
        kind: Failure classification, e.g. ``decode_rejected``.
        reason: Human-readable error description.
    """

    key: bytes
    stage: FailureStage
    kind: str
    reason: str


class RunOutcome(str, Enum):
    """Terminal state of one dump run."""

    COMPLETE = "complete"
    COMPLETED_WITH_FAILURES = "completed_with_failures"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RunSummary:
    """Aggregate result and failure report of one dump run.

    Attributes:
        revision: Pinned snapshot revision, if one was established.
        total: Keys seen by the snapshot reader.
        decoded: Keys decoded successfully.
        failed: Keys with a recorded decode or write failure.
        written: Keys whose decoded file is on disk.
        failures: Per-key failures with reasons.
        outcome: Terminal run state.
        fatal_error: Error text for failed runs.
    """

    revision: int | None
    total: int
    decoded: int
    failed: int
    written: int
    failures: tuple[KeyFailure, ...]
    outcome: RunOutcome
    fatal_error: str | None = None


@dataclass(frozen=True)
class DumpOptions:
    """Dump command options.

    Attributes:
        etcd_endpoint: etcd endpoint, e.g. ``http://localhost:2379``.
        output_dir: Root directory of the decoded output tree.
        page_size: Keys per range request; config default when None.
        concurrency: Decode/write worker count; config default when None.
        revision: Explicit snapshot revision; latest when None.
        only_keys: Restrict the run to these keys, e.g. failed keys of a prior run.
        summary_path: Optional JSON path for the final run summary.
        decode_server_command: Optional command launching the decode service.
    """

    etcd_endpoint: str
    output_dir: Path
    page_size: int | None = None
    concurrency: int | None = None
    revision: int | None = None
    only_keys: tuple[bytes, ...] | None = None
    summary_path: Path | None = None
    decode_server_command: str | None = None
