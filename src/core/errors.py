"""etcd-dump exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class EtcdDumpError(Exception):
    """Base exception for all etcd-dump failures."""


class DumpConfigError(EtcdDumpError):
    """Raised for invalid runtime configuration."""


class DumpDependencyError(EtcdDumpError):
    """Raised when an optional runtime dependency is missing."""


class SnapshotReadError(EtcdDumpError):
    """Raised for failures while reading the pinned etcd snapshot."""


class TransientReadError(SnapshotReadError):
    """Raised for retryable etcd connectivity failures."""


class ReadFailed(SnapshotReadError):
    """Raised when a page read cannot be completed, even after retries."""


class SnapshotExpired(SnapshotReadError):
    """Raised when the pinned revision is no longer readable."""


class DecodeServiceError(EtcdDumpError):
    """Raised when the decode service process cannot be started or reached."""


class DumpWriteError(EtcdDumpError):
    """Raised for output tree write failures."""


class WriteFailure(DumpWriteError):
    """Raised when one decoded document cannot be written."""


class OutputRootError(DumpWriteError):
    """Raised when the output root directory is unusable."""


class SummaryFileError(EtcdDumpError):
    """Raised for unreadable or invalid run-summary files."""


class DecodeRequestError(EtcdDumpError):
    """Raised for a failed decode request of one key."""


class ServiceUnreachable(DecodeRequestError):
    """Raised for connection-level decode failures; retryable."""


class DecodeRejected(DecodeRequestError):
    """Raised when the decode service refuses to decode a value."""


class MalformedResponse(DecodeRejected):
    """Raised when the decode service answers with something other than a document."""
