"""etcd3-backed range source.

This module encapsulates etcd3 client creation, revision-pinned range
requests, and translation of gRPC failures into snapshot read errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from core.constants import DEFAULT_ETCD_PORT, KEYSPACE_END
from core.errors import (
    DumpConfigError,
    DumpDependencyError,
    ReadFailed,
    SnapshotExpired,
    TransientReadError,
)
from core.types import KeyEntry, RangePage

_COMPACTED_MARKER = "compacted"


@dataclass(frozen=True)
class EtcdEndpoint:
    """Parsed etcd endpoint."""

    host: str
    port: int


def parse_endpoint(endpoint: str) -> EtcdEndpoint:
    """Parse ``host:port`` or ``http(s)://host:port`` into host and port.

    Args:
        endpoint: Endpoint string from the command line.

    Returns:
        Parsed endpoint.

    Raises:
        DumpConfigError: If the endpoint cannot be parsed.
    """
    candidate = endpoint.strip()
    if "://" not in candidate:
        candidate = f"http://{candidate}"
    parts = urlsplit(candidate)
    try:
        port = parts.port or DEFAULT_ETCD_PORT
    except ValueError as error:
        raise DumpConfigError(
            f"Invalid etcd endpoint '{endpoint}': {error}. Use host:port, e.g. localhost:2379."
        ) from error
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise DumpConfigError(
            f"Invalid etcd endpoint '{endpoint}': expected host:port or http://host:port."
        )
    return EtcdEndpoint(host=parts.hostname, port=port)


class EtcdRangeSource:
    """Range source reading an unauthenticated etcd v3 endpoint."""

    def __init__(self, endpoint: str, timeout_s: float, client: Any | None = None) -> None:
        self._endpoint = endpoint
        self._client = client if client is not None else _create_client(endpoint, timeout_s)

    def fetch_page(self, start_key: bytes, limit: int, revision: int | None) -> RangePage:
        """Read up to ``limit`` keys from ``start_key`` to the end of the keyspace."""
        request_kwargs: dict[str, Any] = {"limit": limit}
        if revision is not None:
            request_kwargs["revision"] = revision
        response = self._call(
            lambda: self._client.get_range_response(start_key, KEYSPACE_END, **request_kwargs)
        )
        entries = tuple(_entry_from_kv(kv) for kv in response.kvs)
        # etcd reports its current revision in the header; a pinned read is
        # served at the requested revision or fails as compacted.
        served_revision = revision if revision is not None else int(response.header.revision)
        return RangePage(entries=entries, revision=served_revision)

    def fetch_key(self, key: bytes, revision: int) -> KeyEntry | None:
        """Read one key at ``revision``."""
        response = self._call(lambda: self._client.get_response(key, revision=revision))
        if not response.kvs:
            return None
        return _entry_from_kv(response.kvs[0])

    def close(self) -> None:
        """Close the underlying gRPC channel."""
        self._client.close()

    def _call(self, operation: Any) -> Any:
        import etcd3.exceptions
        import grpc

        try:
            return operation()
        except (
            etcd3.exceptions.ConnectionFailedError,
            etcd3.exceptions.ConnectionTimeoutError,
        ) as error:
            raise TransientReadError(
                f"etcd endpoint {self._endpoint} is unavailable: {error}"
            ) from error
        except grpc.RpcError as error:
            raise _translate_rpc_error(self._endpoint, error) from error


def _create_client(endpoint: str, timeout_s: float) -> Any:
    """Create an etcd3 client for the endpoint.

    Raises:
        DumpDependencyError: If etcd3 is missing.
    """
    try:
        import etcd3
    except ImportError as error:
        raise DumpDependencyError(
            "Reading etcd requires the etcd3 package, but it is not installed. "
            "Install etcd3 to dump an etcd endpoint."
        ) from error
    parsed = parse_endpoint(endpoint)
    return etcd3.client(host=parsed.host, port=parsed.port, timeout=timeout_s)


def _translate_rpc_error(endpoint: str, error: Any) -> Exception:
    import grpc

    code = error.code() if callable(getattr(error, "code", None)) else None
    details = error.details() if callable(getattr(error, "details", None)) else str(error)
    if code == grpc.StatusCode.OUT_OF_RANGE and _COMPACTED_MARKER in (details or ""):
        return SnapshotExpired(
            f"Pinned revision was compacted on {endpoint}: {details}. "
            "Re-run the dump without --revision to read the current revision."
        )
    return ReadFailed(f"etcd request to {endpoint} failed: {details}")


def _entry_from_kv(kv: Any) -> KeyEntry:
    return KeyEntry(key=bytes(kv.key), value=bytes(kv.value), mod_revision=int(kv.mod_revision))
