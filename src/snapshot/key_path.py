"""Mapping from etcd keys to relative output paths.

Each ``/``-delimited key segment becomes one path component. Segments are
percent-escaped so that the mapping is injective, reversible and free of
traversal components. Reserved components always contain a ``%`` followed
by non-hex characters, which escaping never produces.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import quote_from_bytes, unquote_to_bytes

from core.constants import (
    CONTENT_FILE_SUFFIX,
    EMPTY_SEGMENT_PLACEHOLDER,
    KEY_DELIMITER,
    UNROOTED_KEY_COMPONENT,
)

_DOT_SEGMENTS = {b".": "%2E", b"..": "%2E%2E"}
_ESCAPED_SUFFIX = "%2E" + CONTENT_FILE_SUFFIX[1:]


def map_key_to_path(key: bytes) -> PurePosixPath:
    """Map an etcd key to a collision-free relative file path.

    Args:
        key: Raw etcd key bytes.

    Returns:
        Relative path whose last component is the content file.
    """
    components: list[str] = []
    if key.startswith(KEY_DELIMITER):
        segments = key[len(KEY_DELIMITER) :].split(KEY_DELIMITER)
    else:
        components.append(UNROOTED_KEY_COMPONENT)
        segments = key.split(KEY_DELIMITER)
    for segment in segments[:-1]:
        components.append(_directory_component(segment))
    components.append(_escape_segment(segments[-1]) + CONTENT_FILE_SUFFIX)
    return PurePosixPath(*components)


def unmap_path(path: PurePosixPath) -> bytes:
    """Recover the etcd key a mapped path was derived from.

    Args:
        path: Path previously returned by ``map_key_to_path``.

    Returns:
        Original key bytes.

    Raises:
        ValueError: If the path was not produced by the mapper.
    """
    components = list(path.parts)
    if not components or not components[-1].endswith(CONTENT_FILE_SUFFIX):
        raise ValueError(f"Path {path} does not name a dumped content file.")
    components[-1] = components[-1][: -len(CONTENT_FILE_SUFFIX)]
    prefix = KEY_DELIMITER
    if components[0] == UNROOTED_KEY_COMPONENT and len(components) > 1:
        prefix = b""
        components = components[1:]
    segments = [_unescape_segment(component) for component in components]
    return prefix + KEY_DELIMITER.join(segments)


def _directory_component(segment: bytes) -> str:
    escaped = _escape_segment(segment)
    if escaped.endswith(CONTENT_FILE_SUFFIX):
        # keep directories from shadowing a sibling content file
        return escaped[: -len(CONTENT_FILE_SUFFIX)] + _ESCAPED_SUFFIX
    return escaped


def _escape_segment(segment: bytes) -> str:
    if not segment:
        return EMPTY_SEGMENT_PLACEHOLDER
    if segment in _DOT_SEGMENTS:
        return _DOT_SEGMENTS[segment]
    return quote_from_bytes(segment, safe="")


def _unescape_segment(component: str) -> bytes:
    if component == EMPTY_SEGMENT_PLACEHOLDER:
        return b""
    return unquote_to_bytes(component)


def display_key(key: bytes) -> str:
    """Render a raw key for logs and reports."""
    return key.decode("utf-8", errors="backslashreplace")
