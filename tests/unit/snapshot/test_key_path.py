"""Unit tests for etcd key to output path mapping."""

from __future__ import annotations

from pathlib import PurePosixPath

import pytest

from snapshot.key_path import display_key, map_key_to_path, unmap_path

_TRICKY_KEYS = [
    b"/",
    b"//",
    b"",
    b"a/b",
    b"/a/b",
    b"/a/b/",
    b"/a//b",
    b"/a/b/c",
    b"/a/b.yaml",
    b"/a/b.yaml/c",
    b"/a/b%2Eyaml/c",
    b"/a/%empty",
    b"/a/",
    b"/%unrooted/a",
    b"/.",
    b"/..",
    b"/../etc/passwd",
    b"/a/b c",
    b"/a/b%20c",
    b"/registry/pods/default/web-0",
    b"/registry/apiregistration.k8s.io/apiservices/v1.apps",
    b"/caf\xc3\xa9",
    b"/\xff\xfe",
    b"/a\\b",
]


def test_spec_example_keys_map_to_three_distinct_paths() -> None:
    """Keys /a/b, /a/b/c and / should get non-colliding paths."""
    paths = {map_key_to_path(key) for key in [b"/a/b", b"/a/b/c", b"/"]}

    assert paths == {
        PurePosixPath("a/b.yaml"),
        PurePosixPath("a/b/c.yaml"),
        PurePosixPath("%empty.yaml"),
    }


def test_mapping_is_injective_for_tricky_keys() -> None:
    """Distinct keys should never share a mapped path."""
    paths = [map_key_to_path(key) for key in _TRICKY_KEYS]

    assert len(set(paths)) == len(_TRICKY_KEYS)


def test_file_paths_never_collide_with_directory_paths() -> None:
    """No mapped file should sit where another key needs a directory."""
    paths = [map_key_to_path(key) for key in _TRICKY_KEYS]
    directories = {parent for path in paths for parent in path.parents}

    assert not directories.intersection(paths)


def test_mapping_is_deterministic() -> None:
    """Repeated calls should return the same path."""
    key = b"/registry/configmaps/kube-system/extension-apiserver-authentication"

    assert map_key_to_path(key) == map_key_to_path(bytes(key))


@pytest.mark.parametrize("key", _TRICKY_KEYS)
def test_unmap_path_recovers_key(key: bytes) -> None:
    """Escaping should be reversible."""
    assert unmap_path(map_key_to_path(key)) == key


def test_dot_segments_cannot_traverse() -> None:
    """Dot segments should be escaped into plain components."""
    path = map_key_to_path(b"/../etc/passwd")

    assert path == PurePosixPath("%2E%2E/etc/passwd.yaml")


def test_unrooted_key_gets_reserved_component() -> None:
    """Keys without a leading slash should not collide with rooted keys."""
    assert map_key_to_path(b"a/b") == PurePosixPath("%unrooted/a/b.yaml")


def test_unsafe_bytes_are_percent_escaped() -> None:
    """Spaces, percent signs and non-ASCII bytes should be escaped."""
    path = map_key_to_path(b"/a b/50%/\xff")

    assert path == PurePosixPath("a%20b/50%25/%FF.yaml")


def test_unmap_path_rejects_foreign_paths() -> None:
    """Paths without the content suffix were not produced by the mapper."""
    with pytest.raises(ValueError):
        unmap_path(PurePosixPath("a/b.json"))

    assert True


def test_display_key_escapes_undecodable_bytes() -> None:
    """Display form should stay printable for binary keys."""
    assert display_key(b"/a\xff") == "/a\\xff"
