"""Unit tests for atomic output tree writes."""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath

import pytest

from core.errors import OutputRootError, WriteFailure
from core.types import WriteResult
from dump.writer import DumpWriter


def test_write_creates_intermediate_directories(tmp_path: Path) -> None:
    """Missing parent directories should be created on demand."""
    writer = DumpWriter(tmp_path / "out")
    writer.ensure_root()

    result = writer.write(PurePosixPath("registry/pods/default/web.yaml"), "kind: Pod\n")

    target = tmp_path / "out" / "registry" / "pods" / "default" / "web.yaml"
    assert result is WriteResult.WRITTEN and target.read_text(encoding="utf-8") == "kind: Pod\n"


def test_write_leaves_no_temporary_files(tmp_path: Path) -> None:
    """Only the target file should remain after a write."""
    writer = DumpWriter(tmp_path)

    writer.write(PurePosixPath("a/b.yaml"), "x: 1\n")

    assert sorted(path.name for path in (tmp_path / "a").iterdir()) == ["b.yaml"]


def test_rewrite_with_same_content_is_unchanged(tmp_path: Path) -> None:
    """Identical content on disk should not be rewritten."""
    writer = DumpWriter(tmp_path)
    writer.write(PurePosixPath("a.yaml"), "x: 1\n")
    inode = (tmp_path / "a.yaml").stat().st_ino

    result = writer.write(PurePosixPath("a.yaml"), "x: 1\n")

    assert result is WriteResult.UNCHANGED and (tmp_path / "a.yaml").stat().st_ino == inode


def test_rewrite_with_new_content_replaces_file(tmp_path: Path) -> None:
    """Changed content should atomically replace the existing file."""
    writer = DumpWriter(tmp_path)
    writer.write(PurePosixPath("a.yaml"), "x: 1\n")

    result = writer.write(PurePosixPath("a.yaml"), "x: 2\n")

    assert result is WriteResult.WRITTEN and (tmp_path / "a.yaml").read_text() == "x: 2\n"


def test_overlong_file_name_raises_write_failure(tmp_path: Path) -> None:
    """Names beyond filesystem limits are per-key write failures."""
    writer = DumpWriter(tmp_path)

    with pytest.raises(WriteFailure):
        writer.write(PurePosixPath("a" * 1000 + ".yaml"), "x: 1\n")

    assert not any(tmp_path.iterdir())


def test_failed_replace_removes_temporary_file(tmp_path: Path, monkeypatch) -> None:
    """A failed rename should not leave the temporary sibling behind."""
    writer = DumpWriter(tmp_path)

    def _failing_replace(source, target) -> None:
        raise PermissionError("denied")

    monkeypatch.setattr(os, "replace", _failing_replace)
    with pytest.raises(WriteFailure):
        writer.write(PurePosixPath("a/b.yaml"), "x: 1\n")

    assert list((tmp_path / "a").iterdir()) == []


def test_ensure_root_rejects_file_path(tmp_path: Path) -> None:
    """An output root that is a regular file is unusable."""
    root = tmp_path / "file"
    root.write_text("occupied", encoding="utf-8")

    with pytest.raises(OutputRootError):
        DumpWriter(root).ensure_root()

    assert root.is_file()
