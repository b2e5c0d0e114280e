"""Atomic file writes into the decoded output tree.

Content is written to a temporary sibling and renamed into place, so a
reader of the tree never observes a partially written file.
"""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath
import tempfile

from core.constants import TEMP_FILE_PREFIX, TEMP_FILE_SUFFIX
from core.errors import OutputRootError, WriteFailure
from core.types import WriteResult


class DumpWriter:
    """Writer rooted at one output directory."""

    def __init__(self, output_root: Path) -> None:
        self._root = output_root

    @property
    def root(self) -> Path:
        """Output root directory."""
        return self._root

    def ensure_root(self) -> None:
        """Create the output root and verify it accepts writes.

        Raises:
            OutputRootError: If the root cannot be created or written.
        """
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise OutputRootError(
                f"Failed to create output directory {self._root}: {error}. "
                "Choose a writable --output-dir."
            ) from error
        if not self._root.is_dir() or not os.access(self._root, os.W_OK | os.X_OK):
            raise OutputRootError(
                f"Output directory {self._root} is not a writable directory. "
                "Choose a writable --output-dir."
            )

    def write(self, relative_path: PurePosixPath, content: str) -> WriteResult:
        """Atomically write decoded content below the output root.

        Args:
            relative_path: Mapped path of the key.
            content: Decoded document text.

        Returns:
            ``UNCHANGED`` when identical bytes were already on disk.

        Raises:
            WriteFailure: If directories or the file cannot be written.
        """
        target = self._root.joinpath(*relative_path.parts)
        payload = content.encode("utf-8")
        try:
            if _has_content(target, payload):
                return WriteResult.UNCHANGED
            target.parent.mkdir(parents=True, exist_ok=True)
            _atomic_replace(target, payload)
        except OSError as error:
            raise WriteFailure(f"Failed to write {target}: {error}") from error
        return WriteResult.WRITTEN


def _has_content(target: Path, payload: bytes) -> bool:
    if not target.is_file():
        return False
    if target.stat().st_size != len(payload):
        return False
    return target.read_bytes() == payload


def _atomic_replace(target: Path, payload: bytes) -> None:
    temp_file = tempfile.NamedTemporaryFile(
        dir=target.parent,
        prefix=TEMP_FILE_PREFIX,
        suffix=TEMP_FILE_SUFFIX,
        delete=False,
    )
    temp_path = Path(temp_file.name)
    try:
        with temp_file:
            temp_file.write(payload)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.chmod(temp_path, 0o644)
        os.replace(temp_path, target)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
