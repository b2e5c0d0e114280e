"""Unit tests for process limit helpers."""

from __future__ import annotations

import pytest

from core.errors import DumpConfigError
from core.process_limits import raise_open_files_limit


def test_raise_open_files_limit_sets_soft_to_hard(monkeypatch) -> None:
    """Soft open-files limit should be raised to the hard limit."""
    calls: list[tuple[int, tuple[int, int]]] = []
    monkeypatch.setattr("core.process_limits.resource.getrlimit", lambda kind: (1024, 65536))
    monkeypatch.setattr(
        "core.process_limits.resource.setrlimit", lambda kind, limits: calls.append((kind, limits))
    )

    limit = raise_open_files_limit()

    assert limit == 65536 and calls[0][1] == (65536, 65536)


def test_raise_open_files_limit_skips_when_already_raised(monkeypatch) -> None:
    """No update should happen when soft and hard limits match."""
    calls: list[object] = []
    monkeypatch.setattr("core.process_limits.resource.getrlimit", lambda kind: (4096, 4096))
    monkeypatch.setattr(
        "core.process_limits.resource.setrlimit", lambda kind, limits: calls.append(limits)
    )

    assert raise_open_files_limit() == 4096 and calls == []


def test_raise_open_files_limit_wraps_os_errors(monkeypatch) -> None:
    """Refused limit updates should surface as config errors."""

    def _refuse(kind: int, limits: tuple[int, int]) -> None:
        raise ValueError("not allowed to raise maximum limit")

    monkeypatch.setattr("core.process_limits.resource.getrlimit", lambda kind: (1024, 65536))
    monkeypatch.setattr("core.process_limits.resource.setrlimit", _refuse)

    with pytest.raises(DumpConfigError):
        raise_open_files_limit()

    assert True
