"""Pytest configuration for repository test runs."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def pytest_sessionstart() -> None:
    """Make the src packages and the shared ``tests.fakes`` module importable."""
    for import_root in (PROJECT_ROOT / "src", PROJECT_ROOT):
        if str(import_root) not in sys.path:
            sys.path.insert(0, str(import_root))


@pytest.fixture(autouse=True)
def _isolated_dump_environment(monkeypatch) -> None:
    """Keep operator ETCD_DUMP_* settings out of config-dependent tests."""
    for name in list(os.environ):
        if name.startswith("ETCD_DUMP_"):
            monkeypatch.delenv(name)
