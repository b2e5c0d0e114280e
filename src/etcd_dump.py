"""Public SDK surface for etcd-dump.

This module provides a stable import path for library users.
It re-exports the dump entry points and typed option models.
"""

from __future__ import annotations

from core.config import DumpConfig
from core.types import DumpOptions, KeyEntry, RunOutcome, RunSummary
from dump.pipeline import DumpPipelineRunner, dump_etcd
from dump.summary_io import failed_keys, read_run_summary, write_run_summary
from snapshot.key_path import map_key_to_path, unmap_path

__all__ = [
    "DumpConfig",
    "DumpOptions",
    "DumpPipelineRunner",
    "KeyEntry",
    "RunOutcome",
    "RunSummary",
    "dump_etcd",
    "failed_keys",
    "map_key_to_path",
    "read_run_summary",
    "unmap_path",
    "write_run_summary",
]
