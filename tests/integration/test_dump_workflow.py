"""Integration tests for dump, failure report and failed-key re-run workflows."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import httpx

from core.config import DumpConfig
from core.retry import RetryPolicy
from core.types import DumpOptions, RunOutcome
from decode.decode_client import DecodeClient
from dump.pipeline import DumpPipelineRunner
from dump.summary_io import failed_keys, read_run_summary, write_run_summary
from snapshot.key_path import map_key_to_path, unmap_path
from tests.fakes import FakeRangeSource

_VALUES = {
    b"/registry/configmaps/default/settings": b"cm",
    b"/registry/pods/default/web-0": b"pod",
    b"/registry/secrets/default/token": b"secret",
    b"/registry/widgets.example.com/default/w": b"widget",
}


class _DecodeService:
    """Mock decode service that cannot decode widgets until taught to."""

    def __init__(self) -> None:
        self.knows_widgets = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        kind = request.content.decode("utf-8")
        if kind == "widget" and not self.knows_widgets:
            return httpx.Response(422, text="no kind Widget is registered")
        return httpx.Response(200, text=f"kind: {kind}\nkey: {request.url.params['key']}\n")


def _decoder(service: _DecodeService) -> DecodeClient:
    http_client = httpx.Client(
        transport=httpx.MockTransport(service), base_url="http://decoder.test"
    )
    policy = RetryPolicy(max_attempts=2, initial_delay_s=0.0, jitter=False)
    return DecodeClient("http://decoder.test", 1.0, policy, http_client=http_client)


def test_dump_then_retry_failed_keys(tmp_path: Path) -> None:
    """A failed key should be recoverable by re-running only that key."""
    output_dir = tmp_path / "dump"
    summary_path = tmp_path / "summary.json"
    config = replace(DumpConfig.from_env(), max_attempts=2)
    options = DumpOptions(
        etcd_endpoint="localhost:2379", output_dir=output_dir, page_size=2, concurrency=2
    )
    service = _DecodeService()

    first = DumpPipelineRunner(
        options, config, FakeRangeSource(_VALUES, revision=321), _decoder(service)
    ).run()
    write_run_summary(summary_path, first)
    service.knows_widgets = True
    previous = read_run_summary(summary_path)
    retry_options = replace(options, revision=previous.revision, only_keys=failed_keys(previous))
    second = DumpPipelineRunner(
        retry_options, config, FakeRangeSource(_VALUES, revision=321), _decoder(service)
    ).run()

    widget_file = output_dir / map_key_to_path(b"/registry/widgets.example.com/default/w")
    assert (
        first.outcome is RunOutcome.COMPLETED_WITH_FAILURES
        and (first.total, first.written, first.failed) == (4, 3, 1)
        and second.outcome is RunOutcome.COMPLETE
        and (second.total, second.written) == (1, 1)
        and widget_file.read_text(encoding="utf-8").startswith("kind: widget")
    )


def test_output_tree_maps_back_to_keys(tmp_path: Path) -> None:
    """Every file in the tree should correspond to exactly one dumped key."""
    config = DumpConfig.from_env()
    options = DumpOptions(etcd_endpoint="localhost:2379", output_dir=tmp_path, concurrency=4)
    service = _DecodeService()
    service.knows_widgets = True

    summary = DumpPipelineRunner(options, config, FakeRangeSource(_VALUES), _decoder(service)).run()

    keys = {
        unmap_path(path.relative_to(tmp_path)) for path in tmp_path.rglob("*") if path.is_file()
    }
    assert keys == set(_VALUES) and summary.written == len(_VALUES)
