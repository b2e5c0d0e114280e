"""JSON persistence for run summaries.

Summaries are written outside the output tree so that the tree holds
decoded content only. Keys are stored base64-encoded because etcd keys
are arbitrary bytes; a readable rendering is kept alongside.
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path
from typing import Any

from core.constants import SUMMARY_FORMAT_VERSION
from core.errors import SummaryFileError
from core.types import KeyFailure, RunOutcome, RunSummary


def write_run_summary(summary_path: Path, summary: RunSummary) -> None:
    """Write one run summary as JSON."""
    payload = summary_to_dict(summary)
    try:
        summary_path.parent.mkdir(parents=True, exist_ok=True)
        summary_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    except OSError as error:
        raise SummaryFileError(f"Failed to write run summary {summary_path}: {error}.") from error


def read_run_summary(summary_path: Path) -> RunSummary:
    """Read a run summary written by ``write_run_summary``.

    Raises:
        SummaryFileError: If the file is missing or invalid.
    """
    try:
        payload = json.loads(summary_path.read_text(encoding="utf-8"))
    except FileNotFoundError as error:
        raise SummaryFileError(
            f"Run summary not found at {summary_path}. "
            "Pass the --summary-file path of an earlier run."
        ) from error
    except json.JSONDecodeError as error:
        raise SummaryFileError(
            f"Failed to parse run summary {summary_path}: {error.msg}."
        ) from error
    except OSError as error:
        raise SummaryFileError(f"Failed to read run summary {summary_path}: {error}.") from error
    try:
        return summary_from_dict(payload)
    except (KeyError, TypeError, ValueError, binascii.Error) as error:
        raise SummaryFileError(
            f"Invalid run summary {summary_path}: {error}. "
            "Recreate it by re-running the dump with --summary-file."
        ) from error


def failed_keys(summary: RunSummary) -> tuple[bytes, ...]:
    """Return the distinct failed keys of a summary in recorded order."""
    return tuple(dict.fromkeys(failure.key for failure in summary.failures))


def summary_to_dict(summary: RunSummary) -> dict[str, Any]:
    """Serialize a run summary to a JSON-compatible dictionary."""
    return {
        "format_version": SUMMARY_FORMAT_VERSION,
        "revision": summary.revision,
        "outcome": summary.outcome.value,
        "total": summary.total,
        "decoded": summary.decoded,
        "failed": summary.failed,
        "written": summary.written,
        "fatal_error": summary.fatal_error,
        "failures": [
            {
                "key": failure.key.decode("utf-8", errors="backslashreplace"),
                "key_b64": base64.b64encode(failure.key).decode("ascii"),
                "stage": failure.stage,
                "kind": failure.kind,
                "reason": failure.reason,
            }
            for failure in summary.failures
        ],
    }


def summary_from_dict(payload: dict[str, Any]) -> RunSummary:
    """Deserialize a run summary dictionary."""
    if int(payload["format_version"]) != SUMMARY_FORMAT_VERSION:
        raise ValueError(f"unsupported format_version {payload['format_version']}")
    revision = payload["revision"]
    return RunSummary(
        revision=int(revision) if revision is not None else None,
        total=int(payload["total"]),
        decoded=int(payload["decoded"]),
        failed=int(payload["failed"]),
        written=int(payload["written"]),
        failures=tuple(_failure_from_dict(item) for item in payload["failures"]),
        outcome=RunOutcome(payload["outcome"]),
        fatal_error=payload.get("fatal_error"),
    )


def _failure_from_dict(item: dict[str, Any]) -> KeyFailure:
    stage = str(item["stage"])
    if stage not in ("decode", "write"):
        raise ValueError(f"unknown failure stage '{stage}'")
    return KeyFailure(
        key=base64.b64decode(item["key_b64"], validate=True),
        stage="decode" if stage == "decode" else "write",
        kind=str(item["kind"]),
        reason=str(item["reason"]),
    )
