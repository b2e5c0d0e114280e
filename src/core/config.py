"""Runtime configuration model for etcd-dump.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os

from core.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_DECODE_TIMEOUT_S,
    DEFAULT_DECODE_URL,
    DEFAULT_ETCD_TIMEOUT_S,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PROGRESS_INTERVAL,
    DEFAULT_QUEUE_SIZE,
    SUPPORTED_LOG_LEVELS,
)
from core.errors import DumpConfigError


@dataclass(frozen=True)
class DumpConfig:
    """Validated runtime configuration.

    Attributes:
        decode_url: Base URL of the decode service.
        page_size: Default number of keys per etcd range request.
        concurrency: Default number of decode/write workers.
        queue_size: Capacity of the scan-to-worker queue.
        etcd_timeout_s: Per-request etcd timeout in seconds.
        decode_timeout_s: Per-request decode service timeout in seconds.
        max_attempts: Attempts per etcd page or decode request, retries included.
        progress_interval: Number of processed keys between progress events.
        log_level: Minimum structured log level.
    """

    decode_url: str
    page_size: int
    concurrency: int
    queue_size: int
    etcd_timeout_s: float
    decode_timeout_s: float
    max_attempts: int
    progress_interval: int
    log_level: str

    @classmethod
    def from_env(cls) -> "DumpConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            DumpConfigError: If environment values are invalid.
        """
        return cls(
            decode_url=os.getenv("ETCD_DUMP_DECODE_URL", DEFAULT_DECODE_URL).rstrip("/"),
            page_size=_read_positive_int("ETCD_DUMP_PAGE_SIZE", DEFAULT_PAGE_SIZE),
            concurrency=_read_positive_int("ETCD_DUMP_CONCURRENCY", DEFAULT_CONCURRENCY),
            queue_size=_read_positive_int("ETCD_DUMP_QUEUE_SIZE", DEFAULT_QUEUE_SIZE),
            etcd_timeout_s=_read_positive_float("ETCD_DUMP_ETCD_TIMEOUT_S", DEFAULT_ETCD_TIMEOUT_S),
            decode_timeout_s=_read_positive_float(
                "ETCD_DUMP_DECODE_TIMEOUT_S", DEFAULT_DECODE_TIMEOUT_S
            ),
            max_attempts=_read_positive_int("ETCD_DUMP_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
            progress_interval=_read_positive_int(
                "ETCD_DUMP_PROGRESS_INTERVAL", DEFAULT_PROGRESS_INTERVAL
            ),
            log_level=parse_log_level(os.getenv("ETCD_DUMP_LOG_LEVEL", DEFAULT_LOG_LEVEL)),
        )


def parse_log_level(raw_value: str) -> str:
    """Normalize and validate a log level name.

    Args:
        raw_value: Level name from environment or CLI.

    Returns:
        Lower-case supported level name.

    Raises:
        DumpConfigError: If the level is not supported.
    """
    level = raw_value.strip().lower()
    if level not in SUPPORTED_LOG_LEVELS:
        raise DumpConfigError(
            f"Invalid log level '{raw_value}': expected one of "
            f"{', '.join(SUPPORTED_LOG_LEVELS)}."
        )
    return level


def _read_positive_int(env_name: str, default_value: int) -> int:
    raw_value = os.getenv(env_name)
    if raw_value is None:
        return default_value
    try:
        value = int(raw_value)
    except ValueError as error:
        raise DumpConfigError(
            f"Invalid {env_name} value: expected integer, got '{raw_value}'. "
            f"Set {env_name} to a positive whole number."
        ) from error
    if value < 1:
        raise DumpConfigError(
            f"Invalid {env_name} value: expected a positive integer, got {value}."
        )
    return value


def _read_positive_float(env_name: str, default_value: float) -> float:
    raw_value = os.getenv(env_name)
    if raw_value is None:
        return default_value
    try:
        value = float(raw_value)
    except ValueError as error:
        raise DumpConfigError(
            f"Invalid {env_name} value: expected number of seconds, got '{raw_value}'."
        ) from error
    if value <= 0:
        raise DumpConfigError(f"Invalid {env_name} value: expected seconds > 0, got {value}.")
    return value
