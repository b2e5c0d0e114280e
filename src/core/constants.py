"""Core constants used across etcd-dump modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

KEY_DELIMITER = b"/"
KEYSPACE_START = b"\x00"
KEYSPACE_END = b"\x00"
NEXT_KEY_SUFFIX = b"\x00"
CONTENT_FILE_SUFFIX = ".yaml"
EMPTY_SEGMENT_PLACEHOLDER = "%empty"
UNROOTED_KEY_COMPONENT = "%unrooted"
TEMP_FILE_PREFIX = ".etcd-dump-"
TEMP_FILE_SUFFIX = ".tmp"
DEFAULT_ETCD_PORT = 2379
DEFAULT_DECODE_URL = "http://127.0.0.1:8080"
DECODE_ENDPOINT_PATH = "/decode"
DEFAULT_PAGE_SIZE = 1000
DEFAULT_CONCURRENCY = 16
DEFAULT_QUEUE_SIZE = 256
DEFAULT_ETCD_TIMEOUT_S = 30.0
DEFAULT_DECODE_TIMEOUT_S = 30.0
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_INITIAL_RETRY_DELAY_S = 0.2
DEFAULT_MAX_RETRY_DELAY_S = 5.0
DEFAULT_PROGRESS_INTERVAL = 1000
DEFAULT_LOG_LEVEL = "info"
SUPPORTED_LOG_LEVELS = ("debug", "info", "warning", "error")
DEFAULT_DECODE_SERVER_STARTUP_TIMEOUT_S = 30.0
DECODE_SERVER_POLL_INTERVAL_S = 0.1
UNREACHABLE_STATUS_CODES = frozenset({502, 503, 504})
SUMMARY_FORMAT_VERSION = 1
EXIT_CODE_COMPLETE = 0
EXIT_CODE_FAILED = 1
EXIT_CODE_COMPLETED_WITH_FAILURES = 3
EXIT_CODE_CANCELLED = 130
