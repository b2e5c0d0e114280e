"""Child-process management for a locally launched decode service.

The decode service may be started by etcd-dump itself. The process is
considered ready once its base URL answers any HTTP request.
"""

from __future__ import annotations

import shlex
import subprocess
import time
from typing import Sequence

import httpx

from core.constants import (
    DECODE_SERVER_POLL_INTERVAL_S,
    DEFAULT_DECODE_SERVER_STARTUP_TIMEOUT_S,
)
from core.errors import DecodeServiceError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)
_TERMINATE_TIMEOUT_S = 5.0


class DecodeServerProcess:
    """Context manager running the decode service for the duration of a dump."""

    def __init__(
        self,
        command: str | Sequence[str],
        base_url: str,
        startup_timeout_s: float = DEFAULT_DECODE_SERVER_STARTUP_TIMEOUT_S,
    ) -> None:
        self._argv = shlex.split(command) if isinstance(command, str) else list(command)
        if not self._argv:
            raise DecodeServiceError("Decode server command is empty.")
        self._base_url = base_url
        self._startup_timeout_s = startup_timeout_s
        self._process: subprocess.Popen[bytes] | None = None

    def __enter__(self) -> "DecodeServerProcess":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def start(self) -> None:
        """Launch the process and wait until it answers HTTP requests.

        Raises:
            DecodeServiceError: If the process cannot start or never becomes ready.
        """
        try:
            self._process = subprocess.Popen(self._argv, stdin=subprocess.DEVNULL)
        except OSError as error:
            raise DecodeServiceError(
                f"Failed to launch decode server '{shlex.join(self._argv)}': {error}."
            ) from error
        _LOGGER.info("decode_server_started", pid=self._process.pid, argv=self._argv)
        try:
            self._wait_until_ready()
        except DecodeServiceError:
            self.stop()
            raise

    def stop(self) -> None:
        """Terminate the process if it is still running."""
        process = self._process
        if process is None:
            return
        self._process = None
        if process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=_TERMINATE_TIMEOUT_S)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        _LOGGER.info("decode_server_stopped", pid=process.pid)

    def _wait_until_ready(self) -> None:
        assert self._process is not None
        deadline = time.monotonic() + self._startup_timeout_s
        poll_timeout_s = DECODE_SERVER_POLL_INTERVAL_S * 10
        with httpx.Client(base_url=self._base_url, timeout=poll_timeout_s) as client:
            while True:
                return_code = self._process.poll()
                if return_code is not None:
                    raise DecodeServiceError(
                        f"Decode server exited with code {return_code} before becoming ready. "
                        "Check the --decode-server-command value."
                    )
                try:
                    client.get("/")
                except httpx.TransportError:
                    pass
                else:
                    _LOGGER.info("decode_server_ready", base_url=self._base_url)
                    return
                if time.monotonic() >= deadline:
                    raise DecodeServiceError(
                        f"Decode server did not answer at {self._base_url} within "
                        f"{self._startup_timeout_s}s."
                    )
                time.sleep(DECODE_SERVER_POLL_INTERVAL_S)
