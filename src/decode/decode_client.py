"""HTTP client for the external decode service.

This module builds decode requests, parses responses and classifies
failures. Only connection-level failures are retried; a value the
service refuses to decode is recorded once and never retried.
"""

from __future__ import annotations

import threading
from typing import Any

import httpx
import yaml

from core.constants import DECODE_ENDPOINT_PATH, UNREACHABLE_STATUS_CODES
from core.errors import DecodeRejected, MalformedResponse, ServiceUnreachable
from core.logging_config import get_logger
from core.retry import RetryPolicy, call_with_retry
from core.types import DecodedDocument, DecodeFailure, DecodeFailureKind, DecodeResult
from snapshot.key_path import display_key

_LOGGER = get_logger(__name__)
_MAX_REASON_LENGTH = 500


class DecodeClient:
    """Synchronous decode-service client, safe to share across worker threads.

    When ``stop_event`` is set, backoff waits end early and no further
    attempts start; the last failure is reported for the key.
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float,
        retry_policy: RetryPolicy,
        http_client: httpx.Client | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._retry_policy = retry_policy
        self._stop_event = stop_event
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(base_url=base_url, timeout=timeout_s)

    def __enter__(self) -> "DecodeClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client when this instance created it."""
        if self._owns_client:
            self._http.close()

    def decode(self, key: bytes, value: bytes) -> DecodeResult:
        """Decode one raw etcd value.

        Args:
            key: Raw etcd key, sent for context.
            value: Raw stored value.

        Returns:
            The decoded document, or a failure marker for this key.
        """
        rendered_key = display_key(key)
        try:
            content = call_with_retry(
                lambda: self._request(rendered_key, value),
                lambda error: isinstance(error, ServiceUnreachable),
                self._retry_policy,
                stop_event=self._stop_event,
                on_retry=lambda attempt, error, delay: _LOGGER.warning(
                    "decode_retry",
                    key=rendered_key,
                    attempt=attempt,
                    delay_s=round(delay, 3),
                    error=str(error),
                ),
            )
        except ServiceUnreachable as error:
            _LOGGER.error("decode_service_unreachable", key=rendered_key, error=str(error))
            return DecodeFailure(
                key=key,
                kind=DecodeFailureKind.SERVICE_UNREACHABLE,
                reason=(
                    f"decode service unreachable after {self._retry_policy.max_attempts} "
                    f"attempts: {error}"
                ),
            )
        except MalformedResponse as error:
            _LOGGER.error("decode_response_malformed", key=rendered_key, error=str(error))
            return DecodeFailure(
                key=key, kind=DecodeFailureKind.MALFORMED_RESPONSE, reason=str(error)
            )
        except DecodeRejected as error:
            _LOGGER.warning("decode_rejected", key=rendered_key, error=str(error))
            return DecodeFailure(key=key, kind=DecodeFailureKind.DECODE_REJECTED, reason=str(error))
        return DecodedDocument(key=key, content=content)

    def _request(self, rendered_key: str, value: bytes) -> str:
        try:
            response = self._http.post(
                DECODE_ENDPOINT_PATH,
                params={"key": rendered_key},
                content=value,
                headers={"Content-Type": "application/octet-stream"},
            )
        except httpx.TransportError as error:
            raise ServiceUnreachable(f"{type(error).__name__}: {error}") from error
        except httpx.DecodingError as error:
            raise MalformedResponse(
                f"decode service returned an undecodable body: {error}"
            ) from error
        except httpx.HTTPError as error:
            raise DecodeRejected(f"{type(error).__name__}: {error}") from error
        if response.status_code in UNREACHABLE_STATUS_CODES:
            raise ServiceUnreachable(f"HTTP {response.status_code}")
        if not response.is_success:
            raise DecodeRejected(
                f"HTTP {response.status_code}: {_truncate(response.text.strip())}"
            )
        return _parse_document(response.content)


def _parse_document(body: bytes) -> str:
    """Validate a success body and return it as text.

    Raises:
        MalformedResponse: If the body is empty, not UTF-8, or not YAML/JSON.
    """
    if not body.strip():
        raise MalformedResponse("decode service returned an empty body")
    try:
        content = body.decode("utf-8")
    except UnicodeDecodeError as error:
        raise MalformedResponse(f"decode service returned non UTF-8 body: {error}") from error
    try:
        document: Any = yaml.safe_load(content)
    except yaml.YAMLError as error:
        raise MalformedResponse(
            f"decode service returned an unparsable document: {_truncate(str(error))}"
        ) from error
    if not isinstance(document, (dict, list)):
        raise MalformedResponse(
            f"decode service returned a {type(document).__name__} instead of a document"
        )
    return content


def _truncate(text: str) -> str:
    if len(text) <= _MAX_REASON_LENGTH:
        return text
    return text[:_MAX_REASON_LENGTH] + "..."
