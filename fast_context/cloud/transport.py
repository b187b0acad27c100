"""HTTP transport for unary and streaming Connect calls."""

from __future__ import annotations

import gzip
import logging
import threading
import time
import uuid
from typing import Callable, Dict, Optional, Union

import httpx

from fast_context.config import ClientSettings
from fast_context.errors import HttpError, TransportError
from fast_context.protocol.frames import encode_frame

logger = logging.getLogger(__name__)

USER_AGENT = "connect-go/1.18.1 (go1.25.5)"
UNARY_TIMEOUT_SECONDS = 30.0
STREAM_GRACE_SECONDS = 5.0
SENTRY_PUBLIC_KEY = "b813f73488da69eedec534dba1029111"


class TlsFallbackState:
    """Process-wide switch recording that certificate checks were turned off."""

    def __init__(self) -> None:
        self._applied = False
        self._lock = threading.Lock()

    @property
    def applied(self) -> bool:
        return self._applied

    def apply(self) -> bool:
        """Flip the switch. Returns True only for the call that flipped it."""
        with self._lock:
            if self._applied:
                return False
            self._applied = True
        logger.warning(
            "TLS certificate verification disabled after a connection failure; "
            "unset FC_INSECURE_TLS_FALLBACK to keep verification on."
        )
        return True


class Transport:
    """POST protobuf payloads to the remote service.

    ``http_transport`` and ``sleep`` exist so tests can run without a network
    and without waiting out backoff delays.
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        tls_state: Optional[TlsFallbackState] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.tls_state = tls_state or TlsFallbackState()
        self.http_transport = http_transport
        self.sleep = sleep

    def _post_once(self, url: str, content: bytes, headers: Dict[str, str], timeout: float) -> httpx.Response:
        with httpx.Client(
            verify=not self.tls_state.applied,
            transport=self.http_transport,
            timeout=timeout,
        ) as client:
            response = client.post(url, content=content, headers=headers)
            response.read()
            return response

    def _post(self, url: str, content: bytes, headers: Dict[str, str], timeout: float) -> httpx.Response:
        try:
            return self._post_once(url, content, headers, timeout)
        except httpx.TransportError as exc:
            if not (self.settings.insecure_tls_fallback and self.tls_state.apply()):
                raise TransportError(f"{type(exc).__name__}: {exc}") from exc
            logger.info("Retrying %s with certificate verification disabled", url)
        except httpx.RequestError as exc:
            # Undecodable bodies and similar failures after the connection succeeded.
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        try:
            return self._post_once(url, content, headers, timeout)
        except httpx.RequestError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc

    def unary(self, url: str, payload: bytes, compress: bool = True) -> bytes:
        """Single request/response call; no retries."""
        headers = {
            "Content-Type": "application/proto",
            "Connect-Protocol-Version": "1",
            "User-Agent": USER_AGENT,
            "Accept-Encoding": "gzip",
        }
        body = payload
        if compress:
            body = gzip.compress(payload)
            headers["Content-Encoding"] = "gzip"

        response = self._post(url, body, headers, UNARY_TIMEOUT_SECONDS)
        if not response.is_success:
            raise HttpError(response.status_code)
        return response.content

    def stream_headers(self, timeout_ms: int) -> Dict[str, str]:
        trace_id = uuid.uuid4().hex
        span_id = uuid.uuid4().hex[:16]
        return {
            "Content-Type": "application/connect+proto",
            "Connect-Protocol-Version": "1",
            "Connect-Accept-Encoding": "gzip",
            "Connect-Content-Encoding": "gzip",
            "Connect-Timeout-Ms": str(timeout_ms),
            "User-Agent": USER_AGENT,
            "Accept-Encoding": "identity",
            "Baggage": (
                f"sentry-release=language-server-windsurf@{self.settings.ls_version},"
                "sentry-environment=stable,sentry-sampled=false,"
                f"sentry-trace_id={trace_id},"
                f"sentry-public_key={SENTRY_PUBLIC_KEY}"
            ),
            "Sentry-Trace": f"{trace_id}-{span_id}-0",
        }

    def stream(self, url: str, payload: bytes, timeout_ms: int = 30_000, max_retries: Optional[int] = None) -> bytes:
        """Send one framed request and return the raw streamed body.

        5xx, 429 and network failures are retried with a linear backoff of one
        second per attempt; any other 4xx is raised immediately.
        """
        retries = self.settings.max_retries if max_retries is None else max(0, max_retries)
        body = encode_frame(payload)
        headers = self.stream_headers(timeout_ms)
        timeout = timeout_ms / 1000 + STREAM_GRACE_SECONDS

        attempt = 0
        while True:
            last_error: Union[HttpError, TransportError]
            try:
                response = self._post(url, body, headers, timeout)
            except TransportError as exc:
                last_error = exc
            else:
                if response.is_success:
                    return response.content
                error = HttpError(response.status_code)
                if not error.retryable:
                    raise error
                last_error = error

            logger.warning("Stream attempt %s/%s failed: %s", attempt + 1, retries + 1, last_error)
            if attempt >= retries:
                raise last_error
            attempt += 1
            self.sleep(1.0 * attempt)
