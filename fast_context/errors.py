"""Error taxonomy for remote search calls."""

from __future__ import annotations

from typing import Optional


class FastContextError(Exception):
    """Base error for fast-context failures."""


class AuthError(FastContextError):
    """Raised when no usable credential or token can be obtained."""


class RateLimited(FastContextError):
    """Raised when the remote service reports the caller is rate limited."""


class HttpError(FastContextError):
    """Non-2xx response from the remote service."""

    def __init__(self, status: int, message: Optional[str] = None) -> None:
        super().__init__(message or f"HTTP {status}")
        self.status = status

    @property
    def retryable(self) -> bool:
        """5xx and 429 are retried; every other 4xx is terminal."""
        return self.status == 429 or self.status >= 500


class TransportError(FastContextError):
    """Network-level failure with no HTTP status (DNS, TLS, timeout)."""


class ProtocolDecodeError(FastContextError):
    """Response bytes held neither a tool call nor recognizable text."""
