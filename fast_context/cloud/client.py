"""Remote calls: token issuance, rate-limit probe, model stream."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional

from fast_context.cloud import requests as request_builder
from fast_context.cloud.token_cache import TokenCache
from fast_context.cloud.transport import TlsFallbackState, Transport
from fast_context.config import ClientSettings
from fast_context.errors import AuthError, HttpError, ProtocolDecodeError, RateLimited, TransportError
from fast_context.protocol.response import DecodedResponse, decode_response
from fast_context.protocol.strings import find_prefixed
from fast_context.tooling.types import Message

logger = logging.getLogger(__name__)

SERVICE_HOST = "https://server.self-serve.windsurf.com"
API_BASE = f"{SERVICE_HOST}/exa.api_server_pb.ApiServerService"
AUTH_BASE = f"{SERVICE_HOST}/exa.auth_pb.AuthService"

JWT_URL = f"{AUTH_BASE}/GetUserJwt"
RATE_LIMIT_URL = f"{API_BASE}/CheckUserMessageRateLimit"
STREAM_URL = f"{API_BASE}/GetDevstralStream"


@dataclass
class ProcessState:
    """State shared by every search in the process."""

    token_cache: TokenCache = field(default_factory=TokenCache)
    tls: TlsFallbackState = field(default_factory=TlsFallbackState)


_process_state: Optional[ProcessState] = None
_process_state_lock = threading.Lock()


def get_process_state() -> ProcessState:
    global _process_state
    with _process_state_lock:
        if _process_state is None:
            _process_state = ProcessState()
        return _process_state


class SearchServiceClient:
    """Typed wrapper over the three remote methods a search needs."""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        transport: Optional[Transport] = None,
        state: Optional[ProcessState] = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.state = state or get_process_state()
        self.transport = transport or Transport(self.settings, tls_state=self.state.tls)

    def fetch_jwt(self, api_key: str) -> str:
        payload = request_builder.build_jwt_request(self.settings, api_key)
        body = self.transport.unary(JWT_URL, payload, compress=False)
        token = find_prefixed(body, "eyJ", contains=".")
        if token is None:
            raise AuthError("Failed to extract JWT from GetUserJwt response")
        return token

    def get_jwt(self, api_key: str) -> str:
        """Cached token for ``api_key``, refreshed shortly before expiry."""
        return self.state.token_cache.get_token(api_key, self.fetch_jwt)

    def check_rate_limit(self, api_key: str, jwt: str) -> None:
        """Raise ``RateLimited`` when the service answers 429; any other failure allows the search."""
        payload = request_builder.build_rate_limit_request(self.settings, api_key, jwt)
        try:
            self.transport.unary(RATE_LIMIT_URL, payload, compress=True)
        except HttpError as exc:
            if exc.status == 429:
                raise RateLimited("Rate limited, please try again later") from exc
            logger.info("Rate-limit probe failed with HTTP %s; continuing", exc.status)
        except TransportError as exc:
            logger.info("Rate-limit probe failed: %s; continuing", exc)

    def stream_chat(
        self,
        api_key: str,
        jwt: str,
        messages: Iterable[Message],
        tool_definitions: str,
        timeout_ms: int = 30_000,
    ) -> DecodedResponse:
        payload = request_builder.build_chat_request(self.settings, api_key, jwt, messages, tool_definitions)
        body = self.transport.stream(STREAM_URL, payload, timeout_ms=timeout_ms)
        response = decode_response(body)
        if response.tool_call is None and not response.text.strip():
            raise ProtocolDecodeError(f"no tool call or text in {len(body)}-byte response")
        return response
