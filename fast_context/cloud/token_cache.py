"""Short-lived session token cache keyed by API key."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

REFRESH_MARGIN_SECONDS = 60
DEFAULT_LIFETIME_SECONDS = 3600


@dataclass(frozen=True)
class CachedToken:
    token: str
    expires_at: int


def jwt_expiry(token: str) -> Optional[int]:
    """Read the ``exp`` claim from a JWT without verifying it."""
    parts = token.split(".")
    if len(parts) < 2:
        return None
    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not isinstance(claims, dict):
        return None
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)) or exp <= 0:
        return None
    return int(exp)


class TokenCache:
    """Cache tokens until they are within a minute of expiring."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.clock = clock
        self._entries: Dict[str, CachedToken] = {}
        self._lock = threading.Lock()

    def peek(self, credential: str) -> Optional[CachedToken]:
        with self._lock:
            return self._entries.get(credential)

    def get_token(self, credential: str, fetch: Callable[[str], str]) -> str:
        now = int(self.clock())
        cached = self.peek(credential)
        if cached is not None and cached.expires_at > now + REFRESH_MARGIN_SECONDS:
            return cached.token

        token = fetch(credential)
        expires_at = jwt_expiry(token)
        if expires_at is None:
            logger.debug("Token carries no readable exp claim; assuming %ss lifetime", DEFAULT_LIFETIME_SECONDS)
            expires_at = now + DEFAULT_LIFETIME_SECONDS
        with self._lock:
            self._entries[credential] = CachedToken(token=token, expires_at=expires_at)
        return token

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
