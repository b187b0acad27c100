"""API key resolution: explicit value, environment, keychain, local discovery."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from fast_context.errors import AuthError

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "fast-context"
KEYRING_KEY_NAME = "windsurf_api_key"
ENV_API_KEY = "WINDSURF_API_KEY"
API_KEY_PREFIX = "sk-"

MISSING_KEY_MESSAGE = (
    "Windsurf API Key not found. Set WINDSURF_API_KEY env var or ensure Windsurf is logged in. "
    "Run `fast-context extract-key` to see extraction methods."
)

Discovery = Callable[[], Dict[str, Any]]


def unavailable_discovery() -> Dict[str, Any]:
    """Discovery stand-in used when no local extraction routine is wired in."""
    return {
        "error": "Local credential discovery is not configured",
        "hint": f"Set {ENV_API_KEY} or save a key with `fast-context set-key`.",
    }


def mask_api_key(key: str) -> str:
    if len(key) <= 16:
        return f"{key[:4]}...{key[-4:]}"
    return f"{key[:12]}...{key[-8:]}"


class CredentialStore:
    """Resolve the API key from the first source that has one."""

    def __init__(
        self,
        service_name: str = KEYRING_SERVICE,
        env: Optional[Mapping[str, str]] = None,
        discovery: Optional[Discovery] = None,
    ) -> None:
        self.service_name = service_name
        self.env = os.environ if env is None else env
        self.discovery = discovery or unavailable_discovery

    def get_env_api_key(self) -> Optional[str]:
        value = self.env.get(ENV_API_KEY, "").strip()
        return value or None

    def get_keychain_api_key(self) -> Optional[str]:
        try:
            value = keyring.get_password(self.service_name, KEYRING_KEY_NAME)
        except KeyringError as exc:
            logger.debug("Failed to read keychain credential: %s", exc)
            return None
        if value is None:
            return None
        value = value.strip()
        return value or None

    def discover(self) -> Dict[str, Any]:
        """Run the discovery routine; its failures come back as ``error`` entries."""
        try:
            result = self.discovery()
        except Exception as exc:
            logger.warning("Credential discovery failed: %s", exc)
            return {"error": f"credential discovery failed: {exc}"}
        return dict(result or {})

    def get_discovered_api_key(self) -> Optional[str]:
        key = self.discover().get("api_key")
        if isinstance(key, str) and key.startswith(API_KEY_PREFIX):
            return key
        return None

    def get_api_key_with_source(self, explicit: Optional[str] = None) -> Tuple[Optional[str], Optional[str]]:
        if explicit and explicit.strip():
            return explicit.strip(), "explicit"

        env_value = self.get_env_api_key()
        if env_value:
            return env_value, "env"

        keychain_value = self.get_keychain_api_key()
        if keychain_value:
            return keychain_value, "keychain"

        discovered = self.get_discovered_api_key()
        if discovered:
            return discovered, "discovery"

        return None, None

    def require_api_key(self, explicit: Optional[str] = None) -> str:
        key, source = self.get_api_key_with_source(explicit)
        if not key:
            raise AuthError(MISSING_KEY_MESSAGE)
        logger.info("Using API key from %s", source)
        return key

    def save_api_key(self, api_key: str) -> Tuple[bool, str]:
        value = api_key.strip()
        if not value:
            return False, "API key cannot be empty."
        if not value.startswith(API_KEY_PREFIX):
            return False, f"API key must start with '{API_KEY_PREFIX}'."
        try:
            keyring.set_password(self.service_name, KEYRING_KEY_NAME, value)
        except KeyringError as exc:
            return False, f"Failed to save key: {exc}"
        return True, "API key saved to keychain."

    def delete_api_key(self) -> Tuple[bool, str]:
        try:
            keyring.delete_password(self.service_name, KEYRING_KEY_NAME)
        except PasswordDeleteError:
            return False, "No saved key found in keychain."
        except KeyringError as exc:
            return False, f"Failed to delete key: {exc}"
        return True, "Saved key removed from keychain."
