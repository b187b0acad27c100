"""Configuration loading: YAML file, environment overrides, clamped limits."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".fast-context" / "config.yaml"
DEFAULT_LOG_FILE = Path.home() / ".fast-context" / "fast-context.log"

# name -> (default, minimum, maximum)
SEARCH_LIMITS: Dict[str, Tuple[int, int, int]] = {
    "max_turns": (3, 1, 5),
    "max_commands": (8, 1, 20),
    "max_results": (10, 1, 30),
    "tree_depth": (3, 1, 6),
    "timeout_ms": (30_000, 1_000, 300_000),
    "result_max_lines": (50, 1, 500),
    "line_max_chars": (250, 20, 10_000),
}

SEARCH_ENV_MAP: Dict[str, str] = {
    "max_turns": "FC_MAX_TURNS",
    "max_commands": "FC_MAX_COMMANDS",
    "max_results": "FC_MAX_RESULTS",
    "tree_depth": "FC_TREE_DEPTH",
    "timeout_ms": "FC_TIMEOUT_MS",
    "result_max_lines": "FC_RESULT_MAX_LINES",
    "line_max_chars": "FC_LINE_MAX_CHARS",
}

CLIENT_ENV_MAP: Dict[str, str] = {
    "model": "WS_MODEL",
    "app_version": "WS_APP_VER",
    "ls_version": "WS_LS_VER",
    "insecure_tls_fallback": "FC_INSECURE_TLS_FALLBACK",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def clamp_int(value: object, default: int, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    """Parse an int leniently and clamp it; unparseable values yield ``default``."""
    if isinstance(value, bool):
        return default
    try:
        parsed = int(str(value).strip()) if not isinstance(value, int) else value
    except (TypeError, ValueError):
        return default
    if minimum is not None:
        parsed = max(minimum, parsed)
    if maximum is not None:
        parsed = min(maximum, parsed)
    return parsed


def parse_bool(value: object, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return default


def _clamp_search_value(name: str, value: object) -> int:
    default, minimum, maximum = SEARCH_LIMITS[name]
    return clamp_int(value, default, minimum, maximum)


@dataclass(frozen=True)
class SearchSettings:
    """Per-search limits sent to the model and applied locally."""

    max_turns: int = SEARCH_LIMITS["max_turns"][0]
    max_commands: int = SEARCH_LIMITS["max_commands"][0]
    max_results: int = SEARCH_LIMITS["max_results"][0]
    tree_depth: int = SEARCH_LIMITS["tree_depth"][0]
    timeout_ms: int = SEARCH_LIMITS["timeout_ms"][0]
    result_max_lines: int = SEARCH_LIMITS["result_max_lines"][0]
    line_max_chars: int = SEARCH_LIMITS["line_max_chars"][0]

    def with_overrides(self, **overrides: object) -> "SearchSettings":
        """Return a copy with clamped overrides; ``None`` values are ignored."""
        updates: Dict[str, int] = {}
        for name, value in overrides.items():
            if name not in SEARCH_LIMITS:
                raise TypeError(f"unknown search setting: {name}")
            if value is None:
                continue
            updates[name] = _clamp_search_value(name, value)
        return replace(self, **updates)

    def as_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ClientSettings:
    """Identity and transport options for the remote service."""

    model: str = "MODEL_SWE_1_6_FAST"
    app_name: str = "windsurf"
    app_version: str = "1.48.2"
    ls_version: str = "1.9544.35"
    locale: str = "zh-cn"
    max_retries: int = 2
    insecure_tls_fallback: bool = False


@dataclass(frozen=True)
class LoggingSettings:
    log_level: str = "INFO"
    log_file: Path = DEFAULT_LOG_FILE
    debug_mode: bool = False


@dataclass
class Config:
    """Application configuration.

    Values come from the YAML file first (``FC_CONFIG`` or
    ``~/.fast-context/config.yaml``), then environment variables override them.
    Integer limits are always clamped to their accepted ranges.
    """

    search: SearchSettings = field(default_factory=SearchSettings)
    client: ClientSettings = field(default_factory=ClientSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    api_key: Optional[str] = None
    config_path: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> "Config":
        env = os.environ if env is None else env
        if config_path is None:
            env_path = env.get("FC_CONFIG", "").strip()
            config_path = Path(env_path).expanduser() if env_path else DEFAULT_CONFIG_PATH
        raw = _read_yaml(config_path)

        search_values: Dict[str, object] = {name: raw.get(name) for name in SEARCH_LIMITS}
        for name, env_name in SEARCH_ENV_MAP.items():
            if env.get(env_name, "").strip():
                search_values[name] = env[env_name]
        search = SearchSettings().with_overrides(**search_values)

        client_values: Dict[str, Any] = {}
        for name in ("model", "app_name", "app_version", "ls_version", "locale"):
            value = raw.get(name)
            if isinstance(value, str) and value.strip():
                client_values[name] = value.strip()
        client_values["max_retries"] = clamp_int(raw.get("max_retries"), 2, 0, 5)
        client_values["insecure_tls_fallback"] = parse_bool(raw.get("insecure_tls_fallback"), False)
        for name, env_name in CLIENT_ENV_MAP.items():
            env_value = env.get(env_name, "").strip()
            if not env_value:
                continue
            if name == "insecure_tls_fallback":
                client_values[name] = parse_bool(env_value, False)
            else:
                client_values[name] = env_value
        client = ClientSettings(**client_values)

        log_level = str(env.get("FC_LOG_LEVEL") or raw.get("log_level") or "INFO").upper()
        log_file = Path(str(raw.get("log_file") or DEFAULT_LOG_FILE)).expanduser()
        debug_mode = parse_bool(env.get("FC_DEBUG", raw.get("debug_mode")), False)
        logging_settings = LoggingSettings(log_level=log_level, log_file=log_file, debug_mode=debug_mode)

        api_key = env.get("WINDSURF_API_KEY", "").strip() or None
        return cls(
            search=search,
            client=client,
            logging=logging_settings,
            api_key=api_key,
            config_path=config_path,
        )


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)
        return {}
    if not isinstance(payload, dict):
        logger.warning("Ignoring config file %s: top level must be a mapping", path)
        return {}
    return payload
