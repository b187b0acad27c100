"""Shared logging configuration helpers."""

from __future__ import annotations

import logging
import sys
from logging import Handler
from pathlib import Path

from fast_context.config import Config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(config: Config) -> None:
    """Configure application logging outputs from config."""
    log_level_name = str(config.logging.log_level or "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)

    handlers: list[Handler] = []
    log_file = Path(config.logging.log_file).expanduser()
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler: Handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as exc:
        print(f"fast-context: cannot open log file {log_file}: {exc}", file=sys.stderr)
    else:
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    if config.logging.debug_mode or not handlers:
        stderr_handler: Handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(log_level)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(stderr_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)
    logging.getLogger(__name__).info("Logging initialized level=%s file=%s", log_level_name, log_file)
