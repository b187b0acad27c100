"""fast-context package entrypoint and lightweight public API."""

from __future__ import annotations

import importlib
from typing import Any

__version__ = "0.4.0"
__license__ = "MIT"

_LAZY_EXPORTS = {
    "Config": ("fast_context.config", "Config"),
    "SearchOrchestrator": ("fast_context.tooling.orchestrator", "SearchOrchestrator"),
    "SearchResult": ("fast_context.tooling.types", "SearchResult"),
    "ToolExecutor": ("fast_context.tools.executor", "ToolExecutor"),
    "search": ("fast_context.tooling.orchestrator", "search"),
    "search_with_content": ("fast_context.tooling.orchestrator", "search_with_content"),
}


def __getattr__(name: str) -> Any:
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = _LAZY_EXPORTS[name]
    module = importlib.import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


__all__ = [
    "__version__",
    "__license__",
    "Config",
    "SearchOrchestrator",
    "SearchResult",
    "ToolExecutor",
    "search",
    "search_with_content",
]
