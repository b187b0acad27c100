"""Sandboxed local commands the model may run against the project."""

from fast_context.tools.errors import SandboxViolation, ToolError, ValidationError
from fast_context.tools.executor import ToolExecutor
from fast_context.tools.fs_ops import VIRTUAL_ROOT
from fast_context.tools.truncation import TRUNCATION_MARKER, TruncationPolicy

__all__ = [
    "SandboxViolation",
    "ToolError",
    "ToolExecutor",
    "TRUNCATION_MARKER",
    "TruncationPolicy",
    "ValidationError",
    "VIRTUAL_ROOT",
]
