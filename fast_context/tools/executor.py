"""Sandboxed execution of model-issued restricted_exec commands."""

from __future__ import annotations

import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from fast_context.tools.commands import (
    COMMAND_TYPES,
    GlobCommand,
    LsCommand,
    ReadfileCommand,
    RgCommand,
    TreeCommand,
)
from fast_context.tools.errors import ToolError
from fast_context.tools.fs_ops import VIRTUAL_ROOT, ProjectFS
from fast_context.tools.search import RepoSearch
from fast_context.tools.truncation import TruncationPolicy

logger = logging.getLogger(__name__)

NO_MATCHES = "(no matches)"
GLOB_LIMIT = 100

_DIGITS_RE = re.compile(r"(\d+)")


def command_sort_key(key: str) -> List[Any]:
    """Natural ordering so command2 sorts before command10."""
    return [int(part) if part.isdigit() else part for part in _DIGITS_RE.split(key)]


class ToolExecutor:
    """Execute rg/readfile/tree/ls/glob against one project root.

    Every method returns a string; failures are rendered as ``Error: ...``
    instead of raised. Output mentioning the real root is rewritten to
    ``/codebase`` and then truncated with the executor's policy.
    """

    def __init__(
        self,
        root: Path,
        policy: Optional[TruncationPolicy] = None,
        max_commands: int = 8,
        rg_binary: Optional[str] = None,
    ) -> None:
        self.fs = ProjectFS(root)
        self.policy = policy or TruncationPolicy()
        self.max_commands = max(1, int(max_commands))
        self.searcher = RepoSearch(self.fs, rg_binary=rg_binary)
        self._rg_patterns: List[str] = []
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self.fs.root

    @property
    def rg_patterns(self) -> List[str]:
        """Every rg pattern requested so far, in request order."""
        with self._lock:
            return list(self._rg_patterns)

    def _record_pattern(self, pattern: str) -> None:
        with self._lock:
            self._rg_patterns.append(pattern)

    def _finish(self, text: str) -> str:
        return self.policy.apply(self.fs.remap(text))

    def rg(
        self,
        pattern: str,
        path: str = VIRTUAL_ROOT,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        record_pattern: bool = True,
    ) -> str:
        if record_pattern:
            self._record_pattern(pattern)
        try:
            target = self.fs.resolve_path(path)
        except ToolError as exc:
            return f"Error: {exc}"
        if not target.exists():
            return f"Error: path does not exist: {path}"

        try:
            output = self.searcher.search(pattern, target, include=include, exclude=exclude)
        except ToolError as exc:
            return self._finish(f"Error: {exc}")
        if not output.strip():
            return NO_MATCHES
        return self._finish(output.rstrip("\n"))

    def readfile(self, file: str, start_line: Optional[int] = None, end_line: Optional[int] = None) -> str:
        try:
            return self._finish(self.fs.read_lines(file, start_line or None, end_line or None))
        except ToolError as exc:
            return f"Error: {exc}"
        except OSError as exc:
            return f"Error: {exc.strerror or exc}"

    def tree(self, path: str = VIRTUAL_ROOT, levels: Optional[int] = None) -> str:
        try:
            target = self.fs.resolve_path(path)
            lines = list(self.fs.iter_tree(target, self.fs.to_virtual(target), max_depth=levels or None))
        except ToolError as exc:
            return f"Error: {exc}"
        return self._finish("\n".join(lines))

    def ls(self, path: str = VIRTUAL_ROOT, long_format: bool = False, all_files: bool = False) -> str:
        try:
            listing = self.fs.list_dir(path, long_format=long_format, all_files=all_files)
        except ToolError as exc:
            return f"Error: {exc}"
        except OSError as exc:
            return f"Error: {exc.strerror or exc}"
        return self._finish(listing)

    def glob(self, pattern: str, path: str = VIRTUAL_ROOT, type_filter: str = "all") -> str:
        try:
            matches = self.fs.glob(pattern, path, type_filter=type_filter, limit=GLOB_LIMIT)
        except ToolError as exc:
            return f"Error: {exc}"
        if not matches:
            return NO_MATCHES
        return self._finish("\n".join(matches))

    def execute_command(self, command: Any, record_pattern: bool = True) -> str:
        """Validate one command dict and run it. Never raises."""
        if not isinstance(command, Mapping):
            return "Error: command must be an object"
        command_type = str(command.get("type") or "")
        model = COMMAND_TYPES.get(command_type)
        if model is None:
            return f"Error: unknown command type '{command_type}'"

        try:
            parsed = model.model_validate(dict(command))
        except PydanticValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or command_type}: {err['msg']}" for err in exc.errors()
            )
            return f"Error: invalid arguments for {command_type}: {problems}"

        try:
            return self._dispatch(parsed, record_pattern)
        except Exception as exc:
            logger.exception("Command %s failed", command_type)
            return f"Error: {exc}"

    def _dispatch(self, parsed: Any, record_pattern: bool) -> str:
        if isinstance(parsed, RgCommand):
            return self.rg(parsed.pattern, parsed.path, parsed.include, parsed.exclude, record_pattern=record_pattern)
        if isinstance(parsed, ReadfileCommand):
            return self.readfile(parsed.file, parsed.start_line, parsed.end_line)
        if isinstance(parsed, TreeCommand):
            return self.tree(parsed.path, parsed.levels)
        if isinstance(parsed, LsCommand):
            return self.ls(parsed.path, parsed.long_format, parsed.all)
        if isinstance(parsed, GlobCommand):
            return self.glob(parsed.pattern, parsed.path, parsed.type_filter)
        raise ToolError(f"no handler for {type(parsed).__name__}")

    def execute_batch(self, arguments: Mapping[str, Any]) -> str:
        """Run every ``commandN`` entry and join results in key order.

        At most ``max_commands`` entries run at once.
        """
        keys = sorted(
            (key for key, value in arguments.items() if key.startswith("command") and isinstance(value, Mapping)),
            key=command_sort_key,
        )
        if not keys:
            return ""

        # Patterns are logged in key order, not completion order.
        for key in keys:
            command = arguments[key]
            pattern = command.get("pattern")
            if command.get("type") == "rg" and isinstance(pattern, str) and pattern:
                self._record_pattern(pattern)

        with ThreadPoolExecutor(max_workers=min(len(keys), self.max_commands), thread_name_prefix="fc-cmd") as pool:
            futures = [pool.submit(self.execute_command, arguments[key], False) for key in keys]
            outputs = [future.result() for future in futures]

        logger.debug("Executed %d commands: %s", len(keys), ", ".join(keys))
        return "".join(f"<{key}_result>\n{output}\n</{key}_result>" for key, output in zip(keys, outputs))
