"""Filesystem operations scoped to a project root behind the /codebase prefix."""

from __future__ import annotations

import os
import re
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from fast_context.tools.errors import SandboxViolation, ToolError, ValidationError

VIRTUAL_ROOT = "/codebase"

TREE_BRANCH = "├── "
TREE_LAST = "└── "
TREE_PIPE = "│   "
TREE_SPACE = "    "


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> "re.Pattern[str]":
    """Translate a glob into a regex where ``/`` is significant.

    ``*`` and ``?`` stay within one path segment, ``**`` spans segments (a
    following ``/`` is optional) and ``[...]`` classes pass through.
    """
    out = ["^"]
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if i + 1 < n and pattern[i + 1] == "*":
                i += 2
                if i < n and pattern[i] == "/":
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end
        else:
            out.append(re.escape(c))
        i += 1
    out.append("$")
    try:
        return re.compile("".join(out))
    except re.error:
        return re.compile(re.escape(pattern) + "$")


def glob_match(text: str, pattern: str) -> bool:
    return compile_glob(pattern.replace("\\", "/")).match(text) is not None


def matches_any_glob(rel_path: str, name: str, patterns: Sequence[str]) -> bool:
    """ripgrep-style glob test against a path relative to the search root."""
    for raw in patterns:
        pattern = raw.replace("\\", "/")
        if pattern.endswith("/**"):
            dir_pattern = pattern[: -len("/**")]
            if dir_pattern.startswith("**/"):
                dir_pattern = dir_pattern[len("**/") :]
            parents = rel_path.split("/")[:-1]
            if any(glob_match(part, dir_pattern) for part in parents):
                return True
            continue
        if pattern.startswith("**/") and glob_match(name, pattern[len("**/") :]):
            return True
        if glob_match(rel_path, pattern) or ("/" not in pattern and glob_match(name, pattern)):
            return True
    return False


class ProjectFS:
    """Filesystem helper constrained to a single project root."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser().resolve()

    def resolve_path(self, path: str) -> Path:
        """Map a virtual or relative path to a real path inside the root."""
        if not path or not isinstance(path, str):
            raise ValidationError("path must be a non-empty string")
        if "\x00" in path:
            raise ValidationError("path contains null byte")
        raw = path.strip()
        if raw == VIRTUAL_ROOT or raw.startswith(VIRTUAL_ROOT + "/"):
            rel = raw[len(VIRTUAL_ROOT) :].lstrip("/")
        elif raw.startswith(("/", "~")):
            raise SandboxViolation(f"path must be under {VIRTUAL_ROOT}: {path}")
        else:
            rel = raw
        resolved = (self.root / rel).resolve()
        if not resolved.is_relative_to(self.root):
            raise SandboxViolation(f"path escapes project root: {path}")
        return resolved

    def remap(self, text: str) -> str:
        """Rewrite every mention of the real root to the virtual prefix."""
        return text.replace(str(self.root), VIRTUAL_ROOT)

    def to_virtual(self, path: Path) -> str:
        rel = path.relative_to(self.root).as_posix()
        return VIRTUAL_ROOT if rel == "." else f"{VIRTUAL_ROOT}/{rel}"

    def read_lines(self, path: str, start_line: Optional[int] = None, end_line: Optional[int] = None) -> str:
        target = self.resolve_path(path)
        if not target.is_file():
            raise ToolError(f"file not found: {path}")
        content = target.read_text(encoding="utf-8", errors="replace")
        lines = content.split("\n")
        start = max(0, (start_line or 1) - 1)
        end = end_line or len(lines)
        selected = lines[start:end]
        return "\n".join(f"{start + idx + 1}:{line}" for idx, line in enumerate(selected))

    def list_dir(self, path: str, long_format: bool = False, all_files: bool = False) -> str:
        target = self.resolve_path(path)
        if not target.exists():
            raise ToolError(f"dir not found: {path}")
        if not target.is_dir():
            raise ToolError(f"not a directory: {path}")

        entries = sorted(os.listdir(target))
        if not all_files:
            entries = [name for name in entries if not name.startswith(".")]
        if not long_format:
            return "\n".join(entries)

        lines = [f"total {len(entries)}"]
        for name in entries:
            lines.append(self._long_entry(target / name, name))
        return "\n".join(lines)

    def _long_entry(self, path: Path, name: str) -> str:
        try:
            st = path.stat()
        except OSError:
            return f"?---------  ? ?     ?        ? ? ?     ? {name}"
        kind = "d" if path.is_dir() else "-"
        mtime = datetime.fromtimestamp(st.st_mtime)
        date_str = f"{mtime.strftime('%b')} {mtime.day:>2} {mtime.strftime('%H:%M')}"
        return f"{kind}rwxr-xr-x  1 user  staff {st.st_size:>8} {date_str} {name}"

    def glob(self, pattern: str, path: str, type_filter: str = "all", limit: int = 100) -> List[str]:
        base = self.resolve_path(path)
        if not base.is_dir():
            return []
        recursive = "**" in pattern
        matches: List[str] = []

        def walk(directory: Path) -> None:
            try:
                entries = sorted(os.scandir(directory), key=lambda e: e.name)
            except OSError:
                return
            for entry in entries:
                if len(matches) >= limit:
                    return
                entry_path = Path(entry.path)
                rel = entry_path.relative_to(base).as_posix()
                try:
                    is_dir = entry.is_dir()
                    is_file = entry.is_file()
                except OSError:
                    continue
                if glob_match(rel, pattern) or glob_match(entry.name, pattern):
                    if (type_filter == "file" and is_file) or (type_filter == "directory" and is_dir) or type_filter == "all":
                        matches.append(str(entry_path))
                if recursive and is_dir and not entry.is_symlink() and not entry.name.startswith("."):
                    walk(entry_path)

        walk(base)
        return sorted(matches)[:limit]

    def iter_tree(self, target: Path, label: str, max_depth: Optional[int] = None) -> Iterator[str]:
        """Yield tree lines for ``target``; hidden entries skipped, names sorted."""
        if not target.is_dir():
            raise ToolError(f"dir not found: {label}")
        yield label
        yield from self._iter_tree_children(target, "", 1, max_depth)

    def _iter_tree_children(self, directory: Path, prefix: str, depth: int, max_depth: Optional[int]) -> Iterator[str]:
        if max_depth is not None and depth > max_depth:
            return
        try:
            entries = sorted(
                (entry for entry in os.scandir(directory) if not entry.name.startswith(".")),
                key=lambda e: e.name,
            )
        except OSError:
            return
        for idx, entry in enumerate(entries):
            last = idx == len(entries) - 1
            yield f"{prefix}{TREE_LAST if last else TREE_BRANCH}{entry.name}"
            try:
                descend = entry.is_dir(follow_symlinks=False)
            except OSError:
                descend = False
            if descend:
                child_prefix = prefix + (TREE_SPACE if last else TREE_PIPE)
                yield from self._iter_tree_children(Path(entry.path), child_prefix, depth + 1, max_depth)
