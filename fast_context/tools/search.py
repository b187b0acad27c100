"""Pattern search for the rg command (ripgrep with a pure-Python fallback)."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from fast_context.tools.errors import ToolError, ValidationError
from fast_context.tools.fs_ops import ProjectFS, matches_any_glob

logger = logging.getLogger(__name__)

MAX_COUNT = 50
RG_TIMEOUT_SECONDS = 30
RG_MAX_OUTPUT_BYTES = 10 * 1024 * 1024


class RepoSearch:
    """Search helper constrained to a project root."""

    _DEFAULT_SKIP_DIRS = {
        ".git",
        ".hg",
        ".svn",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".tox",
        ".venv",
        "__pycache__",
        "node_modules",
        "venv",
    }

    def __init__(self, fs: ProjectFS, rg_binary: Optional[str] = None) -> None:
        self.fs = fs
        self.rg_binary = rg_binary if rg_binary is not None else shutil.which("rg")

    def search(
        self,
        pattern: str,
        target: Path,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
    ) -> str:
        """Return ``path:line:text`` output; empty string when nothing matched."""
        if self.rg_binary:
            return self._rg_search(pattern, target, include, exclude)
        return self._python_search(pattern, target, include, exclude)

    def _rg_search(
        self,
        pattern: str,
        target: Path,
        include: Optional[Sequence[str]],
        exclude: Optional[Sequence[str]],
    ) -> str:
        args = [str(self.rg_binary), "--no-heading", "-n", "--max-count", str(MAX_COUNT), "-e", pattern, str(target)]
        for glob in include or []:
            args.extend(["--glob", glob])
        for glob in exclude or []:
            args.extend(["--glob", f"!{glob}"])

        env = dict(os.environ)
        env["RIPGREP_CONFIG_PATH"] = ""
        try:
            result = subprocess.run(
                args,
                cwd=self.fs.root,
                capture_output=True,
                text=True,
                errors="replace",
                env=env,
                timeout=RG_TIMEOUT_SECONDS,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolError(f"rg timed out after {RG_TIMEOUT_SECONDS}s") from exc

        # Exit code 1 is ripgrep's "no matches".
        if result.returncode == 1:
            return ""
        if result.returncode != 0:
            raise ToolError(result.stderr.strip() or f"rg failed with exit code {result.returncode}")
        return result.stdout[:RG_MAX_OUTPUT_BYTES]

    def _python_search(
        self,
        pattern: str,
        target: Path,
        include: Optional[Sequence[str]],
        exclude: Optional[Sequence[str]],
    ) -> str:
        try:
            compiled = re.compile(pattern)
        except re.error as exc:
            raise ValidationError(f"invalid regex: {exc}") from exc

        if target.is_file():
            return "\n".join(self._scan_file(target, compiled, with_filename=False))

        lines: List[str] = []
        for dirpath, dirnames, filenames in os.walk(target):
            dirnames[:] = sorted(d for d in dirnames if d not in self._DEFAULT_SKIP_DIRS and not d.startswith("."))
            for name in sorted(filenames):
                path = Path(dirpath) / name
                rel = path.relative_to(target).as_posix()
                if include and not matches_any_glob(rel, name, include):
                    continue
                if exclude and matches_any_glob(rel, name, exclude):
                    continue
                lines.extend(self._scan_file(path, compiled, with_filename=True))
        return "\n".join(lines)

    def _scan_file(self, path: Path, pattern: "re.Pattern[str]", with_filename: bool) -> List[str]:
        if self._looks_binary(path):
            return []
        hits: List[str] = []
        try:
            with path.open("r", encoding="utf-8", errors="ignore") as handle:
                for idx, line in enumerate(handle, start=1):
                    text = line.rstrip("\n")
                    if not pattern.search(text):
                        continue
                    hits.append(f"{path}:{idx}:{text}" if with_filename else f"{idx}:{text}")
                    if len(hits) >= MAX_COUNT:
                        break
        except OSError as exc:
            logger.debug("Skipping unreadable file %s: %s", path, exc)
            return []
        return hits

    def _looks_binary(self, path: Path, sniff_bytes: int = 4096) -> bool:
        try:
            with path.open("rb") as handle:
                chunk = handle.read(sniff_bytes)
        except OSError:
            return True
        return b"\x00" in chunk
