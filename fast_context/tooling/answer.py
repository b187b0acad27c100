"""Parse the model's final ANSWER XML into file matches."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List

from fast_context.tooling.types import FileMatch

logger = logging.getLogger(__name__)

_FILE_RE = re.compile(r'<file\s+path="([^"]+)">([\s\S]*?)</file>')
_RANGE_RE = re.compile(r"<range>(\d+)-(\d+)</range>")
_VIRTUAL_PREFIX_RE = re.compile(r"^/codebase/?")


def parse_answer(answer_xml: str, project_root: Path) -> List[FileMatch]:
    """Extract ``<file path=...>`` blocks; paths outside ``project_root`` are dropped."""
    root = Path(project_root).resolve()
    matches: List[FileMatch] = []
    for file_match in _FILE_RE.finditer(answer_xml or ""):
        rel = _VIRTUAL_PREFIX_RE.sub("", file_match.group(1), count=1)
        full_path = (root / rel).resolve()
        if full_path != root and not full_path.is_relative_to(root):
            logger.warning("Dropping answer path outside project root: %s", file_match.group(1))
            continue
        ranges = tuple((int(start), int(end)) for start, end in _RANGE_RE.findall(file_match.group(2)))
        matches.append(FileMatch(path=rel, full_path=str(full_path), ranges=ranges))
    return matches
