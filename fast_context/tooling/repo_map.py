"""Directory map sent with the first user message."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from fast_context.tools.errors import ToolError
from fast_context.tools.fs_ops import TREE_BRANCH, VIRTUAL_ROOT, ProjectFS
from fast_context.tooling.types import RepoMap

logger = logging.getLogger(__name__)

# Server payload limit is about 346 KB; leave room for later turns.
MAX_TREE_BYTES = 250 * 1024

EMPTY_MAP = f"{VIRTUAL_ROOT}\n(empty or inaccessible)"


def _render_within(fs: ProjectFS, depth: int, limit: int) -> Optional[str]:
    """Tree text at ``depth``, or None as soon as it grows past ``limit`` bytes."""
    lines = []
    size = -1
    for line in fs.iter_tree(fs.root, VIRTUAL_ROOT, max_depth=depth):
        size += len(line.encode("utf-8")) + 1
        if size > limit:
            return None
        lines.append(line)
    return fs.remap("\n".join(lines))


def build_repo_map(project_root: Path, depth: int = 3, max_bytes: int = MAX_TREE_BYTES) -> RepoMap:
    """Deepest tree from ``depth`` down to 1 that fits in ``max_bytes``."""
    fs = ProjectFS(project_root)
    for level in range(depth, 0, -1):
        try:
            tree = _render_within(fs, level, max_bytes)
        except (ToolError, OSError) as exc:
            logger.debug("Tree rendering failed at depth %s: %s", level, exc)
            continue
        if tree is None:
            logger.info("Repo map at depth %s exceeds %s bytes; trying a lower depth", level, max_bytes)
            continue
        return RepoMap(tree=tree, depth=level, size_bytes=len(tree.encode("utf-8")), fell_back=level < depth)

    try:
        entries = sorted(os.listdir(fs.root))
    except OSError as exc:
        logger.warning("Cannot list project root %s: %s", fs.root, exc)
        return RepoMap(tree=EMPTY_MAP, depth=0, size_bytes=len(EMPTY_MAP.encode("utf-8")), fell_back=True)
    tree = "\n".join([VIRTUAL_ROOT] + [f"{TREE_BRANCH}{name}" for name in entries])
    return RepoMap(tree=tree, depth=0, size_bytes=len(tree.encode("utf-8")), fell_back=True)


def render_user_content(query: str, repo_map: RepoMap) -> str:
    return (
        f"Problem Statement: {query}\n\n"
        f"Repo Map (tree -L {repo_map.depth} /codebase):\n"
        f"```text\n{repo_map.tree}\n```"
    )
