"""Core search runtime types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class MessageRole(IntEnum):
    """Chat roles with the integer codes the remote service expects."""

    USER = 1
    ASSISTANT = 2
    TOOL_RESULT = 4
    SYSTEM = 5


@dataclass(frozen=True)
class Message:
    """One chat message; tool fields are set only on tool call/result turns."""

    role: MessageRole
    content: str
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    tool_args_json: Optional[str] = None
    ref_call_id: Optional[str] = None


class ConversationLog:
    """Append-only message history owned by a single search."""

    def __init__(self) -> None:
        self._messages: List[Message] = []

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def count(self, role: MessageRole, content: Optional[str] = None) -> int:
        return sum(1 for m in self._messages if m.role == role and (content is None or m.content == content))


@dataclass(frozen=True)
class FileMatch:
    """A file the model pointed at, with 1-indexed inclusive line ranges."""

    path: str
    full_path: str
    ranges: Tuple[Tuple[int, int], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "full_path": self.full_path, "ranges": [list(r) for r in self.ranges]}


@dataclass(frozen=True)
class RepoMap:
    """Rendered directory map and how it was produced."""

    tree: str
    depth: int
    size_bytes: int
    fell_back: bool

    @property
    def meta(self) -> "RepoMapMeta":
        return RepoMapMeta(depth=self.depth, size_bytes=self.size_bytes, fell_back=self.fell_back)


@dataclass(frozen=True)
class RepoMapMeta:
    depth: int
    size_bytes: int
    fell_back: bool

    @property
    def size_kb(self) -> float:
        return round(self.size_bytes / 1024, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {"tree_depth": self.depth, "tree_size_kb": self.size_kb, "fell_back": self.fell_back}


@dataclass
class SearchResult:
    """Outcome of one search: matched files or an error, never both."""

    files: List[FileMatch] = field(default_factory=list)
    rg_patterns: List[str] = field(default_factory=list)
    meta: Optional[RepoMapMeta] = None
    error: Optional[str] = None
    http_status: Optional[int] = None
    raw_response: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "files": [match.to_dict() for match in self.files],
            "rg_patterns": list(self.rg_patterns),
        }
        if self.meta is not None:
            payload["meta"] = self.meta.to_dict()
        if self.error is not None:
            payload["error"] = self.error
        if self.http_status is not None:
            payload["http_status"] = self.http_status
        if self.raw_response is not None:
            payload["raw_response"] = self.raw_response
        return payload
