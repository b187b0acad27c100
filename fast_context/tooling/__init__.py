"""Search orchestration: prompts, directory map, turn loop, answer parsing."""

from fast_context.tooling.types import FileMatch, Message, MessageRole, RepoMapMeta, SearchResult

__all__ = ["FileMatch", "Message", "MessageRole", "RepoMapMeta", "SearchResult"]
