"""Uniform output truncation for tool results."""

from __future__ import annotations

from dataclasses import dataclass

TRUNCATION_MARKER = "... (lines truncated) ..."


@dataclass(frozen=True)
class TruncationPolicy:
    """Keep at most ``max_lines`` lines of at most ``line_max_chars`` characters each."""

    max_lines: int = 50
    line_max_chars: int = 250

    def __post_init__(self) -> None:
        if self.max_lines < 1:
            raise ValueError("max_lines must be >= 1")
        if self.line_max_chars < 1:
            raise ValueError("line_max_chars must be >= 1")

    def apply(self, text: str) -> str:
        """Truncate ``text``. Applying the policy twice changes nothing."""
        lines = text.split("\n")
        kept = [line[: self.line_max_chars] for line in lines[: self.max_lines]]
        result = "\n".join(kept)
        if len(lines) > self.max_lines:
            result += "\n" + TRUNCATION_MARKER[: self.line_max_chars]
        return result
