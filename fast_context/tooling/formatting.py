"""Render a SearchResult as the text handed back to calling agents."""

from __future__ import annotations

from typing import List

from fast_context.config import SearchSettings
from fast_context.tooling.types import RepoMapMeta, SearchResult

MIN_KEYWORD_LENGTH = 3

_STATUS_HINTS = {
    403: (
        "[hint] 403 Forbidden: Authentication failed. The API key may be expired or revoked. "
        "Try re-extracting with extract_windsurf_key, or set a fresh WINDSURF_API_KEY env var."
    ),
    401: (
        "[hint] 401 Unauthorized: Invalid API key or JWT. "
        "Re-extract the key with extract_windsurf_key or set WINDSURF_API_KEY."
    ),
    429: "[hint] 429 Rate limited: Too many requests. Wait a moment and retry.",
}


def _diagnostic_line(meta: RepoMapMeta) -> str:
    line = f"[diagnostic] tree_depth_used={meta.depth}, tree_size={meta.size_kb}KB"
    if meta.fell_back:
        line += " (auto fell back from requested depth)"
    return line


def format_error(result: SearchResult, settings: SearchSettings) -> str:
    text = f"Error: {result.error}"
    status = result.http_status
    meta = result.meta

    if status in _STATUS_HINTS:
        return f"{text}\n\n{_STATUS_HINTS[status]}"
    if meta is not None and status is not None and status >= 400:
        return (
            f"{text}\n\n{_diagnostic_line(meta)}\n"
            f"[config] max_turns={settings.max_turns}, max_results={settings.max_results}, "
            f"max_commands={settings.max_commands}, timeout_ms={settings.timeout_ms}\n"
            "[hint] If the error is payload-related, try a lower tree_depth value."
        )
    if meta is not None:
        return f"{text}\n\n{_diagnostic_line(meta)}"
    return text


def keyword_list(patterns: List[str]) -> List[str]:
    """Unique patterns, first occurrence order, dropping very short ones."""
    return [p for p in dict.fromkeys(patterns) if len(p) >= MIN_KEYWORD_LENGTH]


def format_search_result(result: SearchResult, settings: SearchSettings) -> str:
    if result.error is not None:
        return format_error(result, settings)

    keywords = keyword_list(result.rg_patterns)
    if not result.files and not keywords:
        if result.raw_response:
            return f"No relevant files found.\n\nRaw response:\n{result.raw_response}"
        return "No relevant files found."

    parts: List[str] = []
    total = len(result.files)
    if result.files:
        parts.append(f"Found {total} relevant files.")
        parts.append("")
        for idx, match in enumerate(result.files, start=1):
            ranges = ", ".join(f"L{start}-{end}" for start, end in match.ranges)
            parts.append(f"  [{idx}/{total}] {match.full_path} ({ranges})")
    else:
        parts.append("No files found.")

    if keywords:
        parts.append("")
        parts.append(f"grep keywords: {', '.join(keywords)}")

    meta = result.meta
    if meta is not None:
        fell_back = " (fell back from requested depth)" if meta.fell_back else ""
        parts.append("")
        parts.append(
            f"[config] tree_depth={meta.depth}{fell_back}, tree_size={meta.size_kb}KB, "
            f"max_turns={settings.max_turns}, max_results={settings.max_results}, timeout_ms={settings.timeout_ms}"
        )
    return "\n".join(parts)
