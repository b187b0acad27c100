"""Decode streamed model responses into thinking text and tool calls."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from fast_context.protocol import frames as frame_codec
from fast_context.protocol.strings import extract_strings

TOOL_CALLS_MARKER = "[TOOL_CALLS]"
ERROR_PREFIX = "[Error]"
END_OF_SEQUENCE = "</s>"

# Runs shorter than this are mostly field keys and ids, not model text.
MIN_TEXT_RUN = 11

_TOOL_CALL_RE = re.compile(r"\[TOOL_CALLS\](\w+)\[ARGS\](\{.+)", re.DOTALL)


@dataclass(frozen=True)
class ParsedToolCall:
    """Tool call recovered from model text."""

    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DecodedResponse:
    """Text preceding the tool call (or the whole text) plus the call, if any."""

    text: str
    tool_call: Optional[ParsedToolCall] = None

    @property
    def is_error(self) -> bool:
        return self.tool_call is None and self.text.startswith(ERROR_PREFIX)


def parse_tool_call(text: str) -> Optional[Tuple[str, ParsedToolCall]]:
    """Parse ``[TOOL_CALLS]name[ARGS]{json}``. Returns (thinking, call) or None."""
    text = text.replace(END_OF_SEQUENCE, "")
    match = _TOOL_CALL_RE.search(text)
    if not match:
        return None

    raw = match.group(2).strip()
    try:
        arguments, _end = json.JSONDecoder().raw_decode(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(arguments, dict):
        return None

    thinking = text[: match.start()].strip()
    return thinking, ParsedToolCall(name=match.group(1), arguments=arguments)


def error_from_payload(payload: bytes) -> Optional[str]:
    """Return ``[Error] code: message`` when a frame is a Connect JSON error body."""
    try:
        candidate = payload.decode("utf-8")
    except UnicodeDecodeError:
        return None
    if not candidate.startswith("{"):
        return None
    try:
        body = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(body, dict) or not body.get("error"):
        return None
    error = body["error"]
    if not isinstance(error, dict):
        return f"{ERROR_PREFIX} unknown: {error}"
    code = error.get("code") or "unknown"
    message = error.get("message") or ""
    return f"{ERROR_PREFIX} {code}: {message}"


def decode_response(data: bytes) -> DecodedResponse:
    """Decode a full streaming body into text and an optional tool call.

    Frames are read in order: a JSON error body ends decoding with that error, a
    frame carrying the tool-call marker wins outright, and otherwise long
    printable runs from every frame are joined.
    """
    collected = ""
    for payload in frame_codec.decode(data):
        error = error_from_payload(payload)
        if error:
            return DecodedResponse(text=error)

        raw_text = payload.decode("utf-8", errors="ignore")
        if TOOL_CALLS_MARKER in raw_text:
            collected = raw_text
            break
        collected += "".join(run for run in extract_strings(payload) if len(run) >= MIN_TEXT_RUN)

    parsed = parse_tool_call(collected)
    if parsed is None:
        return DecodedResponse(text=collected)
    thinking, call = parsed
    return DecodedResponse(text=thinking, tool_call=call)
