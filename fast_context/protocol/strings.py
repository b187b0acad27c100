"""Schema-less extraction of printable text from wire payloads."""

from __future__ import annotations

import re
from typing import Iterator

DEFAULT_MIN_LENGTH = 4

# One printable unit: ASCII text bytes or a well-formed UTF-8 multibyte sequence.
_PRINTABLE_UNIT = (
    rb"[\t\n\r\x20-\x7e]"
    rb"|[\xc2-\xdf][\x80-\xbf]"
    rb"|[\xe0-\xef][\x80-\xbf]{2}"
    rb"|[\xf0-\xf4][\x80-\xbf]{3}"
)


def _run_pattern(min_length: int) -> "re.Pattern[bytes]":
    return re.compile(b"(?:" + _PRINTABLE_UNIT + b"){%d,}" % max(1, min_length))


_DEFAULT_PATTERN = _run_pattern(DEFAULT_MIN_LENGTH)


def extract_strings(buffer: bytes, min_length: int = DEFAULT_MIN_LENGTH) -> Iterator[str]:
    """Yield maximal printable runs of at least ``min_length`` characters, in byte order."""
    pattern = _DEFAULT_PATTERN if min_length == DEFAULT_MIN_LENGTH else _run_pattern(min_length)
    for match in pattern.finditer(buffer):
        yield match.group(0).decode("utf-8", errors="replace")


def find_prefixed(buffer: bytes, prefix: str, *, contains: str = "") -> str | None:
    """Return the first extracted run holding ``prefix``, sliced to start at it.

    Length prefixes of short strings can themselves be printable bytes, so the
    prefix is searched inside each run rather than only at its start.
    """
    for candidate in extract_strings(buffer):
        idx = candidate.find(prefix)
        if idx == -1:
            continue
        value = candidate[idx:]
        if contains and contains not in value:
            continue
        return value
    return None
