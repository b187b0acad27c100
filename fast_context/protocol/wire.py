"""Minimal protobuf-compatible wire encoder and lenient field scanner."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, List, Tuple, Union


class WireType(IntEnum):
    """Wire types of the tag/length encoding."""

    VARINT = 0
    I64 = 1
    LEN = 2
    I32 = 5


@dataclass(frozen=True)
class WireField:
    """One decoded top-level field."""

    tag: int
    wire_type: WireType
    value: Union[int, bytes]

    def as_text(self) -> str:
        if not isinstance(self.value, bytes):
            raise TypeError(f"field {self.tag} is not length-delimited")
        return self.value.decode("utf-8", errors="replace")


def encode_varint(value: int) -> bytes:
    if value < 0:
        raise ValueError("varint value must be non-negative")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_varint(buffer: bytes, offset: int = 0) -> Tuple[int, int]:
    """Return (value, next_offset). Raises ValueError on truncated input."""
    result = 0
    shift = 0
    pos = offset
    while pos < len(buffer):
        byte = buffer[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift > 63:
            raise ValueError("varint too long")
    raise ValueError("truncated varint")


class WireEncoder:
    """Append-only builder for a single wire-format message."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def _write_key(self, tag: int, wire_type: WireType) -> None:
        if tag < 1:
            raise ValueError(f"tag must be a positive integer, got {tag}")
        self._buffer += encode_varint((tag << 3) | int(wire_type))

    def write_varint(self, tag: int, value: int) -> "WireEncoder":
        self._write_key(tag, WireType.VARINT)
        self._buffer += encode_varint(int(value))
        return self

    def write_bytes(self, tag: int, value: bytes) -> "WireEncoder":
        self._write_key(tag, WireType.LEN)
        self._buffer += encode_varint(len(value))
        self._buffer += value
        return self

    def write_string(self, tag: int, value: str) -> "WireEncoder":
        return self.write_bytes(tag, value.encode("utf-8"))

    def write_message(self, tag: int, nested: "WireEncoder") -> "WireEncoder":
        return self.write_bytes(tag, nested.to_bytes())

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)


def iter_fields(buffer: bytes) -> Iterator[WireField]:
    """Yield top-level fields, stopping quietly at the first malformed one.

    Response schemas are unknown, so this never raises on bad input; callers get
    whatever prefix of the buffer parsed cleanly.
    """
    pos = 0
    end = len(buffer)
    while pos < end:
        try:
            key, pos = decode_varint(buffer, pos)
        except ValueError:
            return
        tag = key >> 3
        try:
            wire_type = WireType(key & 0x07)
        except ValueError:
            return
        if tag < 1:
            return

        if wire_type is WireType.VARINT:
            try:
                value, pos = decode_varint(buffer, pos)
            except ValueError:
                return
            yield WireField(tag, wire_type, value)
        elif wire_type is WireType.LEN:
            try:
                length, pos = decode_varint(buffer, pos)
            except ValueError:
                return
            if pos + length > end:
                return
            yield WireField(tag, wire_type, bytes(buffer[pos : pos + length]))
            pos += length
        else:
            width = 8 if wire_type is WireType.I64 else 4
            if pos + width > end:
                return
            yield WireField(tag, wire_type, int.from_bytes(buffer[pos : pos + width], "little"))
            pos += width


def decode_fields(buffer: bytes) -> List[WireField]:
    return list(iter_fields(buffer))
