"""Connect streaming envelope codec."""

from __future__ import annotations

import gzip
import logging
import struct
import zlib
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

FLAG_COMPRESSED = 0x01
FLAG_END_STREAM = 0x02
HEADER_SIZE = 5
MAX_PAYLOAD_SIZE = 0xFFFFFFFF

_HEADER = struct.Struct(">BI")


@dataclass(frozen=True)
class Frame:
    """One envelope unit of a streaming body."""

    compressed: bool
    payload: bytes
    end_stream: bool = False


def encode_frame(payload: bytes, compress: bool = False, end_stream: bool = False) -> bytes:
    """Encode one frame: flag byte, 4-byte big-endian length, payload."""
    body = gzip.compress(payload) if compress else payload
    if len(body) > MAX_PAYLOAD_SIZE:
        raise ValueError(f"frame payload too large: {len(body)} bytes")
    flags = (FLAG_COMPRESSED if compress else 0) | (FLAG_END_STREAM if end_stream else 0)
    return _HEADER.pack(flags, len(body)) + body


def decode_frames(data: bytes) -> List[Frame]:
    """Decode every complete frame in ``data``.

    A short trailing header or payload ends decoding without error; servers may
    close the connection after the last logical frame.
    """
    frames: List[Frame] = []
    pos = 0
    total = len(data)
    while pos + HEADER_SIZE <= total:
        flags, length = _HEADER.unpack_from(data, pos)
        start = pos + HEADER_SIZE
        end = start + length
        if end > total:
            logger.debug("Truncated trailing frame: want %s bytes, have %s", length, total - start)
            break
        payload = bytes(data[start:end])
        pos = end

        compressed = bool(flags & FLAG_COMPRESSED)
        if compressed:
            try:
                payload = gzip.decompress(payload)
            except (OSError, EOFError, zlib.error) as exc:
                logger.warning("Skipping frame with undecodable gzip payload (%s bytes): %s", length, exc)
                continue
        frames.append(Frame(compressed=compressed, payload=payload, end_stream=bool(flags & FLAG_END_STREAM)))
    return frames


def decode(data: bytes) -> List[bytes]:
    """Decode ``data`` into the ordered list of (decompressed) frame payloads."""
    return [frame.payload for frame in decode_frames(data)]
