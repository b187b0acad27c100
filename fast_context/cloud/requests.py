"""Request payload builders for the remote search service."""

from __future__ import annotations

import json
import os
import platform
import socket
from typing import Any, Dict, Iterable, Optional

from fast_context.config import ClientSettings
from fast_context.protocol.wire import WireEncoder
from fast_context.tooling.types import Message

METADATA_TRAILER = b"\x00\x01"


def _sysname() -> str:
    system = platform.system()
    if system == "Darwin":
        return "Darwin"
    if system == "Windows":
        return "Windows_NT"
    return "Linux"


def _os_name() -> str:
    system = platform.system()
    return {"Darwin": "darwin", "Windows": "win32"}.get(system, system.lower() or "linux")


def _total_memory() -> int:
    try:
        return int(os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES"))
    except (AttributeError, OSError, ValueError):
        return 0


def system_info() -> Dict[str, str]:
    machine = platform.machine()
    return {
        "Os": _os_name(),
        "Arch": machine,
        "Release": platform.release(),
        "Version": platform.version(),
        "Machine": machine,
        "Nodename": socket.gethostname(),
        "Sysname": _sysname(),
        "ProductVersion": "",
    }


def cpu_info() -> Dict[str, Any]:
    ncpu = os.cpu_count() or 4
    return {
        "NumSockets": 1,
        "NumCores": ncpu,
        "NumThreads": ncpu,
        "VendorID": "",
        "Family": "0",
        "Model": "0",
        "ModelName": platform.processor() or "Unknown",
        "Memory": _total_memory(),
    }


def _identity(settings: ClientSettings, api_key: str) -> WireEncoder:
    return (
        WireEncoder()
        .write_string(1, settings.app_name)
        .write_string(2, settings.app_version)
        .write_string(3, api_key)
        .write_string(4, settings.locale)
    )


def build_metadata(
    settings: ClientSettings,
    api_key: str,
    jwt: str,
    sysinfo: Optional[Dict[str, Any]] = None,
    cpuinfo: Optional[Dict[str, Any]] = None,
) -> WireEncoder:
    """Client metadata block carried by every authenticated request."""
    meta = _identity(settings, api_key)
    meta.write_string(5, json.dumps(sysinfo if sysinfo is not None else system_info(), separators=(",", ":")))
    meta.write_string(7, settings.ls_version)
    meta.write_string(8, json.dumps(cpuinfo if cpuinfo is not None else cpu_info(), separators=(",", ":")))
    meta.write_string(12, settings.app_name)
    meta.write_string(21, jwt)
    meta.write_bytes(30, METADATA_TRAILER)
    return meta


def build_jwt_request(settings: ClientSettings, api_key: str) -> bytes:
    meta = _identity(settings, api_key)
    meta.write_string(7, settings.ls_version)
    meta.write_string(12, settings.app_name)
    meta.write_bytes(30, METADATA_TRAILER)
    return WireEncoder().write_message(1, meta).to_bytes()


def build_rate_limit_request(settings: ClientSettings, api_key: str, jwt: str) -> bytes:
    request = WireEncoder().write_message(1, build_metadata(settings, api_key, jwt))
    request.write_string(3, settings.model)
    return request.to_bytes()


def build_chat_message(message: Message) -> WireEncoder:
    encoded = WireEncoder().write_varint(2, int(message.role)).write_string(3, message.content)
    if message.tool_call_id and message.tool_name and message.tool_args_json:
        call = (
            WireEncoder()
            .write_string(1, message.tool_call_id)
            .write_string(2, message.tool_name)
            .write_string(3, message.tool_args_json)
        )
        encoded.write_message(6, call)
    if message.ref_call_id:
        encoded.write_string(7, message.ref_call_id)
    return encoded


def build_chat_request(
    settings: ClientSettings,
    api_key: str,
    jwt: str,
    messages: Iterable[Message],
    tool_definitions: str,
) -> bytes:
    """Full model request: metadata, every history message, tool definitions."""
    request = WireEncoder().write_message(1, build_metadata(settings, api_key, jwt))
    for message in messages:
        request.write_message(2, build_chat_message(message))
    request.write_string(3, tool_definitions)
    return request.to_bytes()
