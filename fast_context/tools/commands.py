"""Validated argument models for the restricted_exec command types."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fast_context.tools.fs_ops import VIRTUAL_ROOT


class _CommandArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


def _as_glob_list(value: Any) -> Optional[List[str]]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value if item]


class RgCommand(_CommandArgs):
    type: Literal["rg"] = "rg"
    pattern: str = Field(min_length=1)
    path: str = VIRTUAL_ROOT
    include: Optional[List[str]] = None
    exclude: Optional[List[str]] = None

    @field_validator("include", "exclude", mode="before")
    @classmethod
    def _normalize_globs(cls, value: Any) -> Optional[List[str]]:
        return _as_glob_list(value)


class ReadfileCommand(_CommandArgs):
    type: Literal["readfile"] = "readfile"
    file: str = Field(min_length=1)
    start_line: Optional[int] = None
    end_line: Optional[int] = None


class TreeCommand(_CommandArgs):
    type: Literal["tree"] = "tree"
    path: str = VIRTUAL_ROOT
    levels: Optional[int] = None


class LsCommand(_CommandArgs):
    type: Literal["ls"] = "ls"
    path: str = VIRTUAL_ROOT
    long_format: bool = False
    all: bool = False


class GlobCommand(_CommandArgs):
    type: Literal["glob"] = "glob"
    pattern: str = Field(min_length=1)
    path: str = VIRTUAL_ROOT
    type_filter: Literal["file", "directory", "all"] = "all"


COMMAND_TYPES: Dict[str, Type[_CommandArgs]] = {
    "rg": RgCommand,
    "readfile": ReadfileCommand,
    "tree": TreeCommand,
    "ls": LsCommand,
    "glob": GlobCommand,
}
