"""Framework-neutral request object and input normalization.

Routers build an :class:`ApiRequest` from the HTTP request; controllers only
ever see this object.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from apitoolbox.core.config import settings

_BRACKETS = re.compile(r"\[([^\]]*)\]")


class Upload(BaseModel):
    """An uploaded file, read fully into memory."""

    filename: str = ""
    content_type: str = "application/octet-stream"
    content: bytes = b""

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def is_valid(self) -> bool:
        """A usable upload has a name, some bytes, and fits the size limit."""
        return bool(self.filename) and 0 < self.size <= settings.max_upload_size_bytes


class ApiRequest(BaseModel):
    query: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, Any] = Field(default_factory=dict)  # query merged with body
    files: dict[str, list[Upload]] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)

    def header(self, name: str, default: str | None = None) -> str | None:
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return default

    def has_file(self, field: str) -> bool:
        return bool(self.files.get(field))

    def file(self, field: str) -> Upload | None:
        uploads = self.files.get(field)
        return uploads[0] if uploads else None

    def file_list(self, field: str) -> list[Upload]:
        return list(self.files.get(field, []))


def _assign(target: dict[str, Any], keys: list[str], value: Any) -> None:
    key, rest = keys[0], keys[1:]
    if not rest:
        if key == "":
            return
        target[key] = value
        return
    if rest[0] == "":
        bucket = target.get(key)
        if not isinstance(bucket, list):
            bucket = target[key] = []
        bucket.append(value)
        return
    child = target.get(key)
    if not isinstance(child, dict):
        child = target[key] = {}
    _assign(child, rest, value)


def parse_query(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Nest flat query pairs using bracket notation.

    ``filters[status]=active`` becomes ``{"filters": {"status": "active"}}``
    and ``ids[]=1&ids[]=2`` becomes ``{"ids": ["1", "2"]}``. A repeated plain
    key keeps its last value.
    """
    result: dict[str, Any] = {}
    for name, value in pairs:
        head = name.split("[", 1)[0]
        if not head:
            continue
        keys = [head] + _BRACKETS.findall(name[len(head):])
        _assign(result, keys, value)
    return result


def normalize_input(data: Mapping[str, Any], attachment_fields: Iterable[str]) -> dict[str, Any]:
    """Return a copy of *data* without the keys reserved for file attachments."""
    reserved = set(attachment_fields)
    return {key: value for key, value in data.items() if key not in reserved}
