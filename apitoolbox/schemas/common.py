"""Shared Pydantic schemas: the camelCase base and models reused across resources."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """All API schemas inherit from this to auto-generate camelCase aliases."""

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
        "from_attributes": True,
    }


class FileOut(CamelModel):
    """A stored file as embedded in resource responses (SystemFile row)."""

    id: str
    file_name: str
    disk_name: str
    content_type: str | None = None
    file_size: int
    sort_order: int = 0


class HealthResponse(BaseModel):
    status: str = "ok"
    app: str
    env: str
