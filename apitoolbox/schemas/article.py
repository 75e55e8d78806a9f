"""Article Pydantic schemas (request DTOs and response models)."""


from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from apitoolbox.schemas.common import CamelModel, FileOut

ArticleStatus = Literal["draft", "published", "archived"]

class ArticleCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    content: str | None = None
    status: ArticleStatus = "draft"

class ArticleUpdate(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    content: str | None = None
    status: ArticleStatus | None = None

    # Omitted fields keep their value; an explicit null is only valid for content
    @field_validator("title", "slug", "status")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

class ArticleOut(CamelModel):
    id: str
    title: str
    slug: str
    content: str | None = None
    status: str
    author_id: str | None = None
    preview_image: FileOut | None = None
    images: list[FileOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
