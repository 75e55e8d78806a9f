"""Pagination helpers for list endpoints."""


import math
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from apitoolbox.core.config import settings


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

    model_config = {"populate_by_name": True}


class Page(BaseModel):
    """One page of a collection, as returned by ``Collection.paginate``."""

    items: list[Any]
    total: int
    page: int
    limit: int

    @property
    def meta(self) -> PageMeta:
        return PageMeta(
            total=self.total,
            page=self.page,
            limit=self.limit,
            pages=math.ceil(self.total / self.limit) if self.limit else 1,
        )


def _positive_int(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def page_number(query: Mapping[str, Any]) -> int:
    """Return the 1-based ``?page=`` number, falling back to the first page."""
    return _positive_int(query.get("page")) or 1


def page_size(data: Mapping[str, Any], default: int) -> int:
    """Return the page size, honouring a ``per_page`` override in the input."""
    override = _positive_int(data.get("per_page"))
    if override is None:
        return default
    return min(override, settings.max_items_per_page)
