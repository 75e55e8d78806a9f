"""Query-backed collection handed to resource controllers.

Methods that narrow or order the collection mutate it in place and return
``self`` so they can be chained, and so filter functions may either return
the collection or nothing at all.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import Select, func, inspect as sa_inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from apitoolbox.core.pagination import Page

logger = logging.getLogger(__name__)


class QueryCollection:
    def __init__(self, session: AsyncSession, model: type, query: Select | None = None, primary_key: str = "id"):
        self.session = session
        self.model = model
        self.query = query if query is not None else select(model)
        self.primary_key = primary_key
        self._columns = set(sa_inspect(model).columns.keys())

    def column(self, name: str) -> Any | None:
        """Return the mapped column attribute *name*, or None for unknown names."""
        if name not in self._columns:
            return None
        return getattr(self.model, name)

    # ------------------------------------------------------------------
    # Narrowing / ordering
    # ------------------------------------------------------------------

    def where(self, *criteria: Any) -> QueryCollection:
        self.query = self.query.where(*criteria)
        return self

    def sort(self, column: str, direction: str = "asc") -> QueryCollection:
        col = self.column(column)
        if col is None:
            logger.debug("Ignoring sort on unknown column %r", column)
            return self
        self.query = self.query.order_by(None).order_by(col.desc() if direction == "desc" else col.asc())
        return self

    def filter(self, filters: Mapping[str, Any]) -> QueryCollection:
        """Apply simple equality filters for every key naming a column (lists use IN)."""
        for col_name, value in filters.items():
            col = self.column(col_name)
            if col is None or value is None or isinstance(value, Mapping):
                continue
            if isinstance(value, (list, tuple, set)):
                self.query = self.query.where(col.in_(list(value)))
            else:
                self.query = self.query.where(col == value)
        return self

    def intersect(self, keys: Iterable[Any]) -> QueryCollection:
        """Keep only the rows whose primary key is in *keys*."""
        pk = getattr(self.model, self.primary_key)
        self.query = self.query.where(pk.in_(list(keys)))
        return self

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def count(self) -> int:
        count_q = select(func.count()).select_from(self.query.order_by(None).subquery())
        return (await self.session.execute(count_q)).scalar_one()

    async def paginate(self, page_size: int, page: int = 1) -> Page:
        total = await self.count()
        q = self.query.offset((page - 1) * page_size).limit(page_size)
        items = (await self.session.execute(q)).scalars().all()
        return Page(items=list(items), total=total, page=page, limit=page_size)

    async def values(self) -> list[Any]:
        items = (await self.session.execute(self.query)).scalars().all()
        return list(items)

    async def keys(self) -> list[Any]:
        pk = getattr(self.model, self.primary_key)
        q = self.query.with_only_columns(pk)
        return list((await self.session.execute(q)).scalars().all())
