"""Generic async repository — the entity store behind resource controllers."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import inspect as sa_inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from apitoolbox.core.exceptions import ConflictError
from apitoolbox.db.base import Base
from apitoolbox.domain.file import SystemFile
from apitoolbox.repositories.collection import QueryCollection

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Generic CRUD repository.

    Soft-deletes: for models with a `deleted_at` column, delete() stamps it and
    rows where it is set are excluded from all standard reads. Other models
    are hard-deleted.
    """

    model: type[ModelT]
    primary_key: ClassVar[str] = "id"
    collection_class: ClassVar[type[QueryCollection]] = QueryCollection

    def __init__(self, session: AsyncSession):
        self._session = session

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _base_query(self):
        """Return a SELECT excluding soft-deleted rows."""
        q = select(self.model)
        if hasattr(self.model, "deleted_at"):
            q = q.where(self.model.deleted_at.is_(None))
        return q

    def _column(self, name: str):
        if name not in sa_inspect(self.model).columns.keys():
            return None
        return getattr(self.model, name)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def collection(self) -> QueryCollection:
        return self.collection_class(
            self._session, self.model, self._base_query(), primary_key=self.primary_key
        )

    async def get(self, pk: Any) -> ModelT | None:
        return await self.find_by(self.primary_key, pk)

    async def find_by(self, column: str, value: Any) -> ModelT | None:
        col = self._column(column)
        if col is None:
            return None
        result = await self._session.execute(
            self._base_query()
            .where(col == value)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def find_pk(self, column: str, value: Any) -> Any | None:
        col = self._column(column)
        if col is None:
            return None
        q = self._base_query().where(col == value).with_only_columns(getattr(self.model, self.primary_key))
        return (await self._session.execute(q)).scalars().first()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def new(self) -> ModelT:
        return self.model()

    def fill(self, entity: ModelT, data: Mapping[str, Any]) -> ModelT:
        """Assign every key of *data* naming a column (never the primary key)."""
        columns = set(sa_inspect(self.model).columns.keys())
        for key, value in data.items():
            if key == self.primary_key or key not in columns:
                continue
            setattr(entity, key, value)
        return entity

    async def save(self, entity: ModelT) -> bool:
        if entity not in self._session:
            self._session.add(entity)
        elif hasattr(entity, "updated_at"):
            entity.updated_at = datetime.now(timezone.utc)
        await self._flush()  # populate id
        return True

    async def delete(self, entity: ModelT) -> bool:
        if hasattr(self.model, "deleted_at"):
            entity.deleted_at = datetime.now(timezone.utc)
        else:
            await self._session.delete(entity)
        await self._flush()
        return True

    async def _flush(self) -> None:
        """Flush pending changes; a unique or foreign key violation is a ConflictError.

        The session (or the enclosing savepoint) must be rolled back after it.
        """
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise ConflictError() from exc

    async def savepoint(self) -> AsyncSessionTransaction:
        return await self._session.begin_nested()

    # ------------------------------------------------------------------
    # File relations
    # ------------------------------------------------------------------

    def has_relation(self, entity: ModelT, name: str) -> bool:
        relations = getattr(type(entity), "attachment_relations", None)
        return callable(relations) and name in relations()

    async def load_relation(self, entity: ModelT, name: str) -> list[SystemFile]:
        """Files attached to *entity* under *name*, in display order."""
        owner_id = getattr(entity, self.primary_key)
        if owner_id is None:
            return []
        result = await self._session.execute(
            select(SystemFile)
            .where(SystemFile.attachment_type == self.model.__tablename__)
            .where(SystemFile.attachment_id == str(owner_id))
            .where(SystemFile.field == name)
            .order_by(SystemFile.sort_order, SystemFile.created_at)
        )
        return list(result.scalars().all())
