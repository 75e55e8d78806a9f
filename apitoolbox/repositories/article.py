"""Article repository and the per-field filters its controller exposes.

How to add a new repository:
  1. Create apitoolbox/repositories/my_entity.py
  2. class MyEntityRepository(BaseRepository[MyEntity]):
         model = MyEntity
  3. Write filter functions taking (collection, value) for the controller
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import or_, select

from apitoolbox.domain.article import Article
from apitoolbox.domain.file import SystemFile
from apitoolbox.repositories.base import BaseRepository
from apitoolbox.repositories.collection import QueryCollection


class ArticleRepository(BaseRepository[Article]):
    model = Article


# ----------------------------------------------------------------------
# Filter functions: fn(collection, value) -> collection | {pk: ...} | None
# ----------------------------------------------------------------------

def by_status(collection: QueryCollection, value: Any) -> QueryCollection:
    if isinstance(value, (list, tuple)):
        return collection.where(Article.status.in_([str(v) for v in value]))
    return collection.where(Article.status == str(value))


def by_author(collection: QueryCollection, value: Any) -> QueryCollection:
    return collection.where(Article.author_id == str(value))


def search(collection: QueryCollection, value: Any) -> QueryCollection | None:
    term = str(value or "").strip()
    if not term:
        return None
    pattern = f"%{term}%"
    return collection.where(or_(Article.title.ilike(pattern), Article.content.ilike(pattern)))


async def with_images(collection: QueryCollection, value: Any) -> dict[str, bool] | None:
    """Keep only articles that have at least one image in their gallery."""
    if str(value).lower() not in ("1", "true", "yes"):
        return None
    result = await collection.session.execute(
        select(SystemFile.attachment_id)
        .where(SystemFile.attachment_type == Article.__tablename__)
        .where(SystemFile.field == "images")
        .distinct()
    )
    return {article_id: True for article_id in result.scalars().all()}
