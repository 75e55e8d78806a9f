"""Article routes — REFERENCE pattern for all v1 resource routers.

Pattern:
  1. Write a dependency that builds the controller for the request
     (ApiRequest + repositories bound to the DB session)
  2. Hand it to resource_router() with a prefix and tags

Copy this file when exposing a new resource.
"""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from apitoolbox.controllers.article import ArticleController
from apitoolbox.db.base import get_db
from apitoolbox.repositories.article import ArticleRepository
from apitoolbox.repositories.user import UserRepository
from apitoolbox.routers.resource import build_request, resource_router
from apitoolbox.services.files import LocalFileStore


async def get_article_controller(
    request: Request,
    session: AsyncSession = Depends(get_db),
) -> ArticleController:
    return ArticleController(
        await build_request(request),
        repository=ArticleRepository(session),
        files=LocalFileStore(session),
        users=UserRepository(session),
    )


router = resource_router(get_article_controller, prefix="/articles", tags=["Articles"])
