"""Article controller — REFERENCE pattern for concrete resource controllers."""

import re
import uuid
from typing import Any

from apitoolbox.controllers.attachments import AttachmentDeclaration
from apitoolbox.controllers.base import ResourceController
from apitoolbox.core.exceptions import ConflictError
from apitoolbox.repositories.article import by_author, by_status, search, with_images
from apitoolbox.schemas.article import ArticleCreate, ArticleOut, ArticleUpdate

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    return _NON_SLUG.sub("-", text.lower()).strip("-")


class ArticleController(ResourceController):
    lookup_key = "slug"
    sort_column = "created_at"
    sort_direction = "desc"

    attachments = AttachmentDeclaration(single=["preview_image"], multiple=["images"])
    filters = {
        "status": by_status,
        "author": by_author,
        "search": search,
        "with_images": with_images,
    }

    schema = ArticleOut
    create_schema = ArticleCreate
    update_schema = ArticleUpdate

    async def has_permission(self, action: str) -> bool:
        user = await self.current_user()
        if action == "store":
            return True
        # update / destroy: authors manage their own articles, admins manage all
        groups = getattr(user, "groups", None) or []
        return "admins" in groups or self.entity.author_id == user.id

    async def extend_save(self) -> None:
        if not self.exists:
            user = await self.current_user()
            self.entity.author_id = user.id
        if not self.entity.slug:
            base = slugify(self.entity.title or "") or "article"
            self.entity.slug = f"{base}-{uuid.uuid4().hex[:6]}"
        elif "slug" in self.data:
            await self.ensure_unique_slug(self.entity.slug)

    async def ensure_unique_slug(self, slug: str) -> None:
        """Slugs address articles, so a client-chosen one must not be taken."""
        owner = await self.repository.find_pk("slug", slug)
        if owner is not None and owner != self.entity.id:
            raise ConflictError()

    def extend_filters(self, filters: dict[str, Any]) -> None:
        # Drafts and archived articles only show up when asked for
        filters.setdefault("status", "published")
