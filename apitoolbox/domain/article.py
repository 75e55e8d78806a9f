"""SQLAlchemy ORM model for Articles.

This is the REFERENCE module showing the pattern for resource models:
  - Inherit Base, TimestampMixin, SoftDeleteMixin
  - UUID primary key
  - AttachmentsMixin + attach_one / attach_many for file fields
  - view-only relationships to SystemFile so responses can embed the files
Copy this pattern when adding new resources.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from apitoolbox.db.base import Base
from apitoolbox.domain.file import SystemFile
from apitoolbox.domain.mixins import AttachmentsMixin, SoftDeleteMixin, TimestampMixin


class Article(Base, TimestampMixin, SoftDeleteMixin, AttachmentsMixin):
    __tablename__ = "articles"

    attach_one = ("preview_image",)
    attach_many = ("images",)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # "draft" | "published" | "archived"
    status: Mapped[str] = mapped_column(String(50), default="draft", nullable=False, index=True)
    author_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)

    preview_image: Mapped[Optional[SystemFile]] = relationship(
        SystemFile,
        primaryjoin=(
            "and_(Article.id == foreign(SystemFile.attachment_id), "
            "SystemFile.attachment_type == 'articles', "
            "SystemFile.field == 'preview_image')"
        ),
        uselist=False,
        viewonly=True,
        lazy="selectin",
    )
    images: Mapped[List[SystemFile]] = relationship(
        SystemFile,
        primaryjoin=(
            "and_(Article.id == foreign(SystemFile.attachment_id), "
            "SystemFile.attachment_type == 'articles', "
            "SystemFile.field == 'images')"
        ),
        order_by=SystemFile.sort_order,
        viewonly=True,
        lazy="selectin",
    )
