"""SQLAlchemy ORM model for stored files attached to other records."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from apitoolbox.db.base import Base
from apitoolbox.domain.mixins import TimestampMixin


class SystemFile(Base, TimestampMixin):
    """One stored file. The owner is polymorphic: (attachment_type, attachment_id, field)."""

    __tablename__ = "system_files"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    disk_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    file_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Owner: table name, primary key and relation name of the owning record
    attachment_type: Mapped[Optional[str]] = mapped_column(String(100), index=True, nullable=True)
    attachment_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)
    field: Mapped[Optional[str]] = mapped_column(String(100), index=True, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
