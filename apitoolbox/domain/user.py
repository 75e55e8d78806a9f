"""SQLAlchemy ORM model for API users (authenticated through JWT)."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import Boolean, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from apitoolbox.db.base import Base
from apitoolbox.domain.mixins import TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Group codes, e.g. ["editors", "admins"]
    groups: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
