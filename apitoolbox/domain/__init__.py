"""Domain package — all ORM models are imported here so create_all() sees them.

Folder intent:
  article.py  — REFERENCE pattern (copy when adding new resources)
  file.py     — Stored files attached to any record (polymorphic owner)
  user.py     — API users resolved from JWT tokens
  mixins.py   — Shared TimestampMixin, SoftDeleteMixin, AttachmentsMixin
"""

from apitoolbox.domain.article import Article
from apitoolbox.domain.file import SystemFile
from apitoolbox.domain.user import User

__all__ = [
    "Article",
    "SystemFile",
    "User",
]
