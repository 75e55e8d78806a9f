"""Local-disk file store for resource attachments.

Uploaded bytes are written under ``settings.upload_dir`` with a random disk
name; the SystemFile row keeps the original name, type and size and, once
attached, its owner.

Disk changes follow the session's transaction: bytes written inside a
transaction (or savepoint) that rolls back are removed again, and deleted
files are only unlinked once the session commits.

Rule: controllers reach this module only through the FileStore protocol.
"""


import logging
import uuid
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction

from apitoolbox.controllers.request import Upload
from apitoolbox.core.config import settings
from apitoolbox.domain.file import SystemFile

logger = logging.getLogger(__name__)


def _within(transaction: SessionTransaction | None, ancestor: SessionTransaction) -> bool:
    while transaction is not None:
        if transaction is ancestor:
            return True
        transaction = transaction.parent
    return False


class LocalFileStore:
    def __init__(self, session: AsyncSession, root: str | Path | None = None):
        self._session = session
        self.root = Path(root or settings.upload_dir)
        # (transaction, path) pairs waiting for the outcome of their transaction
        self._written: list[tuple[SessionTransaction, Path]] = []
        self._doomed: list[tuple[SessionTransaction, Path]] = []

        sync_session = session.sync_session
        event.listen(sync_session, "after_commit", self._after_commit)
        event.listen(sync_session, "after_soft_rollback", self._after_rollback)
        event.listen(sync_session, "after_transaction_end", self._after_transaction_end)

    def path(self, file: SystemFile) -> Path:
        # Spread files over sub-directories: ab/cd/abcdef....png
        return self.root / file.disk_name[:2] / file.disk_name[2:4] / file.disk_name

    async def create(self, upload: Upload) -> SystemFile:
        """Write the upload to disk and record it as a public file."""
        suffix = Path(upload.filename).suffix.lower()
        file = SystemFile(
            disk_name=f"{uuid.uuid4().hex}{suffix}",
            file_name=upload.filename,
            content_type=upload.content_type,
            file_size=upload.size,
            is_public=True,
        )
        self._session.add(file)
        await self._session.flush()

        target = self.path(file)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(upload.content)
        self._written.append((self._current_transaction(), target))
        logger.info("Stored file %s (%d bytes) as %s", file.file_name, file.file_size, file.disk_name)
        return file

    async def attach(
        self, entity: Any, field: str, file: SystemFile, *, owner_id: Any, sort_order: int = 0,
    ) -> None:
        file.attachment_type = entity.__tablename__
        file.attachment_id = str(owner_id)
        file.field = field
        file.sort_order = sort_order
        await self._session.flush()

    async def delete(self, file: SystemFile) -> None:
        """Remove the row now and the bytes on disk when the session commits."""
        path = self.path(file)
        await self._session.delete(file)
        await self._session.flush()
        self._doomed.append((self._current_transaction(), path))
        logger.info("Deleted file %s (%s)", file.file_name, file.disk_name)

    # ------------------------------------------------------------------
    # Transaction outcome
    # ------------------------------------------------------------------

    def _current_transaction(self) -> SessionTransaction | None:
        sync_session = self._session.sync_session
        return sync_session.get_nested_transaction() or sync_session.get_transaction()

    def _after_commit(self, session: Session) -> None:
        if session.in_nested_transaction():
            # released savepoint; its parent decides
            return
        for _, path in self._doomed:
            path.unlink(missing_ok=True)
        if self._doomed:
            logger.debug("Unlinked %d deleted file(s)", len(self._doomed))
        self._written.clear()
        self._doomed.clear()

    def _after_rollback(self, session: Session, previous_transaction: SessionTransaction) -> None:
        self._discard(previous_transaction)

    def _after_transaction_end(self, session: Session, transaction: SessionTransaction) -> None:
        # A root transaction closed without commit never made it to the database
        if transaction.parent is None:
            self._discard(transaction)

    def _discard(self, transaction: SessionTransaction) -> None:
        written = [path for tx, path in self._written if _within(tx, transaction)]
        for path in written:
            path.unlink(missing_ok=True)
        if written:
            logger.info("Removed %d file(s) written in a rolled back transaction", len(written))

        self._written = [(tx, path) for tx, path in self._written if not _within(tx, transaction)]
        self._doomed = [(tx, path) for tx, path in self._doomed if not _within(tx, transaction)]
