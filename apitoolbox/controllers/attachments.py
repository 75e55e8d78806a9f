"""File-attachment synchronization for resource write operations.

A controller declares which fields are file relations; after the entity is
saved, :class:`AttachmentSynchronizer` reconciles each field with the files
of the current request:

- a valid upload replaces whatever was attached before;
- no upload plus a clearing input (see :class:`AttachmentPolicy`) deletes the
  attached files;
- otherwise the field is left alone.

Deleted files are gone for good (row and bytes) once the transaction commits.
"""

import logging
from collections.abc import Iterable
from enum import Enum
from typing import Any

from pydantic import BaseModel, field_validator

from apitoolbox.controllers.interfaces import EntityStore, FileStore
from apitoolbox.controllers.request import ApiRequest, Upload

logger = logging.getLogger(__name__)


class AttachmentPolicy(str, Enum):
    # No upload and a missing or empty input value clears the field.
    CLEAR_ON_ABSENT = "clear_on_absent"
    # No upload clears the field only when the input explicitly sends an empty value.
    EXPLICIT_CLEAR = "explicit_clear"


class AttachmentDeclaration(BaseModel):
    """Which entity fields hold one file (``single``) or many (``multiple``)."""

    single: tuple[str, ...] = ()
    multiple: tuple[str, ...] = ()

    model_config = {"frozen": True}

    @field_validator("single", "multiple", mode="before")
    @classmethod
    def _wrap(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return value

    @property
    def fields(self) -> tuple[str, ...]:
        return self.single + self.multiple

    def __bool__(self) -> bool:
        return bool(self.single or self.multiple)


class AttachmentSynchronizer:
    def __init__(
        self,
        store: EntityStore,
        files: FileStore,
        policy: AttachmentPolicy = AttachmentPolicy.CLEAR_ON_ABSENT,
    ):
        self.store = store
        self.files = files
        self.policy = AttachmentPolicy(policy)

    def should_clear(self, request: ApiRequest, field: str) -> bool:
        if self.policy is AttachmentPolicy.EXPLICIT_CLEAR:
            return field in request.data and not request.data[field]
        return not request.data.get(field)

    async def _delete_all(self, attached: Iterable[Any]) -> int:
        deleted = 0
        for file in attached:
            await self.files.delete(file)
            deleted += 1
        return deleted

    async def _store_all(self, entity: Any, field: str, uploads: list[Upload]) -> int:
        owner_id = getattr(entity, self.store.primary_key)
        stored = 0
        for position, upload in enumerate(uploads):
            file = await self.files.create(upload)
            await self.files.attach(entity, field, file, owner_id=owner_id, sort_order=position)
            stored += 1
        return stored

    async def sync_single(self, entity: Any, field: str, request: ApiRequest) -> bool:
        if not self.store.has_relation(entity, field):
            logger.debug("Entity has no %r relation, skipping", field)
            return False

        attached = await self.store.load_relation(entity, field)
        if request.has_file(field):
            upload = request.file(field)
            if upload is None or not upload.is_valid:
                logger.warning("Discarding invalid upload for %r", field)
                return False
            deleted = await self._delete_all(attached)
            stored = await self._store_all(entity, field, [upload])
            return bool(deleted or stored)

        if self.should_clear(request, field):
            return bool(await self._delete_all(attached))
        return False

    async def sync_multiple(self, entity: Any, field: str, request: ApiRequest) -> bool:
        if not self.store.has_relation(entity, field):
            logger.debug("Entity has no %r relation, skipping", field)
            return False

        attached = await self.store.load_relation(entity, field)
        if request.has_file(field):
            uploads = [upload for upload in request.file_list(field) if upload.is_valid]
            if not uploads:
                return False
            deleted = await self._delete_all(attached)
            stored = await self._store_all(entity, field, uploads)
            return bool(deleted or stored)

        if self.should_clear(request, field):
            return bool(await self._delete_all(attached))
        return False

    async def sync(self, entity: Any, declaration: AttachmentDeclaration, request: ApiRequest) -> bool:
        """Reconcile every declared field; True when any file was deleted or stored."""
        changed = False
        for field in declaration.single:
            changed = await self.sync_single(entity, field, request) or changed
        for field in declaration.multiple:
            changed = await self.sync_multiple(entity, field, request) or changed
        if changed:
            logger.info("Attachments updated for %s", type(entity).__name__)
        return changed
