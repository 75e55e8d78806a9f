"""Collaborator protocols the resource controller core depends on.

The SQLAlchemy-backed implementations live in :mod:`apitoolbox.repositories`
and :mod:`apitoolbox.services.files`; tests use in-memory fakes.
"""

from collections.abc import Mapping
from typing import Any, Protocol

from apitoolbox.controllers.request import ApiRequest, Upload
from apitoolbox.core.pagination import Page


class Collection(Protocol):
    """Queryable set of resources.

    Only ``paginate`` and ``values`` are required. ``sort``, ``filter`` and
    ``intersect`` are optional capabilities, looked up at runtime.
    """

    async def paginate(self, page_size: int, page: int = 1) -> Page:
        ...

    async def values(self) -> list[Any]:
        ...


class Savepoint(Protocol):
    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


class EntityStore(Protocol):
    primary_key: str

    def new(self) -> Any:
        ...

    async def get(self, pk: Any) -> Any | None:
        ...

    async def find_by(self, column: str, value: Any) -> Any | None:
        ...

    async def find_pk(self, column: str, value: Any) -> Any | None:
        ...

    def fill(self, entity: Any, data: Mapping[str, Any]) -> Any:
        ...

    async def save(self, entity: Any) -> bool:
        ...

    async def delete(self, entity: Any) -> bool:
        ...

    def has_relation(self, entity: Any, name: str) -> bool:
        ...

    async def load_relation(self, entity: Any, name: str) -> list[Any]:
        ...

    def collection(self) -> Collection:
        ...

    async def savepoint(self) -> Savepoint:
        """Open a nested transaction the caller commits or rolls back."""
        ...


class FileStore(Protocol):
    async def create(self, upload: Upload) -> Any:
        """Persist the uploaded bytes as a public file record."""
        ...

    async def attach(self, entity: Any, field: str, file: Any, *, owner_id: Any, sort_order: int = 0) -> None:
        """Link *file* to *entity* (identified by *owner_id*) under *field*."""
        ...

    async def delete(self, file: Any) -> None:
        ...


class TokenValidator(Protocol):
    def get_token(self, request: ApiRequest) -> str | None:
        ...

    def authenticate(self, token: str) -> Any | None:
        """Return the user id carried by a valid token."""
        ...


class UserProvider(Protocol):
    async def get_active(self, user_id: Any) -> Any | None:
        ...
