"""
Root conftest.py — env vars, in-memory collaborators, shared fixtures.

Settings are read at import time, so the environment is prepared before
anything from apitoolbox is imported. Controller tests run against the
in-memory fakes below; repository tests get a fresh SQLite database.
"""

import os
import tempfile

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-for-signing-api-tokens")
os.environ.setdefault("UPLOAD_DIR", os.path.join(tempfile.gettempdir(), "apitoolbox-test-uploads"))

import uuid
from collections.abc import Iterable, Mapping
from typing import Any

import jwt
import pytest
from pydantic import Field
from sqlalchemy.ext.asyncio import async_sessionmaker

from apitoolbox.controllers.attachments import AttachmentDeclaration
from apitoolbox.controllers.base import ResourceController
from apitoolbox.controllers.request import ApiRequest, Upload
from apitoolbox.core.components import ComponentCache
from apitoolbox.core.events import EventBus
from apitoolbox.core.pagination import Page
from apitoolbox.core.security import JwtTokenValidator
from apitoolbox.db.base import build_engine, init_db
from apitoolbox.schemas.common import CamelModel

SECRET = os.environ["JWT_SECRET"]


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------

class Record:
    """Plain entity with attribute access, as an ORM row would have."""

    def __init__(self, **fields: Any):
        self.id = None
        self.title = None
        self.status = "draft"
        self.owner_id = None
        self.__dict__.update(fields)


class FakeCollection:
    def __init__(self, items: Iterable[Any]):
        self.items = list(items)
        self.calls: list[tuple] = []

    def sort(self, column: str, direction: str = "asc"):
        self.calls.append(("sort", column, direction))
        self.items.sort(key=lambda item: getattr(item, column, None) or "", reverse=direction == "desc")
        return self

    def filter(self, filters: Mapping[str, Any]):
        self.calls.append(("filter", dict(filters)))
        for key, value in filters.items():
            if value is None or isinstance(value, Mapping):
                continue
            allowed = list(value) if isinstance(value, (list, tuple)) else [value]
            self.items = [
                item for item in self.items
                if not hasattr(item, key) or getattr(item, key) in allowed
            ]
        return self

    def intersect(self, keys: Iterable[Any]):
        keys = list(keys)
        self.calls.append(("intersect", keys))
        self.items = [item for item in self.items if item.id in keys]
        return self

    async def paginate(self, page_size: int, page: int = 1) -> Page:
        start = (page - 1) * page_size
        return Page(items=self.items[start:start + page_size], total=len(self.items), page=page, limit=page_size)

    async def values(self) -> list[Any]:
        return list(self.items)


class MinimalCollection:
    """A collection with no optional capabilities."""

    def __init__(self, items: Iterable[Any]):
        self.items = list(items)

    async def paginate(self, page_size: int, page: int = 1) -> Page:
        return Page(items=self.items[:page_size], total=len(self.items), page=page, limit=page_size)

    async def values(self) -> list[Any]:
        return list(self.items)


class FakeSavepoint:
    def __init__(self, store: "FakeStore"):
        self.store = store

    async def commit(self) -> None:
        self.store.savepoints.append("commit")

    async def rollback(self) -> None:
        self.store.savepoints.append("rollback")


class FakeStore:
    primary_key = "id"

    def __init__(self, records: Iterable[Record] = (), relations: Iterable[str] = ()):
        self.records: dict[Any, Record] = {getattr(record, self.primary_key): record for record in records}
        self.relations = set(relations)
        # (owner key, field) -> attached files
        self.attached: dict[tuple[Any, str], list[Any]] = {}
        # outcome of every savepoint, in order
        self.savepoints: list[str] = []
        self.saves = 0
        self.deleted: list[Any] = []
        self.save_result = True
        self.delete_result = True

    def new(self) -> Record:
        return Record()

    async def get(self, pk: Any) -> Record | None:
        return self.records.get(pk)

    async def find_by(self, column: str, value: Any) -> Record | None:
        for record in self.records.values():
            if getattr(record, column, None) == value:
                return record
        return None

    async def find_pk(self, column: str, value: Any) -> Any | None:
        record = await self.find_by(column, value)
        return getattr(record, self.primary_key) if record is not None else None

    def fill(self, entity: Record, data: Mapping[str, Any]) -> Record:
        for key, value in data.items():
            if key != self.primary_key:
                setattr(entity, key, value)
        return entity

    async def save(self, entity: Record) -> bool:
        self.saves += 1
        if not self.save_result:
            return False
        if entity.id is None:
            entity.id = len(self.records) + 1
        self.records[entity.id] = entity
        return True

    async def delete(self, entity: Record) -> bool:
        if not self.delete_result:
            return False
        self.deleted.append(entity.id)
        self.records.pop(entity.id, None)
        return True

    def has_relation(self, entity: Any, name: str) -> bool:
        return name in self.relations

    async def load_relation(self, entity: Any, name: str) -> list[Any]:
        return list(self.attached.get((getattr(entity, self.primary_key), name), []))

    def collection(self) -> FakeCollection:
        return FakeCollection(self.records.values())

    async def savepoint(self) -> FakeSavepoint:
        return FakeSavepoint(self)


class FakeFile:
    def __init__(self, upload: Upload):
        self.id = uuid.uuid4().hex
        self.file_name = upload.filename
        self.sort_order = 0


class FakeFileStore:
    def __init__(self, store: FakeStore):
        self.store = store
        self.created: list[FakeFile] = []
        self.deleted: list[FakeFile] = []

    async def create(self, upload: Upload) -> FakeFile:
        file = FakeFile(upload)
        self.created.append(file)
        return file

    async def attach(self, entity: Any, field: str, file: FakeFile, *, owner_id: Any, sort_order: int = 0) -> None:
        file.sort_order = sort_order
        self.store.attached.setdefault((owner_id, field), []).append(file)

    async def delete(self, file: FakeFile) -> None:
        self.deleted.append(file)
        for files in self.store.attached.values():
            if file in files:
                files.remove(file)


class FakeUser:
    def __init__(self, id: str, groups: list[str] | None = None, is_active: bool = True):
        self.id = id
        self.groups = groups or []
        self.is_active = is_active


class FakeUsers:
    def __init__(self, *users: FakeUser):
        self.users = {user.id: user for user in users}
        self.lookups = 0

    async def get_active(self, user_id: Any) -> FakeUser | None:
        self.lookups += 1
        user = self.users.get(str(user_id))
        return user if user is not None and user.is_active else None


# ---------------------------------------------------------------------------
# A small resource used across controller tests
# ---------------------------------------------------------------------------

class NoteOut(CamelModel):
    id: int
    title: str | None = None
    status: str
    owner_id: str | None = None


class NoteIn(CamelModel):
    title: str = Field(min_length=1)
    status: str = "draft"


class NoteController(ResourceController):
    sort_column = "title"
    sort_direction = "asc"
    schema = NoteOut
    create_schema = NoteIn
    attachments = AttachmentDeclaration(single="preview_image", multiple="images")

    async def has_permission(self, action: str) -> bool:
        user = await self.current_user()
        if action == "store":
            return True
        return "admins" in user.groups or self.entity.owner_id == user.id

    async def extend_save(self) -> None:
        if not self.exists:
            self.entity.owner_id = (await self.current_user()).id


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def make_token(user_id: str, secret: str = SECRET, **claims: Any) -> str:
    return jwt.encode({"sub": user_id, **claims}, secret, algorithm="HS256")


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def validator():
    return JwtTokenValidator(SECRET)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def cache():
    return ComponentCache()


@pytest.fixture
def alice():
    return FakeUser("alice")


@pytest.fixture
def admin():
    return FakeUser("root", groups=["admins"])


@pytest.fixture
def users(alice, admin):
    return FakeUsers(alice, admin)


@pytest.fixture
def store():
    return FakeStore(
        [
            Record(id=1, title="beta", status="active", owner_id="alice"),
            Record(id=2, title="alpha", status="active", owner_id="bob"),
            Record(id=3, title="gamma", status="archived", owner_id="alice"),
            Record(id=4, title="delta", status="active", owner_id="bob"),
        ],
        relations=["preview_image", "images"],
    )


@pytest.fixture
def files(store):
    return FakeFileStore(store)


@pytest.fixture
def make_controller(store, files, users, validator, bus, cache):
    """Factory fixture: build a controller for one request."""

    def _make(
        controller_class: type[ResourceController] = NoteController,
        *,
        query: dict | None = None,
        data: dict | None = None,
        uploads: dict[str, list[Upload]] | None = None,
        user: str | None = "alice",
        headers: dict[str, str] | None = None,
        **overrides: Any,
    ) -> ResourceController:
        query = query or {}
        request_headers = auth_headers(user) if user else {}
        request_headers.update(headers or {})
        request = ApiRequest(
            query=query,
            data={**query, **(data or {})},
            files=uploads or {},
            headers=request_headers,
        )
        collaborators = dict(
            repository=store, files=files, users=users,
            token_validator=validator, events=bus, components=cache,
        )
        collaborators.update(overrides)
        return controller_class(request, **collaborators)

    return _make


@pytest.fixture
def upload():
    def _make(name: str = "photo.png", content: bytes = b"\x89PNG-bytes") -> Upload:
        return Upload(filename=name, content_type="image/png", content=content)
    return _make


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite://")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    factory = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session
