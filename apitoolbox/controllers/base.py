"""Base resource controller — generic CRUD actions over an entity store.

How to add a resource:
  1. class MyController(ResourceController):
         schema = MyOut                       # response shaping
         create_schema = MyCreate             # validation (update_schema optional)
         attachments = AttachmentDeclaration(single=["cover"], multiple=["photos"])
         filters = {"status": by_status}      # per-field filter functions
  2. Override has_permission() and the extend_* hooks as needed
  3. Expose it with apitoolbox.routers.resource.resource_router()

One controller instance serves exactly one request. Every public action
returns a :class:`Result`; application errors raised inside an action are
turned into a failure result by :func:`operation`. Write actions (store,
update, destroy) run inside a savepoint, see :func:`transactional`.
"""

import functools
import logging
import secrets
from collections.abc import Callable
from typing import Any, ClassVar

from pydantic import BaseModel, ValidationError

from apitoolbox.controllers.attachments import (
    AttachmentDeclaration,
    AttachmentPolicy,
    AttachmentSynchronizer,
)
from apitoolbox.controllers.filters import (
    FilterFunction,
    FilterSortSpec,
    SortSpec,
    apply_spec,
    resolve_spec,
)
from apitoolbox.controllers.interfaces import (
    Collection,
    EntityStore,
    FileStore,
    TokenValidator,
    UserProvider,
)
from apitoolbox.controllers.request import ApiRequest, normalize_input
from apitoolbox.core.components import ComponentCache, components as default_components
from apitoolbox.core.config import settings
from apitoolbox.core.events import ApiEvent, EventBus, events as default_events
from apitoolbox.core.exceptions import (
    AppException,
    PermissionsDeniedError,
    RecordNotFoundError,
    RecordsNotFoundError,
    ValidationFailedError,
)
from apitoolbox.core.messages import Alert, tr
from apitoolbox.core.pagination import page_number, page_size
from apitoolbox.core.response import Result, paginated
from apitoolbox.core.security import CurrentUserResolver, default_token_validator

logger = logging.getLogger(__name__)


def operation(func: Callable) -> Callable:
    """Run a controller action, converting AppException into a failure Result."""

    @functools.wraps(func)
    async def wrapper(self: "ResourceController", *args: Any, **kwargs: Any) -> Result:
        try:
            return await func(self, *args, **kwargs)
        except AppException as exc:
            logger.warning(
                "%s.%s failed: %s (%s)",
                type(self).__name__, func.__name__, exc.code, exc.status_code,
            )
            return Result.from_exception(exc)

    return wrapper


def transactional(func: Callable) -> Callable:
    """Run a write action inside a savepoint of the repository's session.

    The savepoint is kept when the action succeeds and rolled back when it
    returns a failure Result or raises, so nothing half-written reaches the
    request's commit.
    """

    @functools.wraps(func)
    async def wrapper(self: "ResourceController", *args: Any, **kwargs: Any) -> Result:
        if self.repository is None:
            return await func(self, *args, **kwargs)

        savepoint = await self.repository.savepoint()
        try:
            result = await func(self, *args, **kwargs)
        except Exception:
            await savepoint.rollback()
            raise
        if result.success:
            await savepoint.commit()
        else:
            await savepoint.rollback()
            logger.info("%s.%s rolled back (%s)", type(self).__name__, func.__name__, result.error_code)
        return result

    return wrapper


class ResourceController:
    # Column the ORM uses as primary key
    primary_key: ClassVar[str] = "id"
    # Column used to resolve path identifiers; defaults to the primary key
    lookup_key: ClassVar[str | None] = None

    # Pagination and default ordering; None falls back to settings
    items_per_page: int | None = None
    sort_column: ClassVar[str | None] = None
    sort_direction: ClassVar[str | None] = None

    attachments: ClassVar[AttachmentDeclaration] = AttachmentDeclaration()
    attachment_policy: ClassVar[AttachmentPolicy | None] = None

    # filter key -> fn(collection, value)
    filters: ClassVar[dict[str, FilterFunction]] = {}

    # Response shaping (show_schema also shapes store/update results)
    schema: ClassVar[type[BaseModel] | None] = None
    index_schema: ClassVar[type[BaseModel] | None] = None
    list_schema: ClassVar[type[BaseModel] | None] = None
    show_schema: ClassVar[type[BaseModel] | None] = None

    # Validation
    create_schema: ClassVar[type[BaseModel] | None] = None
    update_schema: ClassVar[type[BaseModel] | None] = None

    csrf_token_factory: ClassVar[Callable[[], str]] = staticmethod(lambda: secrets.token_urlsafe(32))

    def __init__(
        self,
        request: ApiRequest,
        *,
        repository: EntityStore | None = None,
        files: FileStore | None = None,
        users: UserProvider | None = None,
        token_validator: TokenValidator | None = None,
        events: EventBus | None = None,
        components: ComponentCache | None = None,
    ):
        self.request = request
        self.repository = repository
        self.files = files
        self.events = events if events is not None else default_events
        self.components = components if components is not None else default_components
        self.auth = CurrentUserResolver(
            request,
            token_validator if token_validator is not None else default_token_validator(),
            users,
        )

        if self.items_per_page is None:
            self.items_per_page = settings.items_per_page

        self.data: dict[str, Any] = normalize_input(request.data, self.attachments.fields)
        self.collection: Any = None
        self.entity: Any = None
        self.item: Any = None
        self.exists = False

    # ------------------------------------------------------------------
    # Extension hooks (no-ops; override in subclasses)
    # ------------------------------------------------------------------

    async def extend_index(self) -> None:
        pass

    async def extend_list(self) -> None:
        pass

    async def extend_show(self) -> None:
        pass

    async def extend_save(self) -> None:
        pass

    async def extend_destroy(self) -> None:
        pass

    def extend_filters(self, filters: dict[str, Any]) -> None:
        """Mutate the resolved filters in place before they are applied."""

    async def has_permission(self, action: str) -> bool:
        return True

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    @operation
    async def index(self) -> Result:
        self.collection = await self.apply_filters()
        await self.extend_index()
        self.collection = await self._fire_replacing(ApiEvent.EXTEND_INDEX, self.collection)

        page = await self.collection.paginate(self.items_per_page, page_number(self.request.query))
        schema = self.index_schema or self.schema
        return Result.ok(paginated(page, [self.transform(item, schema) for item in page.items]))

    @operation
    async def list(self) -> Result:
        self.collection = await self.apply_filters()
        await self.extend_list()
        self.collection = await self._fire_replacing(ApiEvent.EXTEND_LIST, self.collection)

        items = await self.collection.values()
        schema = self.list_schema or self.schema
        return Result.ok([self.transform(item, schema) for item in items])

    @operation
    async def show(self, value: Any) -> Result:
        value = await self._fire_replacing(ApiEvent.BEFORE_SHOW, value)

        pk = await self.get_item_id(value)
        if pk is None or pk == "":
            raise RecordNotFoundError()

        self.item = await self.get_item(pk)
        await self.extend_show()
        await self.events.fire(ApiEvent.EXTEND_SHOW, self.item)

        return Result.ok(self.transform(self.item, self.show_schema or self.schema))

    @transactional
    @operation
    async def store(self) -> Result:
        await self.current_user()

        self.entity = self.repository.new()
        self.exists = False

        if not await self.has_permission("store"):
            raise PermissionsDeniedError()

        await self.events.fire(ApiEvent.BEFORE_SAVE, self.entity, self.data)
        self.data = self.validate(self.data)

        return await self.saved_result(
            await self.save(), Alert.RECORD_CREATED, Alert.RECORD_NOT_CREATED, status_code=201,
        )

    @transactional
    @operation
    async def update(self, value: Any) -> Result:
        await self.current_user()

        self.entity = await self.repository.find_by(self.lookup_column, value)
        if self.entity is None:
            raise RecordNotFoundError()
        self.exists = True

        if not await self.has_permission("update"):
            raise PermissionsDeniedError()

        await self.events.fire(ApiEvent.BEFORE_SAVE, self.entity, self.data)
        self.data = self.validate(self.data)

        return await self.saved_result(await self.save(), Alert.RECORD_UPDATED, Alert.RECORD_NOT_UPDATED)

    @transactional
    @operation
    async def destroy(self, value: Any) -> Result:
        await self.current_user()

        self.entity = await self.repository.find_by(self.lookup_column, value)
        if self.entity is None:
            raise RecordNotFoundError()

        if not await self.has_permission("destroy"):
            raise PermissionsDeniedError()

        await self.events.fire(ApiEvent.BEFORE_DESTROY, self.entity)
        await self.extend_destroy()

        if await self.repository.delete(self.entity):
            return Result.ok(message=tr(Alert.RECORD_DELETED))
        return Result.fail(tr(Alert.RECORD_NOT_DELETED), error_code=Alert.RECORD_NOT_DELETED.value)

    @operation
    async def check(self) -> Result:
        """Authentication state of the caller and the groups they belong to."""
        user = await self.current_user()
        return Result.ok({"group": list(getattr(user, "groups", None) or [])})

    @operation
    async def csrf_token(self) -> Result:
        return Result.ok({"token": self.csrf_token_factory()})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def lookup_column(self) -> str:
        return self.lookup_key or self.primary_key

    async def current_user(self) -> Any:
        return await self.auth.resolve()

    async def is_backend(self) -> bool:
        return await self.auth.is_backend()

    def component(self, name: str, **properties: Any) -> Any:
        return self.components.get(name, **properties)

    def make_collection(self) -> Collection | None:
        return self.repository.collection() if self.repository is not None else None

    async def filter_spec(self) -> FilterSortSpec:
        default_sort = SortSpec(
            column=self.sort_column or settings.default_sort_column,
            direction=self.sort_direction or settings.default_sort_direction,
        )

        async def before_filter(filters: dict[str, Any]) -> list[Any]:
            return await self.events.fire(ApiEvent.BEFORE_FILTER, filters)

        return await resolve_spec(
            self.request.query,
            default_sort,
            extend=self.extend_filters,
            before_filter=before_filter,
        )

    async def apply_filters(self) -> Any:
        collection = self.make_collection()
        if collection is None:
            raise RecordsNotFoundError()

        spec = await self.filter_spec()
        collection = await apply_spec(collection, spec, self.filters)
        self.items_per_page = page_size(self.data, self.items_per_page)
        return collection

    async def get_item_id(self, value: Any) -> Any:
        if self.lookup_column == self.primary_key:
            return value
        return await self.repository.find_pk(self.lookup_column, value)

    async def get_item(self, pk: Any) -> Any:
        item = await self.repository.get(pk)
        if item is None:
            raise RecordNotFoundError()
        return item

    def transform(self, item: Any, schema: type[BaseModel] | None) -> Any:
        if schema is None:
            return item
        return schema.model_validate(item).model_dump(mode="json", by_alias=True)

    def validate(self, data: dict[str, Any]) -> dict[str, Any]:
        """Validate input against the create/update schema and return the clean fields."""
        schema = self.create_schema
        if self.exists and self.update_schema is not None:
            schema = self.update_schema
        if schema is None:
            return dict(data)

        try:
            model = schema.model_validate(data)
        except ValidationError as exc:
            errors = [
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in exc.errors()
            ]
            raise ValidationFailedError(errors) from exc
        return model.model_dump(exclude_unset=True)

    async def saved_result(
        self, saved: bool, done: Alert, not_done: Alert, status_code: int = 200,
    ) -> Result:
        """Reload the saved entity and wrap it; an unsaved entity has nothing to reload."""
        if not saved:
            return Result.fail(tr(not_done), error_code=not_done.value)
        item = await self.get_item(getattr(self.entity, self.primary_key))
        return Result.ok(
            self.transform(item, self.show_schema or self.schema),
            message=tr(done),
            status_code=status_code,
        )

    async def save(self) -> bool:
        self.repository.fill(self.entity, self.data)
        await self.extend_save()
        return await self.save_and_attach()

    async def save_and_attach(self) -> bool:
        saved = await self.attach_files()
        await self.events.fire(ApiEvent.AFTER_SAVE, self.entity, self.data)
        return saved

    async def attach_files(self) -> bool:
        """Save the entity, sync its attachments, and save again if files changed."""
        saved = await self.repository.save(self.entity)
        if not saved or not self.attachments:
            return saved
        if self.files is None:
            logger.warning("%s declares attachments but has no file store", type(self).__name__)
            return saved

        policy = self.attachment_policy or AttachmentPolicy(settings.attachment_policy)
        synchronizer = AttachmentSynchronizer(self.repository, self.files, policy)
        if await synchronizer.sync(self.entity, self.attachments, self.request):
            saved = await self.repository.save(self.entity)
        return saved

    async def _fire_replacing(self, event: ApiEvent, value: Any) -> Any:
        """Fire *event* with *value*; the last listener response replaces it."""
        responses = await self.events.fire(event, value)
        return responses[-1] if responses else value
