"""Sort/filter resolution and application for resource collections.

``resolve_spec`` turns raw query parameters into a :class:`FilterSortSpec`;
``apply_spec`` narrows and orders a collection with it. Both are best-effort:
malformed JSON and missing collection capabilities are never errors.

A ``filters`` string is JSON-decoded when it decodes to a mapping. Any other
value (plain text, broken JSON, a JSON list) has no per-field meaning, so it
resolves to no filters at all rather than being passed on as a string; the
``extend`` hook and ``before_filter`` listeners still run on the empty mapping.
"""

import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Filter keys that steer pagination and never reach per-field filters
PAGINATION_KEYS = frozenset({"page", "per_page"})

FilterFunction = Callable[[Any, Any], Any]
FilterRegistry = Mapping[str, FilterFunction]


class SortSpec(BaseModel):
    column: str = ""
    direction: Literal["asc", "desc"] = "asc"


class FilterSortSpec(BaseModel):
    sort: SortSpec = Field(default_factory=SortSpec)
    filters: dict[str, Any] = Field(default_factory=dict)


def _decode(value: str) -> Any:
    try:
        return json.loads(value)
    except ValueError:
        return None


def _direction(value: Any, default: str) -> str:
    value = str(value).lower() if value is not None else ""
    return value if value in ("asc", "desc") else default


def _merge_sort(sort: SortSpec, value: Any) -> SortSpec:
    """Merge a raw ``sort`` value (mapping, JSON string or column) over *sort*."""
    if isinstance(value, str):
        decoded = _decode(value)
        if isinstance(decoded, Mapping):
            value = decoded
        elif value:
            column, _, direction = value.partition("|")
            return SortSpec(column=column, direction=_direction(direction, sort.direction))
        else:
            return sort

    if not isinstance(value, Mapping):
        return sort
    return SortSpec(
        column=str(value.get("column") or sort.column),
        direction=_direction(value.get("direction"), sort.direction),
    )


def _read_filters(query: Mapping[str, Any]) -> dict[str, Any]:
    filters = query.get("filters")
    if not filters:
        # Fall back to the whole query; sort was read already.
        return {key: value for key, value in query.items() if key not in ("sort", "filters")}

    if isinstance(filters, str):
        decoded = _decode(filters)
        if decoded is not None:
            filters = decoded
    if not isinstance(filters, Mapping):
        logger.debug("Ignoring non-mapping filters: %r", filters)
        return {}
    return dict(filters)


async def resolve_spec(
    query: Mapping[str, Any],
    default_sort: SortSpec,
    extend: Callable[[dict[str, Any]], Any] | None = None,
    before_filter: Callable[[dict[str, Any]], Awaitable[list[Any]]] | None = None,
) -> FilterSortSpec:
    """Build the sort/filter spec for one request.

    :param query: parsed query parameters (``sort`` and ``filters`` may be
        mappings or JSON strings)
    :param default_sort: the controller's default ordering
    :param extend: hook mutating the filter mapping in place
    :param before_filter: notification returning partial filter mappings,
        merged in order (last write wins)
    """
    sort = _merge_sort(default_sort, query.get("sort", {}))
    filters = _read_filters(query)

    if extend is not None:
        extend(filters)

    if before_filter is not None:
        for extra in await before_filter(filters):
            if not extra or not isinstance(extra, Mapping):
                continue
            filters.update(extra)

    # A sort inside the filters overrides the query-level sort
    if "sort" in filters:
        sort = _merge_sort(sort, filters.pop("sort"))

    return FilterSortSpec(sort=sort, filters=filters)


async def apply_spec(collection: Any, spec: FilterSortSpec, registry: FilterRegistry | None = None) -> Any:
    """Order and narrow *collection* according to *spec*.

    ``registry`` maps filter keys to functions called as ``fn(collection,
    value)``. A mapping result intersects the collection with its keys; any
    other result replaces the collection.
    """
    if collection is None:
        return collection

    sort = getattr(collection, "sort", None)
    if callable(sort) and spec.sort.column:
        collection = sort(spec.sort.column, spec.sort.direction)

    if not spec.filters:
        return collection

    generic_filter = getattr(collection, "filter", None)
    if callable(generic_filter):
        collection = generic_filter(spec.filters)

    for name, value in spec.filters.items():
        if name in PAGINATION_KEYS:
            continue
        filter_fn = (registry or {}).get(name)
        if filter_fn is None:
            continue

        result = filter_fn(collection, value)
        if inspect.isawaitable(result):
            result = await result

        if isinstance(result, Mapping):
            intersect = getattr(collection, "intersect", None)
            if callable(intersect):
                collection = intersect(list(result.keys()))
            else:
                logger.warning("Filter %r returned keys but the collection cannot intersect", name)
        elif result is not None:
            collection = result

    return collection
