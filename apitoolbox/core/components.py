"""Named component cache shared by controllers.

Components are built once by a registered factory and memoized by name. The
cache is an explicit object: the application owns one instance and hands it
to every controller; tests build their own.
"""

import logging
from collections.abc import Callable
from typing import Any

from apitoolbox.core.exceptions import ComponentNotFoundError

logger = logging.getLogger(__name__)


class ComponentCache:
    def __init__(self, factories: dict[str, Callable[..., Any]] | None = None):
        self._factories: dict[str, Callable[..., Any]] = dict(factories or {})
        self._instances: dict[str, Any] = {}

    def register(self, name: str, factory: Callable[..., Any]) -> None:
        self._factories[name] = factory
        self._instances.pop(name, None)

    def has(self, name: str) -> bool:
        return name in self._factories or name in self._instances

    def get(self, name: str, **properties: Any) -> Any:
        """Return the component *name*, building it on first use.

        Components must be stateless: *properties* only matter on the call
        that builds the instance.
        """
        if name in self._instances:
            return self._instances[name]

        factory = self._factories.get(name)
        component = factory(**properties) if factory else None
        if component is None:
            raise ComponentNotFoundError(name)

        logger.debug("Component built: %s", name)
        self._instances[name] = component
        return component

    def clear(self) -> None:
        self._instances.clear()


components = ComponentCache()
