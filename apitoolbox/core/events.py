"""Notification bus for resource controller extension points.

Listeners are plain callables or coroutine functions. Every non-None return
value is collected and handed back to the controller, which decides what a
response means for that event (extra filters, a rewritten identifier, a
replacement collection).
"""

import inspect
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ApiEvent(str, Enum):
    BEFORE_FILTER = "apitoolbox.api.before_filter"
    BEFORE_SAVE = "apitoolbox.api.before_save"
    AFTER_SAVE = "apitoolbox.api.after_save"
    BEFORE_DESTROY = "apitoolbox.api.before_destroy"
    EXTEND_INDEX = "apitoolbox.api.extend_index"
    EXTEND_LIST = "apitoolbox.api.extend_list"
    BEFORE_SHOW = "apitoolbox.api.before_show"
    EXTEND_SHOW = "apitoolbox.api.extend_show"


Listener = Callable[..., Any]


def _event_name(event: ApiEvent | str) -> str:
    return event.value if isinstance(event, ApiEvent) else event


class EventBus:
    """Application-wide registry of listeners keyed by event name."""

    def __init__(self):
        self._listeners: dict[str, list[tuple[int, Listener]]] = {}

    def listen(self, event: ApiEvent | str, listener: Listener, priority: int = 0) -> None:
        """Register a listener; higher priorities run first."""
        name = _event_name(event)
        listeners = self._listeners.setdefault(name, [])
        listeners.append((priority, listener))
        listeners.sort(key=lambda item: item[0], reverse=True)
        logger.debug("Listener registered for: %s", name)

    def forget(self, event: ApiEvent | str, listener: Listener | None = None) -> None:
        """Remove one listener, or every listener of the event."""
        name = _event_name(event)
        if listener is None:
            self._listeners.pop(name, None)
            return
        self._listeners[name] = [
            (priority, fn) for priority, fn in self._listeners.get(name, []) if fn != listener
        ]

    def has_listeners(self, event: ApiEvent | str) -> bool:
        name = _event_name(event)
        return bool(self._listeners.get(name))

    async def fire(self, event: ApiEvent | str, *args: Any, halt: bool = False) -> list[Any]:
        """Invoke the listeners of *event* in priority order.

        Returns the list of non-None responses. With ``halt=True`` dispatch
        stops at the first non-None response.
        """
        name = _event_name(event)
        responses: list[Any] = []
        for _, listener in list(self._listeners.get(name, [])):
            response = listener(*args)
            if inspect.isawaitable(response):
                response = await response
            if response is None:
                continue
            responses.append(response)
            if halt:
                break
        logger.debug("Fired %s: %d response(s)", name, len(responses))
        return responses


# Shared bus used by the application; controllers accept any EventBus instance.
events = EventBus()
