"""
Observer registry for the events the session emits to its front end.
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Union

logger = logging.getLogger("compendium.events")

Handler = Callable[..., Any]


class EventKind(Enum):
    """Events emitted by the session, with their payloads."""
    CONNECTED = "connected"  # (identity)
    DISCONNECTED = "disconnected"  # ()
    CONNECT_FAILED = "connectfailed"  # (message)
    SYNC = "sync"  # (tech_levels)


class EventEmitter:
    """Registers handlers per event kind and calls them in subscription order."""

    def __init__(self) -> None:
        self._handlers: dict[EventKind, list[Handler]] = defaultdict(list)

    @staticmethod
    def _kind(event: Union[EventKind, str]) -> EventKind:
        return event if isinstance(event, EventKind) else EventKind(event)

    def on(self, event: Union[EventKind, str], handler: Handler) -> Handler:
        """Subscribe handler to event. Returns the handler so it can be used as a decorator."""
        self._handlers[self._kind(event)].append(handler)
        return handler

    def off(self, event: Union[EventKind, str], handler: Handler) -> None:
        """Unsubscribe handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(self._kind(event), [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: Union[EventKind, str], *args: Any) -> int:
        """Call every handler for event. Returns the number of handlers called."""
        kind = self._kind(event)
        handlers = list(self._handlers.get(kind, []))
        for handler in handlers:
            try:
                handler(*args)
            except Exception as exc:
                logger.error(f"Handler for '{kind.value}' failed: {exc}")
        return len(handlers)

    def listener_count(self, event: Union[EventKind, str]) -> int:
        return len(self._handlers.get(self._kind(event), []))
