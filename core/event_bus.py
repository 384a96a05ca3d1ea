"""Simple in-process event bus for memory lifecycle notifications."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

EventHandler = Callable[[str, dict[str, Any]], None]

logger = logging.getLogger("ame.events")

WILDCARD = "*"

MEMORY_CREATED = "memory.created"
MEMORY_USED = "memory.used"
MEMORY_REINFORCED = "memory.reinforced"
MEMORY_CONTRADICTED = "memory.contradicted"
MEMORY_SUPERSEDED = "memory.superseded"
MEMORY_MERGED = "memory.merged"
MEMORY_DECAYED = "memory.decayed"
MEMORY_RECALCULATED = "memory.recalculated"
MEMORY_PRUNED = "memory.pruned"
MEMORY_EXPIRED = "memory.expired"
TASK_COMPLETED = "task.completed"
TASK_FAILED = "task.failed"


class EventBus:
    """Dispatches events to subscribers by event name.

    Handlers registered under ``"*"`` receive every event. A failing handler
    is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register a callback for an event."""
        self._handlers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_name: str, payload: dict[str, Any]) -> int:
        """Emit an event to all subscribers. Returns the number of handlers called."""
        handlers = [*self._handlers.get(event_name, []), *self._handlers.get(WILDCARD, [])]
        for handler in handlers:
            try:
                handler(event_name, payload)
            except Exception:
                logger.exception("Event handler failed for %s.", event_name)
        return len(handlers)
