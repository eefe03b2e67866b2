"""
In-process publish/subscribe registry.
Maps event names to listeners so the transport never calls application code directly.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


def _key(event: str | Enum) -> str:
    return event.value if isinstance(event, Enum) else event


class EventDispatcher:
    """
    Event name → ordered list of handlers.
    Duplicate registrations are kept; each one is invoked.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Handler]] = {}

    def on(self, event: str | Enum, handler: Handler) -> None:
        self._listeners.setdefault(_key(event), []).append(handler)

    def off(self, event: str | Enum, handler: Handler) -> None:
        """Remove the first registration equal to ``handler``; no-op if absent."""
        handlers = self._listeners.get(_key(event))
        if not handlers:
            return
        for index, registered in enumerate(handlers):
            if registered == handler:
                del handlers[index]
                return

    def emit(self, event: str | Enum, payload: Any = None) -> None:
        name = _key(event)
        # Snapshot so handlers may (un)register during dispatch
        for handler in list(self._listeners.get(name, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Error in listener for event %r", name)

    def listener_count(self, event: str | Enum) -> int:
        return len(self._listeners.get(_key(event), ()))

    def clear(self) -> None:
        self._listeners.clear()
