"""Subscription-based notifications for library changes."""

import threading
from collections import defaultdict
from typing import Any, Callable

from loguru import logger

UPDATING_CHANGED = "updating_changed"
DATABASE_CHANGED = "database_changed"
MEDIA_ART_CHANGED = "media_art_changed"
TABLE_CREATED = "table_created"

EVENT_NAMES = (UPDATING_CHANGED, DATABASE_CHANGED, MEDIA_ART_CHANGED, TABLE_CREATED)


class EventEmitter:
    """Fans named events out to subscribed callbacks.

    Callbacks run on the emitting thread. A failing callback is logged and
    the remaining subscribers are still called.
    """

    def __init__(self):
        self._listeners: dict[str, list[Callable[..., Any]]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event: str, callback: Callable[..., Any]) -> Callable[[], None]:
        """Register ``callback`` for ``event``.

        Returns:
            Function that removes the subscription again
        """
        if event not in EVENT_NAMES:
            raise ValueError(f"Unknown event: {event}")
        with self._lock:
            self._listeners[event].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners[event]:
                    self._listeners[event].remove(callback)

        return unsubscribe

    def emit(self, event: str, *args: Any) -> None:
        with self._lock:
            listeners = list(self._listeners[event])
        for callback in listeners:
            try:
                callback(*args)
            except Exception as e:
                logger.opt(exception=e).warning(f"Listener for {event} failed")
