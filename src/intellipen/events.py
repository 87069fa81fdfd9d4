"""Minimal observer registry for suggestion lifecycle events."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

SUGGESTION_APPLIED = "suggestion-applied"
SUGGESTION_IGNORED = "suggestion-ignored"
SUGGESTION_DISMISSED = "suggestion-dismissed"
SUGGESTION_ERROR = "suggestion-error"
BATCH_APPLIED = "batch-applied"
UNDO = "undo"
REDO = "redo"

Handler = Callable[[dict[str, Any]], None]


class EventEmitter:
    """Dispatches named events to subscribed handlers.

    A failing handler is logged and skipped; it never breaks the operation
    that emitted the event.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def on(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s event failed", event)
