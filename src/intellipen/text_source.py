"""Text sources: the live, editable text a suggestion is applied to."""

from __future__ import annotations

import logging
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class TextSource(Protocol):
    """Anything holding editable text.

    ``set_text`` must notify the source's own listeners. Sources may also
    expose ``platform`` (host name) and ``kind`` (element kind, e.g.
    "textarea") for context-aware ranking.
    """

    def get_text(self) -> str: ...

    def set_text(self, text: str) -> None: ...


class InMemoryTextSource:
    """Plain string-backed text source with change listeners."""

    def __init__(self, text: str = "", platform: str = "", kind: str = "textarea"):
        self._text = text
        self.platform = platform
        self.kind = kind
        self._listeners: list[Callable[[str], None]] = []

    def get_text(self) -> str:
        return self._text

    def set_text(self, text: str) -> None:
        self._text = text
        for listener in list(self._listeners):
            try:
                listener(text)
            except Exception:
                logger.exception("Text change listener failed")

    def add_listener(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[str], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def __repr__(self) -> str:
        return f"InMemoryTextSource(platform={self.platform!r}, kind={self.kind!r}, len={len(self._text)})"
