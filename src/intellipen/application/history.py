"""Bounded linear undo/redo history for one text source."""

from __future__ import annotations

from intellipen.models.history import HistoryEntry


class HistoryStack:
    """Snapshots with a current-index pointer.

    Recording after an undo discards every redo state. Once more than
    ``max_size`` states are held the oldest is evicted.
    """

    def __init__(self, max_size: int = 50):
        self.max_size = max_size
        self.states: list[HistoryEntry] = []
        self.current_index = -1

    def record(self, text: str, action: str, metadata: dict | None = None) -> bool:
        """Record ``text`` as the newest state. Returns False if it duplicates the current one."""
        current = self.current
        if current is not None and current.text == text:
            return False

        del self.states[self.current_index + 1 :]
        self.states.append(HistoryEntry(text=text, action=action, metadata=metadata or {}))
        self.current_index = len(self.states) - 1

        while len(self.states) > self.max_size:
            self.states.pop(0)
            self.current_index -= 1
        return True

    @property
    def current(self) -> HistoryEntry | None:
        if 0 <= self.current_index < len(self.states):
            return self.states[self.current_index]
        return None

    @property
    def can_undo(self) -> bool:
        return self.current_index > 0

    @property
    def can_redo(self) -> bool:
        return self.current_index < len(self.states) - 1

    def undo(self) -> HistoryEntry | None:
        if not self.can_undo:
            return None
        self.current_index -= 1
        return self.states[self.current_index]

    def redo(self) -> HistoryEntry | None:
        if not self.can_redo:
            return None
        self.current_index += 1
        return self.states[self.current_index]

    def summary(self) -> dict:
        current = self.current
        return {
            "total_states": len(self.states),
            "current_index": self.current_index,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "last_action": current.action if current else "none",
        }

    def __len__(self) -> int:
        return len(self.states)
