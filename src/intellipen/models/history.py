"""Models for edit history and suggestion-application results."""

from __future__ import annotations

import time

from pydantic import BaseModel, Field

from intellipen.models.suggestion import Suggestion


class HistoryEntry(BaseModel):
    """Snapshot of a text source at one point in its edit history."""

    text: str
    timestamp: float = Field(default_factory=time.time)
    action: str  # "start-tracking" | "user-input" | "before-suggestion" | ...
    metadata: dict = Field(default_factory=dict)


class ApplyResult(BaseModel):
    success: bool
    original_text: str | None = None
    new_text: str | None = None
    error: str | None = None


class BatchItemResult(BaseModel):
    suggestion: Suggestion
    success: bool
    original_text: str | None = None
    new_text: str | None = None
    error: str | None = None


class BatchResult(BaseModel):
    success: bool
    results: list[BatchItemResult] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(not r.success for r in self.results)


class HistoryResult(BaseModel):
    """Outcome of an undo or redo request."""

    success: bool
    state: HistoryEntry | None = None
    message: str | None = None
