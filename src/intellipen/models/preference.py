"""Pydantic models for learned suggestion preferences."""

from __future__ import annotations

import json
import time

from pydantic import BaseModel, ConfigDict, Field

ACTIONS = ("applied", "ignored", "dismissed")


class SuggestionPattern(BaseModel):
    """Bucketed fingerprint of a suggestion, used as a learning key."""

    model_config = ConfigDict(frozen=True)

    type: str
    severity: str
    confidence: float  # rounded to 0.1
    length_category: str  # "short" | "medium" | "long"
    has_replacement: bool
    explanation_category: str  # "grammar" | "style" | "tone" | "clarity" | "other"

    @property
    def key(self) -> str:
        return json.dumps(self.model_dump(), sort_keys=True)


class SuggestionContext(BaseModel):
    """Bucketed fingerprint of the environment a suggestion appeared in."""

    model_config = ConfigDict(frozen=True)

    platform: str
    element_type: str
    text_length_category: str  # "short" | "medium" | "long" | "very-long"
    time_of_day: str  # "night" | "morning" | "afternoon" | "evening"
    suggestion_position: str  # "beginning" | "middle" | "end"

    @property
    def key(self) -> str:
        return json.dumps(self.model_dump(), sort_keys=True)

    @classmethod
    def from_key(cls, key: str) -> SuggestionContext | None:
        try:
            return cls.model_validate(json.loads(key))
        except (ValueError, TypeError):
            return None


class ActionCounts(BaseModel):
    applied: float = 0.0
    ignored: float = 0.0
    dismissed: float = 0.0


class PreferenceRecord(BaseModel):
    """Accumulated user actions for one pattern (optionally within one context)."""

    pattern: SuggestionPattern | None = None
    actions: ActionCounts = Field(default_factory=ActionCounts)
    total: float = 0.0
    confidence: float = 0.5
    last_updated: float = Field(default_factory=time.time)

    def record(self, action: str, now: float) -> None:
        setattr(self.actions, action, getattr(self.actions, action) + 1)
        self.total += 1
        self.last_updated = now
        self.confidence = self.actions.applied / self.total


class SessionAction(BaseModel):
    """One raw user action kept for the rolling session window."""

    pattern_key: str
    context_key: str
    action: str
    timestamp: float
