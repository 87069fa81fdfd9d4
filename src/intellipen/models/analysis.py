"""Pydantic models for the result of one analysis pass."""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict, Field

from intellipen.models.suggestion import Suggestion


class AnalysisMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: str = "unknown"
    context: dict = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)
    processing_time: float = 0.0  # milliseconds
    error: str | None = None


class WritingAnalysis(BaseModel):
    """Suggestions found in ``original_text``. Superseded, never mutated, by the next run."""

    model_config = ConfigDict(frozen=True)

    original_text: str
    suggestions: list[Suggestion] = Field(default_factory=list)
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)

    def get_suggestions_by_type(self, suggestion_type: str) -> list[Suggestion]:
        return [s for s in self.suggestions if s.type == suggestion_type]

    def get_suggestions_by_severity(self, severity: str) -> list[Suggestion]:
        return [s for s in self.suggestions if s.severity == severity]

    def get_high_confidence_suggestions(self, threshold: float = 0.8) -> list[Suggestion]:
        return [s for s in self.suggestions if s.confidence >= threshold]

    @property
    def has_errors(self) -> bool:
        return any(s.severity == "error" for s in self.suggestions)

    @property
    def has_suggestions(self) -> bool:
        return bool(self.suggestions)

    @property
    def total_issues(self) -> int:
        return len(self.suggestions)
