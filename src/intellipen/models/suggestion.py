"""Pydantic models for a single ranged writing suggestion."""

from __future__ import annotations

import time
import uuid

from pydantic import BaseModel, Field, model_validator

from intellipen.errors import InvalidRangeError

SUGGESTION_TYPES = ("grammar", "style", "tone", "clarity", "enhancement")
SEVERITIES = ("error", "warning", "suggestion")


class TextRange(BaseModel):
    """Half-open character range [start, end) into a text snapshot."""

    start: int = Field(ge=0)
    end: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> TextRange:
        if self.end < self.start:
            raise ValueError(f"range end {self.end} precedes start {self.start}")
        return self

    @property
    def length(self) -> int:
        return self.end - self.start


class Suggestion(BaseModel):
    """A proposed edit: replace ``range`` of a text snapshot with ``replacement``."""

    id: str = ""
    type: str  # "grammar" | "style" | "tone" | "clarity" | "enhancement"
    range: TextRange
    original: str = ""
    replacement: str
    confidence: float = Field(ge=0.0, le=1.0)
    explanation: str = ""
    severity: str = "suggestion"  # "error" | "warning" | "suggestion"
    applied: bool = False
    personalized_score: float | None = None

    @model_validator(mode="after")
    def _assign_id(self) -> Suggestion:
        if not self.id:
            millis = int(time.time() * 1000)
            self.id = (
                f"{self.type}_{self.range.start}_{self.range.end}_{millis}"
                f"_{uuid.uuid4().hex[:6]}"
            )
        return self

    def apply_to_text(self, text: str) -> str:
        """Return ``text`` with this suggestion's range replaced.

        Pure: depends only on ``text`` and the suggestion's range and
        replacement. Raises InvalidRangeError when the range does not fit.
        """
        if self.range.end > len(text):
            raise InvalidRangeError(
                f"Range {self.range.start}-{self.range.end} exceeds text length {len(text)}"
            )
        return text[: self.range.start] + self.replacement + text[self.range.end :]

    def overlaps_with(self, other: Suggestion) -> bool:
        return not (
            self.range.end <= other.range.start or other.range.end <= self.range.start
        )

    def mark_as_applied(self) -> None:
        self.applied = True

    def to_json(self) -> dict:
        return self.model_dump()

    @classmethod
    def from_json(cls, data: dict) -> Suggestion:
        return cls.model_validate(data)
