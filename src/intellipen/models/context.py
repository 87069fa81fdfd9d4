"""Pydantic models for platform and text context."""

from __future__ import annotations

from pydantic import BaseModel, Field


class PlatformContext(BaseModel):
    type: str = "general"  # "email" | "social" | "document" | "general"
    formality: str = "neutral"  # "professional" | "neutral" | "casual"


class Recommendation(BaseModel):
    type: str  # "structure" | "readability" | "clarity" | "length"
    message: str
    priority: str  # "low" | "medium" | "high"


class TextMetrics(BaseModel):
    text_length: int
    word_count: int
    sentence_count: int
    readability_score: float


class TextContext(BaseModel):
    """Context-aware description of a piece of text on a platform."""

    platform: str
    text_type: str = "general"
    formality: str = "neutral"
    suggested_tone: str = "neutral"
    recommendations: list[Recommendation] = Field(default_factory=list)
    metadata: TextMetrics
