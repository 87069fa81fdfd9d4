"""Data models for the writing-intelligence core."""

from intellipen.models.analysis import AnalysisMetadata, WritingAnalysis
from intellipen.models.context import (
    PlatformContext,
    Recommendation,
    TextContext,
    TextMetrics,
)
from intellipen.models.history import (
    ApplyResult,
    BatchItemResult,
    BatchResult,
    HistoryEntry,
    HistoryResult,
)
from intellipen.models.preference import (
    ActionCounts,
    PreferenceRecord,
    SessionAction,
    SuggestionContext,
    SuggestionPattern,
)
from intellipen.models.suggestion import Suggestion, TextRange

__all__ = [
    "ActionCounts",
    "AnalysisMetadata",
    "ApplyResult",
    "BatchItemResult",
    "BatchResult",
    "HistoryEntry",
    "HistoryResult",
    "PlatformContext",
    "PreferenceRecord",
    "Recommendation",
    "SessionAction",
    "Suggestion",
    "SuggestionContext",
    "SuggestionPattern",
    "TextContext",
    "TextMetrics",
    "TextRange",
    "WritingAnalysis",
]
