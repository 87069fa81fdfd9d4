"""Learns which suggestions a user accepts and re-ranks new ones accordingly."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from datetime import datetime
from typing import Any, Callable

from intellipen.learning.store import KeyValueStore, MemoryStore
from intellipen.models.preference import (
    ACTIONS,
    PreferenceRecord,
    SessionAction,
    SuggestionContext,
    SuggestionPattern,
)
from intellipen.models.suggestion import Suggestion
from intellipen.pipeline.context_analyzer import normalize_platform

logger = logging.getLogger(__name__)

STORAGE_KEY = "intellipen-learning-data"

SCORE_WEIGHTS = {"original": 0.4, "global": 0.3, "contextual": 0.2, "session": 0.1}
NEUTRAL_SCORE = 0.5

SECONDS_PER_DAY = 86400
RECENT_WINDOW_SECONDS = 7 * SECONDS_PER_DAY


def categorize_replacement_length(suggestion: Suggestion) -> str:
    length = len(suggestion.replacement or "")
    if length <= 10:
        return "short"
    if length <= 50:
        return "medium"
    return "long"


def categorize_explanation(explanation: str) -> str:
    lowered = (explanation or "").lower()
    for category in ("grammar", "style", "tone", "clarity"):
        if category in lowered:
            return category
    return "other"


def categorize_text_length(length: int) -> str:
    if length <= 100:
        return "short"
    if length <= 500:
        return "medium"
    if length <= 2000:
        return "long"
    return "very-long"


def categorize_time_of_day(hour: int) -> str:
    if hour < 6:
        return "night"
    if hour < 12:
        return "morning"
    if hour < 18:
        return "afternoon"
    return "evening"


def categorize_position(start: int, text_length: int) -> str:
    # An empty element has no meaningful position; treat it as the start.
    if text_length <= 0:
        return "beginning"
    position = start / text_length
    if position < 0.25:
        return "beginning"
    if position < 0.75:
        return "middle"
    return "end"


class UserPreferenceLearning:
    """Per-user acceptance statistics blended into a personalized score.

    Three estimators contribute: the global rate for a suggestion pattern,
    the rate for that pattern within the current context, and the rate over
    raw actions from the rolling session window. Each stays neutral (0.5)
    until it has ``min_sample_size`` samples. Counts decay by
    ``decay_factor`` per day of inactivity.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        min_sample_size: int = 5,
        decay_factor: float = 0.95,
        session_window_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store if store is not None else MemoryStore()
        self.min_sample_size = min_sample_size
        self.decay_factor = decay_factor
        self.session_window_seconds = session_window_seconds
        self.clock = clock
        self.learning_enabled = True

        self._preferences: dict[str, PreferenceRecord] = {}
        self._contextual: dict[str, dict[str, PreferenceRecord]] = {}
        self._session: list[SessionAction] = []
        self._autosave_task: asyncio.Task | None = None

        self.load()

    # --- feature extraction ---

    @staticmethod
    def extract_pattern(suggestion: Suggestion) -> SuggestionPattern:
        return SuggestionPattern(
            type=suggestion.type,
            severity=suggestion.severity,
            confidence=math.floor(suggestion.confidence * 10 + 0.5) / 10,
            length_category=categorize_replacement_length(suggestion),
            has_replacement=bool(suggestion.replacement),
            explanation_category=categorize_explanation(suggestion.explanation),
        )

    def extract_context(self, element: Any, suggestion: Suggestion) -> SuggestionContext:
        """Bucket the element a suggestion was shown in.

        ``element`` is usually a text source; any of ``platform``, ``kind``
        and ``get_text`` may be missing, and ``None`` is accepted.
        """
        text = element.get_text() if hasattr(element, "get_text") else ""
        hour = datetime.fromtimestamp(self.clock()).hour
        return SuggestionContext(
            platform=normalize_platform(getattr(element, "platform", "")),
            element_type=(getattr(element, "kind", "") or "unknown").lower(),
            text_length_category=categorize_text_length(len(text)),
            time_of_day=categorize_time_of_day(hour),
            suggestion_position=categorize_position(suggestion.range.start, len(text)),
        )

    # --- recording ---

    def record_action(
        self,
        suggestion: Suggestion,
        action: str,
        element: Any = None,
        *,
        context: SuggestionContext | None = None,
    ) -> None:
        """Count one user response; ``context`` overrides bucketing ``element`` as it is now."""
        if not self.learning_enabled:
            return
        if action not in ACTIONS:
            raise ValueError(f"Unknown action {action!r}, expected one of {ACTIONS}")

        now = self.clock()
        pattern = self.extract_pattern(suggestion)
        if context is None:
            context = self.extract_context(element, suggestion)
        pattern_key, context_key = pattern.key, context.key

        record = self._preferences.get(pattern_key)
        if record is None:
            record = PreferenceRecord(pattern=pattern, last_updated=now)
            self._preferences[pattern_key] = record
        self._apply_decay(record, now)
        record.record(action, now)

        contextual = self._contextual.setdefault(context_key, {})
        record = contextual.get(pattern_key)
        if record is None:
            record = PreferenceRecord(last_updated=now)
            contextual[pattern_key] = record
        self._apply_decay(record, now)
        record.record(action, now)

        self._session.append(SessionAction(
            pattern_key=pattern_key, context_key=context_key, action=action, timestamp=now,
        ))
        self._prune_session(now)
        logger.debug("Recorded %s for %s suggestion", action, suggestion.type)

    def _apply_decay(self, record: PreferenceRecord, now: float) -> None:
        days = (now - record.last_updated) / SECONDS_PER_DAY
        if days <= 1:
            return
        factor = self.decay_factor ** days
        record.actions.applied *= factor
        record.actions.ignored *= factor
        record.actions.dismissed *= factor
        record.total *= factor
        record.confidence = record.actions.applied / record.total if record.total > 0 else NEUTRAL_SCORE
        record.last_updated = now

    def _prune_session(self, now: float) -> None:
        cutoff = now - self.session_window_seconds
        self._session = [a for a in self._session if a.timestamp >= cutoff]

    # --- scoring ---

    def _global_score(self, pattern_key: str, now: float) -> float:
        record = self._preferences.get(pattern_key)
        if record is None:
            return NEUTRAL_SCORE
        self._apply_decay(record, now)
        if record.total < self.min_sample_size:
            return NEUTRAL_SCORE
        return record.confidence

    def _contextual_score(self, context_key: str, pattern_key: str, now: float) -> float:
        record = self._contextual.get(context_key, {}).get(pattern_key)
        if record is None:
            return NEUTRAL_SCORE
        self._apply_decay(record, now)
        if record.total < self.min_sample_size:
            return NEUTRAL_SCORE
        return record.confidence

    def _session_score(self, context_key: str, pattern_key: str, now: float) -> float:
        self._prune_session(now)
        matching = [
            a for a in self._session
            if a.pattern_key == pattern_key and a.context_key == context_key
        ]
        if len(matching) < self.min_sample_size:
            return NEUTRAL_SCORE
        applied = sum(1 for a in matching if a.action == "applied")
        return applied / len(matching)

    def get_personalized_score(self, suggestion: Suggestion, element: Any = None) -> float:
        if not self.learning_enabled:
            return suggestion.confidence

        now = self.clock()
        pattern_key = self.extract_pattern(suggestion).key
        context_key = self.extract_context(element, suggestion).key

        score = (
            SCORE_WEIGHTS["original"] * suggestion.confidence
            + SCORE_WEIGHTS["global"] * self._global_score(pattern_key, now)
            + SCORE_WEIGHTS["contextual"] * self._contextual_score(context_key, pattern_key, now)
            + SCORE_WEIGHTS["session"] * self._session_score(context_key, pattern_key, now)
        )
        return min(1.0, max(0.0, score))

    def get_acceptance_rate(self, suggestion: Suggestion) -> float:
        """Stored global acceptance ratio for the suggestion's pattern, ignoring sample size."""
        record = self._preferences.get(self.extract_pattern(suggestion).key)
        if record is None:
            return NEUTRAL_SCORE
        self._apply_decay(record, self.clock())
        return record.confidence

    def filter_suggestions(
        self,
        suggestions: list[Suggestion],
        element: Any = None,
        threshold: float = 0.3,
        max_suggestions: int = 10,
    ) -> list[Suggestion]:
        """Return copies scoring at least ``threshold``, best first, annotated with ``personalized_score``."""
        scored = []
        for suggestion in suggestions:
            score = self.get_personalized_score(suggestion, element)
            if score >= threshold:
                scored.append(suggestion.model_copy(update={"personalized_score": score}))
        scored.sort(key=lambda s: s.personalized_score, reverse=True)
        return scored[:max_suggestions]

    # --- insights ---

    def get_learning_insights(self) -> dict:
        total = sum(r.total for r in self._preferences.values())
        applied = sum(r.actions.applied for r in self._preferences.values())

        by_type: dict[str, dict[str, float]] = {}
        for record in self._preferences.values():
            if record.pattern is None:
                continue
            bucket = by_type.setdefault(record.pattern.type, {"total": 0.0, "applied": 0.0})
            bucket["total"] += record.total
            bucket["applied"] += record.actions.applied

        preferred_types = sorted(
            (
                {
                    "type": type_,
                    "acceptance_rate": data["applied"] / data["total"] if data["total"] > 0 else 0.0,
                    "total_seen": data["total"],
                }
                for type_, data in by_type.items()
            ),
            key=lambda item: item["acceptance_rate"],
            reverse=True,
        )

        preferred_contexts = []
        for context_key, records in self._contextual.items():
            context_total = sum(r.total for r in records.values())
            if context_total <= 0:
                continue
            context = SuggestionContext.from_key(context_key)
            preferred_contexts.append({
                "context": context.model_dump() if context else {},
                "acceptance_rate": sum(r.actions.applied for r in records.values()) / context_total,
                "total_seen": context_total,
            })
        preferred_contexts.sort(key=lambda item: item["acceptance_rate"], reverse=True)

        return {
            "total_suggestions": total,
            "applied_suggestions": applied,
            "preferred_types": preferred_types,
            "preferred_contexts": preferred_contexts,
            "learning_progress": self._learning_progress(),
        }

    def _learning_progress(self) -> dict:
        total = len(self._preferences)
        mature = sum(1 for r in self._preferences.values() if r.total >= self.min_sample_size)
        return {
            "total_patterns": total,
            "mature_patterns": mature,
            "maturity_rate": mature / total if total else 0.0,
            "is_learning": self.learning_enabled,
            "data_quality": self._data_quality(),
        }

    def _data_quality(self) -> str:
        records = list(self._preferences.values())
        if not records:
            return "insufficient"
        avg_samples = sum(r.total for r in records) / len(records)
        now = self.clock()
        recent = sum(1 for r in records if now - r.last_updated < RECENT_WINDOW_SECONDS)
        if avg_samples >= self.min_sample_size and recent > len(records) * 0.5:
            return "good"
        if avg_samples >= self.min_sample_size * 0.5:
            return "fair"
        return "poor"

    # --- control ---

    def enable_learning(self) -> None:
        self.learning_enabled = True

    def disable_learning(self) -> None:
        self.learning_enabled = False

    def clear_learning_data(self) -> None:
        self._preferences.clear()
        self._contextual.clear()
        self._session.clear()
        try:
            self.store.delete(STORAGE_KEY)
        except Exception:
            logger.warning("Failed to clear learning data from storage", exc_info=True)

    def export_learning_data(self) -> dict:
        data = self._snapshot()
        data["insights"] = self.get_learning_insights()
        data["exported_at"] = self.clock()
        return data

    # --- persistence ---

    def _snapshot(self) -> dict:
        return {
            "preferences": [[key, record.model_dump()] for key, record in self._preferences.items()],
            "contextual_preferences": [
                [context_key, [[key, record.model_dump()] for key, record in records.items()]]
                for context_key, records in self._contextual.items()
            ],
        }

    def save(self) -> None:
        data = self._snapshot()
        data["last_saved"] = self.clock()
        try:
            self.store.set(STORAGE_KEY, data)
        except Exception:
            logger.warning("Failed to save learning preferences", exc_info=True)
            return
        logger.debug("Saved %d learned patterns", len(self._preferences))

    def load(self) -> None:
        try:
            data = self.store.get(STORAGE_KEY)
            if not data:
                return
            preferences = {
                key: PreferenceRecord.model_validate(record)
                for key, record in data.get("preferences", [])
            }
            contextual = {
                context_key: {
                    key: PreferenceRecord.model_validate(record) for key, record in records
                }
                for context_key, records in data.get("contextual_preferences", [])
            }
        except Exception:
            logger.warning("Failed to load learning preferences", exc_info=True)
            return
        self._preferences = preferences
        self._contextual = contextual
        logger.debug("Loaded %d learned patterns", len(preferences))

    def start_autosave(self, interval: float = 30.0) -> asyncio.Task:
        """Save periodically on the running event loop until ``close()``."""
        if self._autosave_task is not None and not self._autosave_task.done():
            return self._autosave_task

        async def autosave() -> None:
            while True:
                await asyncio.sleep(interval)
                self.save()

        self._autosave_task = asyncio.get_running_loop().create_task(autosave())
        return self._autosave_task

    def close(self) -> None:
        if self._autosave_task is not None:
            self._autosave_task.cancel()
            self._autosave_task = None
        self.save()
