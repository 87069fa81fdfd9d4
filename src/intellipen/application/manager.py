"""Applies suggestions to live text sources with per-source undo/redo."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from intellipen import events
from intellipen.application.history import HistoryStack
from intellipen.clients.providers import RewriterCapability, RewriterSession
from intellipen.events import EventEmitter
from intellipen.models.history import (
    ApplyResult,
    BatchItemResult,
    BatchResult,
    HistoryResult,
)
from intellipen.models.suggestion import Suggestion
from intellipen.pipeline.context_analyzer import get_platform_context, normalize_platform
from intellipen.text_source import TextSource

if TYPE_CHECKING:
    from intellipen.learning.preference_learning import UserPreferenceLearning
    from intellipen.models.preference import SuggestionContext

logger = logging.getLogger(__name__)

REWRITE_TYPES = ("tone", "style")

FORMALITY_TONE = {"professional": "more-formal", "casual": "more-casual"}


class SuggestionApplicationManager:
    """Mutates text sources by applying suggestions, one history stack per source.

    Tone and style suggestions are handed to the rewriting capability when one
    is configured; any other type, or a rewriter failure, falls back to
    substituting ``suggestion.replacement`` into the range.
    """

    def __init__(
        self,
        rewriter: RewriterCapability | None = None,
        *,
        learning: UserPreferenceLearning | None = None,
        emitter: EventEmitter | None = None,
        max_history_size: int = 50,
        edit_debounce_ms: int = 500,
    ):
        self.rewriter = rewriter
        self.learning = learning
        self.events = emitter or EventEmitter()
        self.max_history_size = max_history_size
        self.edit_debounce_ms = edit_debounce_ms

        self._histories: dict[TextSource, HistoryStack] = {}
        self._sessions: dict[str, RewriterSession] = {}
        self._edit_timers: dict[TextSource, asyncio.TimerHandle] = {}
        self._listeners: dict[TextSource, object] = {}
        self._writing: TextSource | None = None

    # --- single and batch application ---

    async def apply_suggestion(self, suggestion: Suggestion, source: TextSource) -> ApplyResult:
        try:
            self.record_text_state(source, "before-suggestion")
            current_text = source.get_text()

            if suggestion.type in REWRITE_TYPES:
                new_text = await self._apply_with_rewriter(suggestion, current_text, source)
            else:
                new_text = suggestion.apply_to_text(current_text)

            learning_context = self._learning_context(suggestion, source)
            self._set_text(source, new_text)
            self.record_text_state(source, "after-suggestion", {
                "suggestion_id": suggestion.id,
                "original_text": current_text,
                "new_text": new_text,
            })
            suggestion.mark_as_applied()
        except Exception as exc:
            logger.error("Failed to apply suggestion %s", suggestion.id, exc_info=True)
            self.events.emit(events.SUGGESTION_ERROR, {"suggestion": suggestion, "error": str(exc)})
            return ApplyResult(success=False, error=str(exc))

        if self.learning is not None:
            self.learning.record_action(suggestion, "applied", source, context=learning_context)
        self.events.emit(events.SUGGESTION_APPLIED, {
            "suggestion": suggestion,
            "original_text": current_text,
            "new_text": new_text,
        })
        return ApplyResult(success=True, original_text=current_text, new_text=new_text)

    async def apply_batch(self, suggestions: list[Suggestion], source: TextSource) -> BatchResult:
        """Apply suggestions right to left so earlier ranges keep their offsets.

        Ordering by (start, end) descending means every range still pending
        lies entirely before the one being substituted, so no offset
        correction is needed. Insertions sharing an offset end up in
        ascending replacement order. A member overlapping an already
        accepted one fails on its own without stopping the batch.
        """
        if not suggestions:
            return BatchResult(success=True, results=[])

        self.record_text_state(source, "before-batch")
        # Equal ranges (coincident insertions) are ordered by replacement then id
        # so the outcome never depends on the caller's order
        ordered = sorted(
            suggestions,
            key=lambda s: (s.range.start, s.range.end, s.replacement, s.id),
            reverse=True,
        )

        current_text = source.get_text()
        results: list[BatchItemResult] = []
        accepted: list[Suggestion] = []

        for suggestion in ordered:
            try:
                clash = next((a for a in accepted if a.overlaps_with(suggestion)), None)
                if clash is not None:
                    raise ValueError(f"Overlaps suggestion {clash.id} in the same batch")

                if suggestion.type in REWRITE_TYPES:
                    new_text = await self._apply_with_rewriter(suggestion, current_text, source)
                else:
                    new_text = suggestion.apply_to_text(current_text)
            except Exception as exc:
                logger.error("Failed to apply suggestion %s in batch", suggestion.id, exc_info=True)
                results.append(BatchItemResult(suggestion=suggestion, success=False, error=str(exc)))
                continue

            results.append(BatchItemResult(
                suggestion=suggestion,
                success=True,
                original_text=current_text,
                new_text=new_text,
            ))
            accepted.append(suggestion)
            suggestion.mark_as_applied()
            current_text = new_text

        learning_contexts = [self._learning_context(s, source) for s in accepted]
        self._set_text(source, current_text)
        self.record_text_state(source, "after-batch", {
            "suggestion_ids": [s.id for s in ordered],
            "applied": len(accepted),
        })

        if self.learning is not None:
            for suggestion, context in zip(accepted, learning_contexts):
                self.learning.record_action(suggestion, "applied", source, context=context)

        batch = BatchResult(success=len(accepted) == len(ordered), results=results)
        self.events.emit(events.BATCH_APPLIED, {
            "suggestions": ordered,
            "results": results,
            "has_errors": batch.has_errors,
        })
        return batch

    def _learning_context(self, suggestion: Suggestion, source: TextSource) -> SuggestionContext | None:
        # Taken before the source is rewritten, matching what the suggestion was ranked against
        if self.learning is None:
            return None
        return self.learning.extract_context(source, suggestion)

    def ignore_suggestion(self, suggestion: Suggestion, source: TextSource) -> None:
        if self.learning is not None:
            self.learning.record_action(suggestion, "ignored", source)
        self.events.emit(events.SUGGESTION_IGNORED, {"suggestion": suggestion})

    def dismiss_suggestion(self, suggestion: Suggestion, source: TextSource) -> None:
        if self.learning is not None:
            self.learning.record_action(suggestion, "dismissed", source)
        self.events.emit(events.SUGGESTION_DISMISSED, {"suggestion": suggestion})

    # --- rewriting capability ---

    async def _apply_with_rewriter(self, suggestion: Suggestion, text: str, source: TextSource) -> str:
        session = await self._get_rewriter_session(source)
        if session is None:
            return suggestion.apply_to_text(text)

        start, end = suggestion.range.start, suggestion.range.end
        if end > len(text):
            return suggestion.apply_to_text(text)
        try:
            rewritten = await session.rewrite(text[start:end], self.rewriter_options(suggestion))
        except Exception:
            logger.warning("Rewriter failed for %s, using plain substitution", suggestion.id, exc_info=True)
            return suggestion.apply_to_text(text)
        return text[:start] + rewritten + text[end:]

    async def _get_rewriter_session(self, source: TextSource) -> RewriterSession | None:
        if self.rewriter is None:
            return None

        platform = normalize_platform(getattr(source, "platform", ""))
        platform_context = get_platform_context(platform)
        key = f"{platform}_{platform_context.formality}"
        if key in self._sessions:
            return self._sessions[key]

        try:
            session = await self.rewriter.create({
                "tone": FORMALITY_TONE.get(platform_context.formality, "as-is"),
                "format": "plain-text",
                "length": "as-is",
                "shared_context": f"This is {platform_context.type} content for {platform}",
            })
        except Exception:
            logger.warning("Failed to create rewriter session", exc_info=True)
            return None
        self._sessions[key] = session
        return session

    @staticmethod
    def rewriter_options(suggestion: Suggestion) -> dict:
        options: dict = {"context": suggestion.explanation}
        hints = f"{suggestion.explanation} {suggestion.replacement}".lower()

        if suggestion.type == "tone":
            if "formal" in hints:
                options["tone"] = "more-formal"
            elif "casual" in hints:
                options["tone"] = "more-casual"
        elif suggestion.type == "style":
            if "concise" in hints or "shorter" in hints:
                options["length"] = "shorter"
            elif "expand" in hints or "longer" in hints:
                options["length"] = "longer"
        return options

    # --- history ---

    def get_history(self, source: TextSource) -> HistoryStack:
        if source not in self._histories:
            self._histories[source] = HistoryStack(self.max_history_size)
        return self._histories[source]

    def record_text_state(self, source: TextSource, action: str, metadata: dict | None = None) -> None:
        self.get_history(source).record(source.get_text(), action, metadata)

    def undo(self, source: TextSource) -> HistoryResult:
        state = self.get_history(source).undo()
        if state is None:
            return HistoryResult(success=False, message="Nothing to undo")
        self._set_text(source, state.text)
        self.events.emit(events.UNDO, {"state": state})
        return HistoryResult(success=True, state=state)

    def redo(self, source: TextSource) -> HistoryResult:
        state = self.get_history(source).redo()
        if state is None:
            return HistoryResult(success=False, message="Nothing to redo")
        self._set_text(source, state.text)
        self.events.emit(events.REDO, {"state": state})
        return HistoryResult(success=True, state=state)

    def history_summary(self, source: TextSource) -> dict:
        return self.get_history(source).summary()

    def clear_history(self, source: TextSource) -> None:
        self._histories.pop(source, None)

    # --- organic edit tracking ---

    def is_tracked(self, source: TextSource) -> bool:
        return source in self._histories

    def start_tracking(self, source: TextSource) -> None:
        if not self.is_tracked(source):
            self.record_text_state(source, "start-tracking")
        add_listener = getattr(source, "add_listener", None)
        if add_listener is not None and source not in self._listeners:
            def listener(_text: str, source=source) -> None:
                if self._writing is not source:
                    self.record_user_edit(source)

            add_listener(listener)
            self._listeners[source] = listener

    def stop_tracking(self, source: TextSource) -> None:
        self._histories.pop(source, None)
        timer = self._edit_timers.pop(source, None)
        if timer is not None:
            timer.cancel()
        listener = self._listeners.pop(source, None)
        remove_listener = getattr(source, "remove_listener", None)
        if listener is not None and remove_listener is not None:
            remove_listener(listener)

    def record_user_edit(self, source: TextSource) -> None:
        """Record an organic edit once the source has been quiet for the debounce period."""
        timer = self._edit_timers.pop(source, None)
        if timer is not None:
            timer.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.record_text_state(source, "user-input")
            return

        def flush() -> None:
            self._edit_timers.pop(source, None)
            self.record_text_state(source, "user-input")

        self._edit_timers[source] = loop.call_later(self.edit_debounce_ms / 1000, flush)

    def _set_text(self, source: TextSource, text: str) -> None:
        self._writing = source
        try:
            source.set_text(text)
        finally:
            self._writing = None

    def destroy(self) -> None:
        for timer in self._edit_timers.values():
            timer.cancel()
        self._edit_timers.clear()
        for source in list(self._listeners):
            self.stop_tracking(source)
        self._histories.clear()
        for session in self._sessions.values():
            try:
                session.destroy()
            except Exception:
                logger.warning("Error destroying rewriter session", exc_info=True)
        self._sessions.clear()
