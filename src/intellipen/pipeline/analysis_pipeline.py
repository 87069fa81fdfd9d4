"""Text analysis pipeline: debounce, queue, preprocess, validate, merge, prioritize."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections import deque
from dataclasses import dataclass, field

from intellipen.errors import AnalysisCancelledError, AnalysisDroppedError
from intellipen.models.analysis import AnalysisMetadata, WritingAnalysis
from intellipen.models.suggestion import Suggestion, TextRange
from intellipen.pipeline.context_analyzer import ContextAnalyzer
from intellipen.pipeline.engine import WritingEngine

logger = logging.getLogger(__name__)

SEVERITY_WEIGHT = {"error": 3, "warning": 2, "suggestion": 1}
TYPE_WEIGHT = {"grammar": 3, "style": 2, "enhancement": 1}

PUNCTUATION_MAP = {
    "\u2018": "'",
    "\u2019": "'",
    "\u201c": '"',
    "\u201d": '"',
    "\u2013": "-",
    "\u2014": "--",
}

POLITE_CLOSING = " Please let me know if you have any questions."

_SENTENCE_RE = re.compile(r"[^.!?]+")
_CLAUSE_BREAK_RE = re.compile(r",\s+and\s+|;\s+|,\s+")


@dataclass
class PreprocessedText:
    """Normalized text plus, for each of its characters, the raw-text index it came from."""

    text: str
    offsets: list[int]

    def to_raw_range(self, start: int, end: int) -> tuple[int, int]:
        content_end = self.offsets[-1] + 1 if self.offsets else 0
        if start == end:
            raw = self.offsets[start] if start < len(self.offsets) else content_end
            return raw, raw
        return self.offsets[start], self.offsets[end - 1] + 1


def preprocess_text(text: str) -> PreprocessedText:
    """Collapse whitespace runs, trim, and fold typographic punctuation to ASCII."""
    chars: list[str] = []
    offsets: list[int] = []
    space_at: int | None = None

    for i, ch in enumerate(text):
        if ch.isspace():
            if space_at is None:
                space_at = i
            continue
        if space_at is not None:
            if chars:
                chars.append(" ")
                offsets.append(space_at)
            space_at = None
        for out in PUNCTUATION_MAP.get(ch, ch):
            chars.append(out)
            offsets.append(i)

    return PreprocessedText(text="".join(chars), offsets=offsets)


def merge_suggestions(suggestions: list[Suggestion]) -> list[Suggestion]:
    """Greedy left-to-right merge; of two overlapping suggestions the more confident wins."""
    merged: list[Suggestion] = []
    for suggestion in sorted(suggestions, key=lambda s: s.range.start):
        if merged and merged[-1].overlaps_with(suggestion):
            if suggestion.confidence > merged[-1].confidence:
                merged[-1] = suggestion
        else:
            merged.append(suggestion)
    return merged


def prioritize_suggestions(suggestions: list[Suggestion]) -> list[Suggestion]:
    return sorted(
        suggestions,
        key=lambda s: (
            SEVERITY_WEIGHT.get(s.severity, 1),
            TYPE_WEIGHT.get(s.type, 1),
            s.confidence,
        ),
        reverse=True,
    )


@dataclass
class _QueuedRequest:
    text: str
    context: dict
    future: asyncio.Future
    timestamp: float = field(default_factory=time.time)


class TextAnalysisPipeline:
    """Runs at most one analysis at a time; later requests wait in a bounded FIFO queue."""

    def __init__(
        self,
        engine: WritingEngine,
        *,
        context_analyzer: ContextAnalyzer | None = None,
        debounce_ms: int = 300,
        max_queue_size: int = 10,
        min_confidence: float = 0.3,
        long_sentence_words: int = 25,
    ):
        self.engine = engine
        self.context_analyzer = context_analyzer or ContextAnalyzer()
        self.debounce_delay = debounce_ms
        self.max_queue_size = max(1, max_queue_size)
        self.min_confidence = min_confidence
        self.long_sentence_words = long_sentence_words

        self._queue: deque[_QueuedRequest] = deque()
        self._is_processing = False
        self._destroyed = False
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._debounce_future: asyncio.Future | None = None
        self._tasks: set[asyncio.Task] = set()

    async def analyze_debounced(self, text: str, context: dict | None = None) -> WritingAnalysis:
        """Analyze after a quiet period; a newer call cancels this one."""
        if self._destroyed:
            raise AnalysisCancelledError("Pipeline has been destroyed")
        loop = asyncio.get_running_loop()
        self._cancel_debounce("Superseded by a newer analysis request")

        future = loop.create_future()
        self._debounce_future = future
        self._debounce_handle = loop.call_later(
            self.debounce_delay / 1000, self._fire_debounced, future, text, context
        )
        return await future

    async def analyze(self, text: str, context: dict | None = None) -> WritingAnalysis:
        """Analyze ``text`` now, or after the in-flight analysis if one is running."""
        context = context or {}
        if self._destroyed:
            raise AnalysisCancelledError("Pipeline has been destroyed")
        if not text or not text.strip():
            return WritingAnalysis(
                original_text=text or "",
                suggestions=[],
                metadata=AnalysisMetadata(
                    platform=context.get("platform") or "unknown",
                    processing_time=0.0,
                ),
            )

        if self._is_processing:
            return await self._enqueue(text, context)

        self._is_processing = True
        try:
            return await self._run(text, context)
        finally:
            self._release()

    async def batch_analyze(self, texts: list[str], context: dict | None = None) -> list[WritingAnalysis]:
        results = []
        for text in texts:
            try:
                results.append(await self.analyze(text, context))
            except Exception as exc:
                results.append(WritingAnalysis(
                    original_text=text,
                    metadata=AnalysisMetadata(processing_time=0.0, error=str(exc)),
                ))
        return results

    async def _run(self, text: str, context: dict) -> WritingAnalysis:
        platform = context.get("platform") or "unknown"
        start = time.perf_counter()
        try:
            processed = preprocess_text(text)
            result = await self.engine.analyze(processed.text, context)

            candidates = []
            for suggestion in result.suggestions:
                if not self.is_valid_suggestion(suggestion, processed.text):
                    continue
                mapped = self._map_to_raw(suggestion, processed, text)
                if self.is_valid_suggestion(mapped, text):
                    candidates.append(mapped)

            context_type = context.get("type") or result.platform_context.type
            for suggestion in self.generate_enhancement_suggestions(text, context_type):
                if self.is_valid_suggestion(suggestion, text):
                    candidates.append(suggestion)

            suggestions = prioritize_suggestions(merge_suggestions(candidates))
            text_context = self.context_analyzer.analyze_context(text, context.get("platform"))

            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.debug(
                "Analyzed %d chars: %d candidates, %d kept, %.1f ms",
                len(text), len(candidates), len(suggestions), elapsed_ms,
            )
            return WritingAnalysis(
                original_text=text,
                suggestions=suggestions,
                metadata=AnalysisMetadata(
                    platform=platform,
                    context={
                        **result.platform_context.model_dump(),
                        "text_type": text_context.text_type,
                        "readability_score": text_context.metadata.readability_score,
                        "recommendations": [r.model_dump() for r in text_context.recommendations],
                    },
                    processing_time=elapsed_ms,
                    error=result.error,
                ),
            )
        except Exception as exc:
            logger.exception("Text analysis pipeline failed")
            return WritingAnalysis(
                original_text=text,
                metadata=AnalysisMetadata(platform=platform, processing_time=0.0, error=str(exc)),
            )

    def is_valid_suggestion(self, suggestion: Suggestion, text: str) -> bool:
        start, end = suggestion.range.start, suggestion.range.end
        if start < 0 or end > len(text):
            logger.debug("Rejected %s: range %d-%d out of bounds", suggestion.id, start, end)
            return False
        if text[start:end] != suggestion.original:
            logger.debug("Rejected %s: original does not match text", suggestion.id)
            return False
        if suggestion.replacement == suggestion.original:
            return False
        if suggestion.confidence < self.min_confidence:
            return False
        return True

    @staticmethod
    def _map_to_raw(suggestion: Suggestion, processed: PreprocessedText, raw: str) -> Suggestion:
        start, end = processed.to_raw_range(suggestion.range.start, suggestion.range.end)
        return suggestion.model_copy(update={
            "range": TextRange(start=start, end=end),
            "original": raw[start:end],
        })

    def generate_enhancement_suggestions(self, text: str, context_type: str | None) -> list[Suggestion]:
        suggestions = []

        lowered = text.lower()
        if context_type == "email" and "please" not in lowered and "thank" not in lowered:
            insert_at = len(text.rstrip())
            suggestions.append(Suggestion(
                type="enhancement",
                range=TextRange(start=insert_at, end=insert_at),
                original="",
                replacement=POLITE_CLOSING,
                confidence=0.6,
                explanation="Consider adding a polite closing to your email",
                severity="suggestion",
            ))

        long_sentence = self._split_first_long_sentence(text)
        if long_sentence is not None:
            suggestions.append(long_sentence)

        return suggestions

    def _split_first_long_sentence(self, text: str) -> Suggestion | None:
        for match in _SENTENCE_RE.finditer(text):
            sentence = match.group()
            if len(sentence.split()) <= self.long_sentence_words:
                continue

            stripped = sentence.strip()
            start = match.start() + sentence.index(stripped)
            middle = len(stripped) / 2
            breaks = [
                b for b in _CLAUSE_BREAK_RE.finditer(stripped)
                if len(stripped[: b.start()].split()) >= 3 and len(stripped[b.end():].split()) >= 3
            ]
            if not breaks:
                return None
            best = min(breaks, key=lambda b: abs(b.start() - middle))
            head = stripped[: best.start()].rstrip()
            tail = stripped[best.end():]
            replacement = f"{head}. {tail[0].upper()}{tail[1:]}"
            return Suggestion(
                type="enhancement",
                range=TextRange(start=start, end=start + len(stripped)),
                original=stripped,
                replacement=replacement,
                confidence=0.5,
                explanation=(
                    "This sentence is quite long. Consider breaking it into shorter "
                    "sentences for better readability."
                ),
                severity="suggestion",
            )
        return None

    async def _enqueue(self, text: str, context: dict) -> WritingAnalysis:
        loop = asyncio.get_running_loop()
        if len(self._queue) >= self.max_queue_size:
            dropped = self._queue.popleft()
            logger.warning("Analysis queue full (%d); dropping oldest request", self.max_queue_size)
            if not dropped.future.done():
                dropped.future.set_exception(
                    AnalysisDroppedError("Analysis queue is full; request dropped")
                )
        request = _QueuedRequest(text=text, context=context, future=loop.create_future())
        self._queue.append(request)
        return await request.future

    def _release(self) -> None:
        """Mark the pipeline idle and start the next live queued request, if any."""
        self._is_processing = False
        if self._destroyed:
            return
        while self._queue:
            request = self._queue.popleft()
            if request.future.done():
                continue
            self._is_processing = True
            self._track(asyncio.ensure_future(self._run_queued(request)))
            return

    async def _run_queued(self, request: _QueuedRequest) -> None:
        try:
            result = await self._run(request.text, request.context)
        except asyncio.CancelledError:
            request.future.cancel()
            raise
        except Exception as exc:
            if not request.future.done():
                request.future.set_exception(exc)
        else:
            if not request.future.done():
                request.future.set_result(result)
        finally:
            self._release()

    def _fire_debounced(self, future: asyncio.Future, text: str, context: dict | None) -> None:
        self._debounce_handle = None
        self._debounce_future = None
        if future.done():
            return

        def _transfer(task: asyncio.Task) -> None:
            if future.done():
                return
            if task.cancelled():
                future.cancel()
            elif task.exception() is not None:
                future.set_exception(task.exception())
            else:
                future.set_result(task.result())

        task = asyncio.ensure_future(self.analyze(text, context))
        task.add_done_callback(_transfer)
        self._track(task)

    def _cancel_debounce(self, reason: str) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        if self._debounce_future is not None and not self._debounce_future.done():
            self._debounce_future.set_exception(AnalysisCancelledError(reason))
        self._debounce_future = None

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def clear_queue(self) -> None:
        """Reject every queued request with AnalysisCancelledError."""
        while self._queue:
            request = self._queue.popleft()
            if not request.future.done():
                request.future.set_exception(AnalysisCancelledError("Analysis queue cleared"))

    def queue_status(self) -> dict:
        return {
            "is_processing": self._is_processing,
            "queue_length": len(self._queue),
            "max_queue_size": self.max_queue_size,
        }

    def set_debounce_delay(self, delay_ms: int) -> None:
        self.debounce_delay = max(100, min(2000, delay_ms))

    def destroy(self) -> None:
        """Cancel pending debounce and queued work. An in-flight analysis runs to completion."""
        self._destroyed = True
        self._cancel_debounce("Pipeline destroyed")
        self.clear_queue()
