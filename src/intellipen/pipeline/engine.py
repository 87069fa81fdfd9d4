"""Writing engine: fans text out to grammar and style providers."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from collections import OrderedDict
from dataclasses import dataclass

from intellipen.clients.providers import GrammarProvider, ProofreadResult, StyleProvider
from intellipen.models.context import PlatformContext
from intellipen.models.suggestion import Suggestion, TextRange
from intellipen.pipeline.context_analyzer import get_platform_context
from intellipen.pipeline.parsers import RegexSuggestionParser, SuggestionParser

logger = logging.getLogger(__name__)

GRAMMAR_CONFIDENCE = 0.9

CONTEXT_DESCRIPTIONS = {
    "email": "professional email communication",
    "social": "social media post",
    "document": "document or article",
    "general": "general text",
}

FORMALITY_DESCRIPTIONS = {
    "professional": "professional and formal",
    "neutral": "clear and neutral",
    "casual": "casual and friendly",
}


@dataclass
class EngineResult:
    """Raw provider output for one text, before validation and merging."""

    suggestions: list[Suggestion]
    platform_context: PlatformContext
    error: str | None = None


class WritingEngine:
    """Runs the grammar and style providers concurrently with isolated failures."""

    def __init__(
        self,
        grammar: GrammarProvider | None = None,
        style: StyleProvider | None = None,
        *,
        parser: SuggestionParser | None = None,
        cache_size: int = 100,
    ):
        self.grammar = grammar
        self.style = style
        self.parser = parser or RegexSuggestionParser()
        self.cache_size = cache_size
        self._cache: OrderedDict[str, list[Suggestion]] = OrderedDict()

    async def analyze(self, text: str, context: dict | None = None) -> EngineResult:
        context = context or {}
        platform_context = get_platform_context(context.get("platform"))
        if not text or not text.strip():
            return EngineResult(suggestions=[], platform_context=platform_context)

        key = self._cache_key(text, context)
        if key in self._cache:
            self._cache.move_to_end(key)
            logger.debug("Analysis cache hit (%d chars)", len(text))
            return EngineResult(
                suggestions=[s.model_copy(deep=True) for s in self._cache[key]],
                platform_context=platform_context,
            )

        names: list[str] = []
        calls = []
        if self.grammar is not None:
            names.append("grammar")
            calls.append(self.analyze_grammar(text))
        if self.style is not None:
            names.append("style")
            calls.append(self.analyze_style(text, platform_context))
        if not calls:
            return EngineResult(
                suggestions=[],
                platform_context=platform_context,
                error="No analysis providers available",
            )

        results = await asyncio.gather(*calls, return_exceptions=True)

        suggestions: list[Suggestion] = []
        failures: list[str] = []
        for name, result in zip(names, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.error("%s analysis failed", name.capitalize(), exc_info=result)
                failures.append(f"{name}: {result}")
            else:
                suggestions.extend(result)

        if len(failures) == len(calls):
            return EngineResult(
                suggestions=[],
                platform_context=platform_context,
                error="; ".join(failures),
            )

        if not failures:
            self._cache[key] = [s.model_copy(deep=True) for s in suggestions]
            if len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return EngineResult(suggestions=suggestions, platform_context=platform_context)

    async def analyze_grammar(self, text: str) -> list[Suggestion]:
        raw = await self.grammar.proofread(text)
        result = raw if isinstance(raw, ProofreadResult) else ProofreadResult.model_validate(raw or {})

        suggestions = []
        for correction in result.corrections:
            start, end = correction.start_index, correction.end_index
            if start < 0 or end < start or end > len(text):
                logger.debug("Dropping out-of-range correction %d-%d", start, end)
                continue
            suggestions.append(Suggestion(
                type="grammar",
                range=TextRange(start=start, end=end),
                original=text[start:end],
                replacement=correction.replacement,
                confidence=GRAMMAR_CONFIDENCE,
                explanation=correction.explanation or "Grammar or spelling correction",
                severity="error",
            ))
        return suggestions

    async def analyze_style(self, text: str, platform_context: PlatformContext) -> list[Suggestion]:
        prompt = self.build_style_prompt(text, platform_context)
        response = await self.style.write(
            prompt,
            context=f"Analyzing {platform_context.type} content for {platform_context.formality} tone",
        )
        return self.parser.parse(response, text)

    def build_style_prompt(self, text: str, platform_context: PlatformContext) -> str:
        description = CONTEXT_DESCRIPTIONS.get(platform_context.type, "general text")
        formality = FORMALITY_DESCRIPTIONS.get(platform_context.formality, "neutral")
        return f"""Analyze this {description} for style improvements. The tone should be {formality}.

Text: "{text}"

Provide specific suggestions for:
1. Clarity and readability
2. Tone appropriateness
3. Conciseness
4. Word choice improvements

Character offsets count from 0 at the first character of the text.
{self.parser.format_instructions}"""

    @staticmethod
    def _cache_key(text: str, context: dict) -> str:
        payload = text + json.dumps(context, sort_keys=True, default=str)
        return f"{len(text)}_{hashlib.sha1(payload.encode('utf-8')).hexdigest()}"

    def clear_cache(self) -> None:
        self._cache.clear()
