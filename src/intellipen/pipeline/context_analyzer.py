"""Platform- and text-type-aware context for analysis and rewriting."""

from __future__ import annotations

import hashlib
import re
from collections import OrderedDict
from urllib.parse import urlparse

from intellipen.models.context import (
    PlatformContext,
    Recommendation,
    TextContext,
    TextMetrics,
)

PLATFORM_CONTEXTS: dict[str, PlatformContext] = {
    "gmail.com": PlatformContext(type="email", formality="professional"),
    "linkedin.com": PlatformContext(type="social", formality="professional"),
    "notion.so": PlatformContext(type="document", formality="neutral"),
    "docs.google.com": PlatformContext(type="document", formality="neutral"),
}
DEFAULT_PLATFORM_CONTEXT = PlatformContext(type="general", formality="neutral")

PLATFORM_RULES: dict[str, dict] = {
    "gmail.com": {
        "suggested_tone": "formal",
        "patterns": {
            "greeting": re.compile(r"^(hi|hello|dear)", re.IGNORECASE),
            "closing": re.compile(r"(best regards|sincerely|thank you)", re.IGNORECASE),
        },
        "include_greeting": True,
        "include_closing": True,
    },
    "linkedin.com": {"suggested_tone": "neutral", "patterns": {}, "keep_concise": True},
    "notion.so": {"suggested_tone": "neutral", "patterns": {}},
    "docs.google.com": {"suggested_tone": "neutral", "patterns": {}},
}

# (patterns, weight) per text type; score = matched / total * weight
TEXT_TYPE_PATTERNS: dict[str, tuple[list[re.Pattern], float]] = {
    "email": (
        [
            re.compile(r"^(dear|hi|hello)", re.IGNORECASE),
            re.compile(r"(best regards|sincerely|thank you|cheers)", re.IGNORECASE),
            re.compile(r"@\w+\.\w+"),
            re.compile(r"subject:", re.IGNORECASE),
        ],
        0.8,
    ),
    "social_post": (
        [
            re.compile(r"#\w+"),
            re.compile(r"@\w+"),
            re.compile(r"https?://\S+"),
            re.compile(r"\A.{1,280}\Z"),
        ],
        0.7,
    ),
    "article": (
        [
            re.compile(r"^#+\s", re.MULTILINE),
            re.compile(r"\n\n"),
            re.compile(r"\A.{500,}\Z", re.DOTALL),
            re.compile(r"\b(introduction|conclusion|furthermore|however|therefore)\b", re.IGNORECASE),
        ],
        0.6,
    ),
    "message": (
        [
            re.compile(r"\A.{1,160}\Z"),
            re.compile(r"[!?]{2,}"),
            re.compile(r"\b(lol|omg|btw|fyi)\b", re.IGNORECASE),
        ],
        0.5,
    ),
}

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_WORD_RE = re.compile(r"\b[a-z]+\b")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]+")


def normalize_platform(platform: str | None) -> str:
    """Reduce a URL or host name to a bare lowercase host without ``www.``."""
    if not platform:
        return "unknown"
    if "://" in platform:
        platform = urlparse(platform).hostname or platform
    platform = re.sub(r"^www\.", "", platform)
    return platform.lower()


def get_platform_context(platform: str | None) -> PlatformContext:
    """Look up the writing context for a host; bare names get ``.com`` appended."""
    if not platform:
        return DEFAULT_PLATFORM_CONTEXT.model_copy()
    hostname = normalize_platform(platform)
    if "." not in hostname:
        hostname = f"{hostname}.com"
    return PLATFORM_CONTEXTS.get(hostname, DEFAULT_PLATFORM_CONTEXT).model_copy()


def get_sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]


def count_words(text: str) -> int:
    return len(text.split())


def readability_score(text: str) -> float:
    """Simplified Flesch reading ease, clamped to [0, 100]."""
    words = count_words(text)
    sentences = len(get_sentences(text))
    if words == 0 or sentences == 0:
        return 100.0

    score = 206.835 - 1.015 * (words / sentences) - 84.6 * _average_syllables(text)
    return max(0.0, min(100.0, score))


def _average_syllables(text: str) -> float:
    words = _WORD_RE.findall(text.lower())
    if not words:
        return 1.0
    total = 0
    for word in words:
        syllables = len(_VOWEL_GROUP_RE.findall(word)) or 1
        if word.endswith("e"):
            syllables -= 1
        total += max(syllables, 1)
    return total / len(words)


def detect_text_type(text: str) -> str:
    best_match = "general"
    highest = 0.0
    for text_type, (patterns, weight) in TEXT_TYPE_PATTERNS.items():
        matched = sum(1 for p in patterns if p.search(text))
        score = matched / len(patterns) * weight
        if score > highest:
            highest = score
            best_match = text_type
    return best_match


class ContextAnalyzer:
    """Builds a :class:`TextContext` for a text on a platform, with a small cache."""

    def __init__(self, max_cache_size: int = 200):
        self.max_cache_size = max_cache_size
        self._cache: OrderedDict[str, TextContext] = OrderedDict()

    def analyze_context(self, text: str, platform: str | None = None) -> TextContext:
        key = self._cache_key(text, platform)
        if key in self._cache:
            self._cache.move_to_end(key)
            return self._cache[key]

        normalized = normalize_platform(platform)
        platform_context = PLATFORM_CONTEXTS.get(normalized)
        rules = PLATFORM_RULES.get(normalized)

        context = TextContext(
            platform=normalized,
            text_type=detect_text_type(text),
            metadata=TextMetrics(
                text_length=len(text),
                word_count=count_words(text),
                sentence_count=len(get_sentences(text)),
                readability_score=readability_score(text),
            ),
        )
        if platform_context is not None and rules is not None:
            context.formality = platform_context.formality
            context.suggested_tone = rules["suggested_tone"]
            context.recommendations = self._recommendations(text, rules)

        self._cache[key] = context
        if len(self._cache) > self.max_cache_size:
            self._cache.popitem(last=False)
        return context

    @staticmethod
    def _recommendations(text: str, rules: dict) -> list[Recommendation]:
        recommendations = []
        patterns = rules.get("patterns", {})

        greeting = patterns.get("greeting")
        if greeting and rules.get("include_greeting") and not greeting.search(text):
            recommendations.append(Recommendation(
                type="structure",
                message="Consider adding a greeting to make your message more personal",
                priority="low",
            ))
        closing = patterns.get("closing")
        if closing and rules.get("include_closing") and not closing.search(text):
            recommendations.append(Recommendation(
                type="structure",
                message="Consider adding a polite closing to your message",
                priority="low",
            ))

        if readability_score(text) < 60:
            recommendations.append(Recommendation(
                type="readability",
                message="Consider simplifying your language for better readability",
                priority="medium",
            ))

        if any(count_words(s) > 25 for s in get_sentences(text)):
            recommendations.append(Recommendation(
                type="clarity",
                message="Some sentences are quite long. Consider breaking them up for clarity",
                priority="medium",
            ))

        if rules.get("keep_concise") and len(text) > 280:
            recommendations.append(Recommendation(
                type="length",
                message="Consider keeping your message more concise for this platform",
                priority="high",
            ))
        return recommendations

    @staticmethod
    def _cache_key(text: str, platform: str | None) -> str:
        digest = hashlib.sha1(text[:100].encode("utf-8")).hexdigest()[:12]
        return f"{platform}_{digest}_{len(text)}"

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> dict:
        return {"size": len(self._cache), "keys": list(self._cache.keys())}
