"""Strategies that turn a style provider's reply into ranged suggestions."""

from __future__ import annotations

import logging
import re
from typing import Protocol

from pydantic import ValidationError

from intellipen.models.suggestion import Suggestion, TextRange
from intellipen.utils.json_parser import extract_json

logger = logging.getLogger(__name__)

STYLE_CONFIDENCE = 0.7


class SuggestionParser(Protocol):
    """Parses a free-form provider reply into style suggestions for ``text``."""

    format_instructions: str

    def parse(self, response: str, text: str) -> list[Suggestion]: ...


def _style_suggestion(
    start: int, end: int, original: str, replacement: str, reason: str, text: str
) -> Suggestion | None:
    if start < 0 or end < start or end > len(text):
        return None
    try:
        return Suggestion(
            type="style",
            range=TextRange(start=start, end=end),
            original=original,
            replacement=replacement,
            confidence=STYLE_CONFIDENCE,
            explanation=reason,
            severity="suggestion",
        )
    except ValidationError:
        return None


class RegexSuggestionParser:
    """Parses lines of the form
    ``[START-END] Original: "..." | Suggestion: "..." | Reason: "..."``.
    """

    PATTERN = re.compile(
        r'\[(\d+)-(\d+)\]\s*Original:\s*"([^"]+)"\s*\|\s*'
        r'Suggestion:\s*"([^"]+)"\s*\|\s*Reason:\s*"([^"]+)"'
    )

    format_instructions = (
        'Format each suggestion as: [START_INDEX-END_INDEX] Original: "text" | '
        'Suggestion: "improved text" | Reason: "explanation"'
    )

    def parse(self, response: str, text: str) -> list[Suggestion]:
        suggestions = []
        for match in self.PATTERN.finditer(response or ""):
            start, end = int(match.group(1)), int(match.group(2))
            suggestion = _style_suggestion(
                start, end, match.group(3), match.group(4), match.group(5), text
            )
            if suggestion is not None:
                suggestions.append(suggestion)
        return suggestions


class JsonSuggestionParser:
    """Parses a JSON array (optionally wrapped in ``{"suggestions": [...]}``)."""

    format_instructions = (
        "Respond with a JSON array only. Each element must be an object with "
        'keys "start" and "end" (character offsets into the text, end exclusive), '
        '"original" (the exact text at that range), "suggestion" (the improved '
        'text) and "reason" (a short explanation).'
    )

    def parse(self, response: str, text: str) -> list[Suggestion]:
        try:
            data = extract_json(response or "")
        except ValueError:
            logger.warning("Style reply contained no JSON")
            return []

        if isinstance(data, dict):
            data = data.get("suggestions", [])
        if not isinstance(data, list):
            return []

        suggestions = []
        for item in data:
            if not isinstance(item, dict):
                continue
            try:
                start, end = int(item["start"]), int(item["end"])
            except (KeyError, TypeError, ValueError):
                continue
            suggestion = _style_suggestion(
                start,
                end,
                str(item.get("original", "")),
                str(item.get("suggestion", "")),
                str(item.get("reason", "")),
                text,
            )
            if suggestion is not None:
                suggestions.append(suggestion)
        return suggestions
