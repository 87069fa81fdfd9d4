"""Tests for style reply parsers."""

from intellipen.pipeline.parsers import (
    STYLE_CONFIDENCE,
    JsonSuggestionParser,
    RegexSuggestionParser,
)

TEXT = "Ths is fine, and it works."


class TestRegexSuggestionParser:
    def test_parses_formatted_lines(self):
        response = (
            "Here are my suggestions:\n"
            '[7-11] Original: "fine" | Suggestion: "great" | Reason: "Stronger word"\n'
            '[13-16] Original: "and" | Suggestion: "so" | Reason: "Better flow"\n'
        )

        suggestions = RegexSuggestionParser().parse(response, TEXT)

        assert [(s.range.start, s.range.end) for s in suggestions] == [(7, 11), (13, 16)]
        assert suggestions[0].replacement == "great"
        assert suggestions[0].explanation == "Stronger word"
        assert all(s.type == "style" and s.confidence == STYLE_CONFIDENCE for s in suggestions)

    def test_out_of_range_skipped(self):
        response = '[20-90] Original: "works" | Suggestion: "runs" | Reason: "x"'
        assert RegexSuggestionParser().parse(response, TEXT) == []

    def test_reversed_range_skipped(self):
        response = '[11-7] Original: "fine" | Suggestion: "great" | Reason: "x"'
        assert RegexSuggestionParser().parse(response, TEXT) == []

    def test_unformatted_reply(self):
        assert RegexSuggestionParser().parse("Looks good to me!", TEXT) == []

    def test_none_reply(self):
        assert RegexSuggestionParser().parse(None, TEXT) == []


class TestJsonSuggestionParser:
    def test_parses_array(self):
        response = '[{"start": 7, "end": 11, "original": "fine", "suggestion": "great", "reason": "x"}]'

        [suggestion] = JsonSuggestionParser().parse(response, TEXT)

        assert suggestion.original == "fine"
        assert suggestion.replacement == "great"

    def test_parses_wrapped_and_fenced(self):
        response = (
            "```json\n"
            '{"suggestions": [{"start": "13", "end": "16", "original": "and", "suggestion": "so"}]}\n'
            "```"
        )

        [suggestion] = JsonSuggestionParser().parse(response, TEXT)

        assert (suggestion.range.start, suggestion.range.end) == (13, 16)
        assert suggestion.explanation == ""

    def test_skips_malformed_items(self):
        response = (
            '[{"start": 7}, "junk", {"start": "x", "end": 3},'
            ' {"start": 7, "end": 11, "original": "fine", "suggestion": "great"}]'
        )

        suggestions = JsonSuggestionParser().parse(response, TEXT)

        assert [s.replacement for s in suggestions] == ["great"]

    def test_non_json_reply(self):
        assert JsonSuggestionParser().parse("No changes needed.", TEXT) == []

    def test_unexpected_shape(self):
        assert JsonSuggestionParser().parse('{"result": "ok"}', TEXT) == []
