"""Tests for pulling JSON out of model replies."""

import pytest

from intellipen.utils.json_parser import extract_json

CORRECTIONS = {"corrections": [{"original": "tomorow", "replacement": "tomorrow"}]}


class TestExtractJson:
    @pytest.mark.parametrize(
        "reply",
        [
            '{"corrections": [{"original": "tomorow", "replacement": "tomorrow"}]}',
            'Sure!\n```json\n{"corrections": [{"original": "tomorow", "replacement": "tomorrow"}]}\n```\nDone.',
            '```\n{"corrections": [{"original": "tomorow", "replacement": "tomorrow"}]}\n```',
            'Found one: {"corrections": [{"original": "tomorow", "replacement": "tomorrow"}]} in total.',
        ],
    )
    def test_corrections_object(self, reply):
        assert extract_json(reply) == CORRECTIONS

    def test_bare_suggestion_array(self):
        reply = 'Suggestions: [{"start": 0, "end": 4, "suggestion": "This"}] and nothing else'
        assert extract_json(reply) == [{"start": 0, "end": 4, "suggestion": "This"}]

    def test_array_opening_after_prose_brace(self):
        reply = 'Note {see below}: [{"start": 1, "end": 2}]'
        # The earliest opener is a non-JSON brace span; the array still parses
        assert extract_json(reply) == [{"start": 1, "end": 2}]

    def test_empty_list_reply(self):
        assert extract_json("[]") == []

    def test_truncated_array_is_closed(self):
        reply = '[{"start": 0, "end": 4, "suggestion": "This"}, {"start": 10, "end": 1'
        assert extract_json(reply) == [{"start": 0, "end": 4, "suggestion": "This"}]

    def test_truncated_object_is_closed(self):
        reply = '{"corrections": [{"original": "tomorow", "replacement": "tomorrow"}, {"orig'
        assert extract_json(reply) == CORRECTIONS

    def test_truncated_inside_fence(self):
        reply = '```json\n{"corrections": [{"original": "tomorow", "replacement": "tomorrow"},\n'
        assert extract_json(reply) == CORRECTIONS

    def test_escaped_quotes_survive_repair(self):
        reply = '[{"original": "say \\"hi\\"", "replacement": "say hello"}, {"orig'
        assert extract_json(reply) == [{"original": 'say "hi"', "replacement": "say hello"}]

    @pytest.mark.parametrize("reply", ["no json here at all", "", "[ unclosed and no objects"])
    def test_unrecoverable_raises(self, reply):
        with pytest.raises(ValueError, match="Could not extract JSON"):
            extract_json(reply)

    def test_unicode_payload(self):
        reply = '```json\n{\n  "original": "Café menu",\n  "tags": ["food", "drink"]\n}\n```'
        result = extract_json(reply)
        assert result["original"] == "Café menu"
        assert len(result["tags"]) == 2
