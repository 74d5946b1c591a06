"""Tests for LLM JSON repair."""

import json

from clinic_ingest.utils.json_parser import parse_json_safely, repair_json_text


class TestRepairJsonText:
    """Each kind of formatting damage is repaired on its own."""

    def test_strips_markdown_fences(self):
        text = '```json\n{"classifications": []}\n```'
        assert json.loads(repair_json_text(text)) == {"classifications": []}

    def test_strips_english_lead_in(self):
        text = 'Here is the JSON:\n{"a": 1}'
        assert json.loads(repair_json_text(text)) == {"a": 1}

    def test_strips_portuguese_lead_in(self):
        text = 'Aqui está o JSON: {"a": 1}'
        assert json.loads(repair_json_text(text)) == {"a": 1}

    def test_slices_to_outer_braces(self):
        text = 'Result follows {"a": {"b": 2}} hope this helps'
        assert json.loads(repair_json_text(text)) == {"a": {"b": 2}}

    def test_removes_trailing_commas(self):
        text = '{"items": [1, 2, 3,], "done": true, }'
        assert json.loads(repair_json_text(text)) == {"items": [1, 2, 3], "done": True}

    def test_removes_comments_outside_strings(self):
        text = '{\n  "a": 1, // first\n  /* block */ "url": "http://example.com/x"\n}'
        assert json.loads(repair_json_text(text)) == {"a": 1, "url": "http://example.com/x"}

    def test_combined_damage(self):
        text = (
            "Sure! Here you go:\n"
            "```json\n"
            '{"classifications": [\n'
            '  {"isPericiable": true, "reasoning": "ok"}, // one\n'
            "]}\n"
            "```"
        )
        assert json.loads(repair_json_text(text)) == {
            "classifications": [{"isPericiable": True, "reasoning": "ok"}]
        }

    def test_empty_input(self):
        assert repair_json_text("") == ""

    def test_valid_json_is_unchanged(self):
        text = '{"a": [1, 2], "b": "c"}'
        assert repair_json_text(text) == text


class TestParseJsonSafely:

    def test_parses_valid_json(self):
        assert parse_json_safely('{"a": 1}') == {"a": 1}

    def test_parses_after_repair(self):
        assert parse_json_safely('```json\n{"a": 1,}\n```') == {"a": 1}

    def test_returns_none_for_garbage(self):
        assert parse_json_safely("no json here") is None

    def test_returns_none_for_empty(self):
        assert parse_json_safely("") is None
