"""Tests for tolerant JSON extraction from provider output."""

from autoapply.utils.json_extract import extract_json_block, parse_json_loose, strip_code_fence


class TestExtractJsonBlock:
    def test_object_inside_prose(self):
        text = 'Sure! Here is the result: {"score": 80, "reasoning": "ok"} Hope that helps.'
        assert extract_json_block(text) == '{"score": 80, "reasoning": "ok"}'

    def test_array_block(self):
        assert extract_json_block('Results: [{"a": 1}, {"b": 2}] done') == '[{"a": 1}, {"b": 2}]'

    def test_first_block_wins(self):
        assert extract_json_block('{"a": 1} and then {"b": 2}') == '{"a": 1}'

    def test_nested_blocks(self):
        text = 'x {"outer": {"inner": [1, 2, {"deep": true}]}} y'
        assert extract_json_block(text) == '{"outer": {"inner": [1, 2, {"deep": true}]}}'

    def test_brackets_inside_strings_are_ignored(self):
        text = 'prefix {"reasoning": "needs {curly} and [square] braces", "score": 5} suffix'
        assert extract_json_block(text) == '{"reasoning": "needs {curly} and [square] braces", "score": 5}'

    def test_escaped_quote_inside_string(self):
        text = '{"text": "she said \\"hi}\\""}'
        assert extract_json_block(text) == text

    def test_no_block_returns_none(self):
        assert extract_json_block("no json here at all") is None
        assert extract_json_block("") is None

    def test_unbalanced_block_returns_none(self):
        assert extract_json_block('{"score": 80') is None


class TestParseJsonLoose:
    def test_plain_json(self):
        assert parse_json_loose('{"a": 1}') == {"a": 1}

    def test_markdown_fence(self):
        text = '```json\n{"must_have": ["Python"]}\n```'
        assert parse_json_loose(text) == {"must_have": ["Python"]}

    def test_json_in_instruction_echo(self):
        text = 'The JSON you asked for:\n[{"title": "Data Engineer"}]\nLet me know.'
        assert parse_json_loose(text) == [{"title": "Data Engineer"}]

    def test_skips_undecodable_block(self):
        text = "{not json} but this is: {\"ok\": true}"
        assert parse_json_loose(text) == {"ok": True}

    def test_garbage_returns_none(self):
        assert parse_json_loose("I'm sorry, I can't help with that.") is None
        assert parse_json_loose(None) is None
        assert parse_json_loose("   ") is None


class TestStripCodeFence:
    def test_removes_fence(self):
        assert strip_code_fence("```\nhello\n```") == "hello"

    def test_leaves_plain_text(self):
        assert strip_code_fence("  hello ") == "hello"
