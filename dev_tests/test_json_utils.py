"""
Tests for json_utils.py - orjson wrapper.
"""

import pytest

import json_utils as json


class TestDumps:

    def test_returns_compact_str(self):
        assert json.dumps({"a": 1, "b": [1, 2]}) == '{"a":1,"b":[1,2]}'

    def test_indent(self):
        assert json.dumps({"a": 1}, indent=2) == '{\n  "a": 1\n}'

    def test_non_str_keys(self):
        assert json.dumps({1: "x"}) == '{"1":"x"}'

    def test_default(self):
        class Thing:
            def __str__(self):
                return "thing"

        assert json.dumps({"t": Thing()}, default=str) == '{"t":"thing"}'

    def test_unicode_kept(self):
        assert json.dumps({"w": "café"}) == '{"w":"café"}'


class TestLoads:

    def test_str_and_bytes(self):
        assert json.loads('{"a": 1}') == {"a": 1}
        assert json.loads(b'[1, 2]') == [1, 2]

    def test_invalid_raises(self):
        with pytest.raises(json.JSONDecodeError):
            json.loads("{nope")


class TestLoadsModelOutput:

    def test_plain(self):
        assert json.loads_model_output('{"suggestions": []}') == {"suggestions": []}

    def test_fenced_with_language(self):
        assert json.loads_model_output('```json\n{"a": 1}\n```') == {"a": 1}

    def test_fenced_without_language(self):
        assert json.loads_model_output(b'```\n[1]\n```') == [1]

    def test_surrounding_whitespace(self):
        assert json.loads_model_output('  \n{"a": true}\n ') == {"a": True}

    def test_invalid_raises(self):
        with pytest.raises(json.JSONDecodeError):
            json.loads_model_output("```json\nnot json\n```")
