"""Tests for decoding untrusted model output."""

import pytest

from crossrank.errors import ErrorKind, MalformedOutput
from crossrank.parsing import coerce_index, coerce_score, find_balanced, parse_json_array, parse_json_object


class TestFindBalanced:
    def test_returns_first_complete_array(self):
        assert find_balanced('noise [1, [2, 3]] tail [4]') == "[1, [2, 3]]"

    def test_ignores_brackets_inside_strings(self):
        text = 'x [{"reasoning": "uses ] and [ freely"}] y'
        assert find_balanced(text) == '[{"reasoning": "uses ] and [ freely"}]'

    def test_handles_escaped_quotes(self):
        text = r'[{"reasoning": "said \"]\" once"}]'
        assert find_balanced(text) == text

    def test_unbalanced_returns_none(self):
        assert find_balanced('[{"responseIndex": 0, "score": 8') is None

    def test_skips_truncated_opener_for_later_span(self):
        assert find_balanced("[ broken ... [1, 2]") == "[1, 2]"

    def test_object_span(self):
        assert find_balanced('Result: {"a": {"b": 1}} done', "{") == '{"a": {"b": 1}}'


class TestParseJsonArray:
    def test_strict_array(self):
        assert parse_json_array('  [{"responseIndex": 0}]  ') == [{"responseIndex": 0}]

    def test_prose_wrapped(self):
        reply = 'Sure! [{"responseIndex":0,"score":8,"reasoning":"ok"}]'
        assert parse_json_array(reply) == [{"responseIndex": 0, "score": 8, "reasoning": "ok"}]

    def test_code_fence(self):
        reply = 'Here you go:\n```json\n[{"responseIndex": 1, "score": 6}]\n```'
        assert parse_json_array(reply) == [{"responseIndex": 1, "score": 6}]

    def test_array_nested_in_object(self):
        reply = '{"evaluations": [{"responseIndex": 0, "score": 7}]}'
        assert parse_json_array(reply) == [{"responseIndex": 0, "score": 7}]

    @pytest.mark.parametrize("reply", ["not json at all", "", None, '[{"responseIndex": 0, "score": 8',
                                       '{"score": 8}', "[not, valid, json]"])
    def test_unusable_replies(self, reply):
        assert parse_json_array(reply) is None


class TestParseJsonObject:
    def test_strict_object(self):
        assert parse_json_object(' {"ranking": [0, 1, 2]} ') == {"ranking": [0, 1, 2]}

    def test_prose_is_rejected(self):
        with pytest.raises(MalformedOutput) as exc:
            parse_json_object('Ranking: {"ranking": [0, 1, 2]}', model_id="arbiter")
        assert exc.value.kind == ErrorKind.MALFORMED_OUTPUT
        assert exc.value.model_id == "arbiter"

    def test_array_is_rejected(self):
        with pytest.raises(MalformedOutput):
            parse_json_object("[0, 1, 2]")


class TestCoercion:
    @pytest.mark.parametrize("value,expected", [(0, 0), (2, 2), (1.0, 1), ("1", 1), (" 2 ", 2)])
    def test_valid_indexes(self, value, expected):
        assert coerce_index(value, 3) == expected

    @pytest.mark.parametrize("value", [3, -1, 1.5, True, False, None, "one", "-1", [0]])
    def test_invalid_indexes(self, value):
        assert coerce_index(value, 3) is None

    @pytest.mark.parametrize("value,expected", [(8, 8.0), (7.5, 7.5), ("9", 9.0), (1, 1.0), (10, 10.0)])
    def test_valid_scores(self, value, expected):
        assert coerce_score(value) == expected

    @pytest.mark.parametrize("value", [0, 11, -3, "high", None, True, float("nan"), float("inf"), {"v": 1}])
    def test_invalid_scores(self, value):
        assert coerce_score(value) is None


class TestHostileNumbers:
    def test_score_too_large_for_float(self):
        assert coerce_score(10 ** 400) is None
        assert coerce_score("1" + "0" * 400) is None

    @pytest.mark.parametrize("value", ["\u00b2", "\u00bd", "1\u00b2"])
    def test_non_decimal_digit_strings(self, value):
        assert coerce_index(value, 3) is None

    def test_deep_nesting_is_unusable(self):
        assert parse_json_array("[" * 100000 + "]" * 100000) is None

    def test_deep_nesting_object_is_malformed(self):
        with pytest.raises(MalformedOutput):
            parse_json_object('{"ranking": ' + "[" * 100000 + "]" * 100000 + "}")
