"""
Tests for ctk/rules/builtins.py
"""
import pytest

from ctk.errors import ErrorKind, EvaluationError
from ctk.rules import BUILTINS, Budget, Scope, parse_rule


def call(text, **roots):
    scope = Scope(budget=Budget(100_000), functions=BUILTINS, roots=roots)
    return parse_rule(text).evaluate(scope)


class TestRecordUtilities:
    """Test the record operations exposed to rules."""

    def test_project(self, records):
        rows = call("project(records, ['id'])", records=records)
        assert rows == [{"id": "1001"}, {"id": "1002"}, {"id": "1003"}, {"id": "1004"}]

    def test_filter_category(self, records):
        assert [r.id for r in call("filter_category(records, 'tax')", records=records)] == ["1002", "1004"]

    def test_filter_status(self, records):
        assert [r.id for r in call("filter_status(records, 'Inactive')", records=records)] == ["1003", "1004"]

    def test_search(self, records):
        assert [r.id for r in call("search(records, 'passeport')", records=records)] == ["1001"]

    def test_group_by_category(self, records):
        groups = call("group_by_category(records)", records=records)
        assert list(groups) == ["Identité", "Voyage", "Tax", "Health", "Entreprise"]

    def test_stats(self, records):
        assert call("stats(records)", records=records)["withUrl"] == 2

    def test_requires_record_lists(self):
        with pytest.raises(EvaluationError, match="expects a list of records"):
            call("project([1, 2], ['id'])")
        with pytest.raises(EvaluationError, match="expects a list of records"):
            call("stats('x')")

    def test_restructure_reports_selector_errors(self, records):
        with pytest.raises(EvaluationError) as exc:
            call("restructure(records, {'x': 'name +'})", records=records)
        assert exc.value.kind is ErrorKind.SYNTAX
        assert exc.value.field == "x"

    def test_restructure_runtime_errors_located(self, records):
        with pytest.raises(EvaluationError) as exc:
            call("restructure(records, {'x': '1 / len(categories)'})", records=records)
        assert exc.value.field == "x"
        assert exc.value.index == 2


class TestStrings:
    @pytest.mark.parametrize("text,expected", [
        ("len('abc')", 3),
        ("len([1, 2])", 2),
        ("len(null)", 0),
        ("lower('ABC')", "abc"),
        ("upper('abc')", "ABC"),
        ("trim('  a ')", "a"),
        ("truncate('abcdef', 3)", "abc"),
        ("truncate('ab', 10)", "ab"),
        ("split('a b c')", ["a", "b", "c"]),
        ("split('a,b', ',')", ["a", "b"]),
        ("split('', ' ')", [""]),
        ("join(['a', 1, true, null])", "a, 1, true, "),
        ("join(['a', 'b'], '|')", "a|b"),
        ("word_count('  one two   three ')", 3),
        ("contains('Passeport', 'PASS')", True),
        ("contains(['a'], 'a')", True),
        ("contains(null, 'a')", False),
        ("starts_with('abc', 'ab')", True),
        ("ends_with('abc', 'bc')", True),
        ("replace('a-b-c', '-', '+')", "a+b+c"),
        ("text(2.0)", "2"),
        ("text(false)", "false"),
        ("text(null)", ""),
    ])
    def test_helpers(self, text, expected):
        assert call(text) == expected

    def test_type_errors(self):
        with pytest.raises(EvaluationError, match="expects a string"):
            call("lower(1)")
        with pytest.raises(EvaluationError, match="expects an integer"):
            call("truncate('abc', 1.5)")
        with pytest.raises(EvaluationError, match="must not be empty"):
            call("split('abc', '')")

    def test_wrong_argument_count(self):
        with pytest.raises(EvaluationError, match="lower\\(\\)"):
            call("lower('a', 'b')")


class TestValues:
    @pytest.mark.parametrize("text,expected", [
        ("number('42')", 42),
        ("number('2.5')", 2.5),
        ("number(true)", 1),
        ("bool('')", False),
        ("bool([0])", True),
        ("round(2.3456, 2)", 2.35),
        ("round(2.5)", 2),
        ("first([])", None),
        ("first([], 'x')", "x"),
        ("first([3, 4])", 3),
        ("coalesce(null, '', 0, 5)", 0),
        ("coalesce(null)", None),
        ("sum([1, 2, 3])", 6),
        ("min([3, 1, 2])", 1),
        ("max([])", None),
        ("unique([1, 2, 1, 3, 2])", [1, 2, 3]),
        ("sorted(['b', 'a'])", ["a", "b"]),
        ("sorted([1, 3, 2], true)", [3, 2, 1]),
        ("keys({'a': 1, 'b': 2})", ["a", "b"]),
        ("values({'a': 1})", [1]),
        ("get({'a': 1}, 'a')", 1),
        ("get({'a': null}, 'a', 'd')", "d"),
        ("get(null, 'a', 'd')", "d"),
    ])
    def test_helpers(self, text, expected):
        assert call(text) == expected

    def test_number_rejects_text(self):
        with pytest.raises(EvaluationError, match="cannot convert"):
            call("number('abc')")

    def test_sum_rejects_non_numbers(self):
        with pytest.raises(EvaluationError, match="expects numbers"):
            call("sum([1, 'a'])")

    def test_sorted_mixed_types(self):
        with pytest.raises(EvaluationError):
            call("sorted([1, 'a'])")

    def test_large_collections_charge_budget(self):
        scope = Scope(budget=Budget(50), functions=BUILTINS, roots={"items": list(range(100))})
        with pytest.raises(EvaluationError) as exc:
            parse_rule("sum(items)").evaluate(scope)
        assert exc.value.kind is ErrorKind.TIMEOUT
