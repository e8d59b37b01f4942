"""
Tests for the default function library.
"""

import math
import time

import pytest

from cellscript import (
    DEFAULT_FUNCTIONS,
    BuiltinError,
    Timestamp,
    UndefinedFunctionError,
    default_context,
    evaluate,
)


def eval_default(source: str, variables=None):
    """Helper to evaluate with the default functions available."""
    return evaluate(source, default_context(variables))


class TestMathFunctions:
    """Tests for math defaults."""

    @pytest.mark.parametrize(
        "source, expected",
        [
            ("abs(-3)", 3),
            ("sqrt(16)", 4),
            ("ceil(1.2)", 2),
            ("floor(1.7)", 1),
            ("round(2.5)", 3),
            ("round(-2.5)", -2),
            ("round(2.4)", 2),
            ("min(3, 1, 2)", 1),
            ("max(3, 1, 2)", 3),
            ("max([4, 9, 2])", 9),
            ("min(2..5)", 2),
            ("log10(1000)", 3),
            ("exp(0)", 1),
            ("cos(0)", 1),
        ],
    )
    def test_values(self, source, expected):
        assert eval_default(source) == pytest.approx(expected)

    def test_ieee_fallbacks(self):
        assert math.isnan(eval_default("sqrt(-1)"))
        assert eval_default("log(0)") == -math.inf
        assert eval_default("exp(1000)") == math.inf

    def test_nan_propagates_through_min(self):
        assert math.isnan(eval_default("min(1, x)", {"x": math.nan}))

    def test_infinity_passes_through_floor(self):
        assert eval_default("floor(1e999)") == math.inf

    def test_rejects_wrong_argument_count(self):
        with pytest.raises(BuiltinError, match="sqrt: expected 1 argument\\(s\\), got 2"):
            eval_default("sqrt(1, 2)")

    def test_rejects_non_numbers(self):
        with pytest.raises(BuiltinError, match="abs: x must be a number, got string"):
            eval_default("abs('a')")

    def test_min_needs_a_value(self):
        with pytest.raises(BuiltinError, match="min: expected at least one number"):
            eval_default("min()")

    def test_errors_point_at_the_call(self):
        with pytest.raises(BuiltinError) as exc_info:
            eval_default("1 + sqrt('x')")
        assert exc_info.value.position == 4


class TestStringFunctions:
    """Tests for string and collection defaults."""

    def test_len(self):
        assert eval_default("len('abc')") == 3
        assert eval_default("len([1, 2])") == 2
        assert eval_default("len(0..4)") == 4

    def test_len_rejects_numbers(self):
        with pytest.raises(BuiltinError, match="len: expected string or array, got number"):
            eval_default("len(5)")

    def test_case_and_trim(self):
        assert eval_default("upper('ab')") == "AB"
        assert eval_default("lower('AB')") == "ab"
        assert eval_default("trim('  x ')") == "x"

    def test_rejects_non_strings(self):
        with pytest.raises(BuiltinError, match="lower: s must be a string, got number"):
            eval_default("lower(1)")

    @pytest.mark.parametrize(
        "source, expected",
        [
            ("slice('hello', 1, 3)", "el"),
            ("slice('hello', -3)", "llo"),
            ("slice([1, 2, 3], 1)", [2, 3]),
            ("slice(0..5, 1, 3)", [1, 2]),
            ("contains('hello', 'ell')", True),
            ("contains([1, [2]], [2])", True),
            ("contains([1, 2], '1')", False),
            ("split('a,b,c', ',')", ["a", "b", "c"]),
            ("split('ab', '')", ["a", "b"]),
            ("replace('aaa', 'a', 'b')", "baa"),
            ("starts_with('hello', 'he')", True),
            ("ends_with('hello', 'he')", False),
        ],
    )
    def test_values(self, source, expected):
        assert eval_default(source) == expected

    def test_slice_of_range_is_a_list(self):
        result = eval_default("slice(0..5, 3)")
        assert result == [3.0, 4.0]
        assert isinstance(result, list)

    def test_slice_rejects_fractional_index(self):
        with pytest.raises(BuiltinError, match="slice: start must be a whole number"):
            eval_default("slice('abc', 1.5)")

    def test_slice_argument_count(self):
        with pytest.raises(BuiltinError, match="slice: expected 2-3 argument\\(s\\), got 1"):
            eval_default("slice('abc')")

    def test_contains_string_needs_string_search(self):
        with pytest.raises(BuiltinError, match="contains: search must be a string, got number"):
            eval_default("contains('a1', 1)")


class TestArrayFunctions:
    """Tests for array defaults."""

    def test_sort(self):
        assert eval_default("sort([3, 1, 2])") == [1, 2, 3]
        assert eval_default("sort(['b', 'c', 'a'])") == ["a", "b", "c"]
        assert eval_default("sort([])") == []

    def test_sort_does_not_change_input(self):
        assert eval_default("xs = [2, 1]; s = sort(xs); xs") == [2, 1]

    def test_sort_timestamps(self):
        result = eval_default("sort([timestamp(5), timestamp(1)])")
        assert result == [Timestamp(1), Timestamp(5)]

    def test_sort_rejects_mixed_types(self):
        with pytest.raises(BuiltinError, match="sort: cannot sort array of number, string"):
            eval_default("sort([1, 'a'])")

    def test_unique_keeps_first_occurrences(self):
        assert eval_default("unique([1, 2, 1, [3], [3]])") == [1, 2, [3]]

    def test_join(self):
        assert eval_default("join(['a', 'b'], '-')") == "a-b"

    def test_join_rejects_non_strings(self):
        with pytest.raises(
            BuiltinError, match="join: expected string element, got number at index 1"
        ):
            eval_default("join(['a', 1], ',')")

    def test_sum(self):
        assert eval_default("sum([1, 2, 3])") == 6
        assert eval_default("sum(1..=4)") == 10
        assert eval_default("sum([])") == 0

    def test_sum_rejects_non_numbers(self):
        with pytest.raises(BuiltinError, match="sum: element must be a number, got string"):
            eval_default("sum(['a'])")

    def test_rejects_non_arrays(self):
        with pytest.raises(BuiltinError, match="unique: a must be an array, got string"):
            eval_default("unique('aab')")


class TestConversionFunctions:
    """Tests for str, num and type."""

    @pytest.mark.parametrize(
        "source, expected",
        [
            ("str(3)", "3"),
            ("str(1.5)", "1.5"),
            ("str(-0.25)", "-0.25"),
            ("str(1e999)", "Infinity"),
            ("str(true)", "true"),
            ("str('x')", "x"),
            ("num('2.5')", 2.5),
            ("num(true)", 1),
            ("num(7)", 7),
            ("type(1)", "number"),
            ("type('a')", "string"),
            ("type(false)", "boolean"),
            ("type([1])", "array"),
            ("type(0..2)", "array"),
            ("type(timestamp(0))", "timestamp"),
        ],
    )
    def test_values(self, source, expected):
        assert eval_default(source) == expected

    def test_str_of_timestamp(self):
        assert eval_default("str(timestamp(0))") == str(Timestamp(0))

    def test_str_rejects_arrays(self):
        with pytest.raises(BuiltinError, match="str: cannot convert array to string"):
            eval_default("str([1])")

    def test_num_rejects_text(self):
        with pytest.raises(BuiltinError, match='num: cannot convert string "abc" to number'):
            eval_default("num('abc')")


class TestTimeFunctions:
    """Tests for timestamp defaults."""

    def test_timestamp_and_to_millis(self):
        assert eval_default("timestamp(1500)") == Timestamp(1500)
        assert eval_default("to_millis(timestamp(1500))") == 1500

    def test_durations(self):
        assert eval_default("milliseconds(5)") == 5
        assert eval_default("seconds(2)") == 2000
        assert eval_default("minutes(1)") == 60_000
        assert eval_default("hours(1)") == 3_600_000
        assert eval_default("days(1)") == 86_400_000

    def test_timestamp_arithmetic(self):
        assert eval_default("timestamp(0) + minutes(2)") == Timestamp(120_000)
        assert eval_default("timestamp(5000) - timestamp(2000)") == 3000

    def test_now(self):
        before = int(time.time() * 1000)
        result = eval_default("now()")
        after = int(time.time() * 1000)
        assert isinstance(result, Timestamp)
        assert before <= result.millis <= after

    def test_to_millis_rejects_numbers(self):
        with pytest.raises(BuiltinError, match="to_millis: ts must be a timestamp, got number"):
            eval_default("to_millis(5)")

    def test_timestamp_rejects_infinity(self):
        with pytest.raises(BuiltinError, match="ms must be finite"):
            eval_default("timestamp(1e999)")


class TestDefaultContext:
    """Tests for opting in to the defaults."""

    def test_plain_context_has_no_functions(self):
        with pytest.raises(UndefinedFunctionError):
            evaluate("sqrt(4)")

    def test_host_functions_override_defaults(self):
        context = default_context(functions={"abs": lambda x: 42})
        assert evaluate("abs(-1)", context) == 42

    def test_host_functions_are_added(self):
        context = default_context(functions={"double": lambda x: x * 2})
        assert evaluate("double(sqrt(9))", context) == 6

    def test_variables_are_bound(self):
        assert eval_default("x * 2", {"x": 4}) == 8

    def test_defaults_are_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_FUNCTIONS["abs"] = abs

    def test_context_copies_defaults(self):
        context = default_context()
        context.functions["extra"] = lambda: 1
        assert "extra" not in DEFAULT_FUNCTIONS
