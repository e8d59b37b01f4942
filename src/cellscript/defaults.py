"""
Default function library.

Hosts opt in by building their context with `default_context()`; nothing is
available to scripts implicitly. All functions except `now` are pure.

Math functions follow IEEE semantics where Python's `math` module would
raise: `sqrt(-1)` is NaN, `log(0)` is -inf.
"""

import math
import time
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Sequence

from .errors import BuiltinError
from .evaluator import ExecutionContext
from .limits import ExpressionLimits
from .values import (
    RuntimeValue,
    Timestamp,
    get_type_name,
    is_array,
    is_integral,
    is_number,
    to_list,
    values_equal,
)

# Signature of a default function; arguments arrive positionally.
DefaultFunction = Callable[..., RuntimeValue]


def _assert_arg_count(args: Sequence[Any], expected: int, function_name: str) -> None:
    """Asserts argument count."""
    if len(args) != expected:
        raise BuiltinError(
            function_name, f"expected {expected} argument(s), got {len(args)}"
        )


def _assert_arg_count_range(
    args: Sequence[Any], min_count: int, max_count: int, function_name: str
) -> None:
    """Asserts argument count range."""
    if len(args) < min_count or len(args) > max_count:
        raise BuiltinError(
            function_name,
            f"expected {min_count}-{max_count} argument(s), got {len(args)}",
        )


def _assert_number(value: Any, arg_name: str, function_name: str) -> float:
    """Asserts that a value is a number."""
    if not is_number(value):
        raise BuiltinError(
            function_name, f"{arg_name} must be a number, got {get_type_name(value)}"
        )
    return float(value)


def _assert_string(value: Any, arg_name: str, function_name: str) -> str:
    """Asserts that a value is a string."""
    if not isinstance(value, str):
        raise BuiltinError(
            function_name, f"{arg_name} must be a string, got {get_type_name(value)}"
        )
    return value


def _assert_array(value: Any, arg_name: str, function_name: str) -> Sequence[Any]:
    """Asserts that a value is an array."""
    if not is_array(value):
        raise BuiltinError(
            function_name, f"{arg_name} must be an array, got {get_type_name(value)}"
        )
    return value


def _assert_whole_number(value: Any, arg_name: str, function_name: str) -> int:
    """Asserts that a value is a whole number."""
    if not is_integral(value):
        raise BuiltinError(function_name, f"{arg_name} must be a whole number")
    return int(value)


def _assert_string_or_array(value: Any, function_name: str) -> None:
    if not (isinstance(value, str) or is_array(value)):
        raise BuiltinError(
            function_name, f"expected string or array, got {get_type_name(value)}"
        )


def _unary_math(function_name: str, fn: Callable[[float], float]) -> DefaultFunction:
    """Wraps a one-argument math function with checks and IEEE fallbacks."""

    def call(*args: Any) -> RuntimeValue:
        _assert_arg_count(args, 1, function_name)
        x = _assert_number(args[0], "x", function_name)
        if math.isnan(x):
            return math.nan
        try:
            return float(fn(x))
        except ValueError:
            return math.nan
        except OverflowError:
            return math.inf

    call.__name__ = function_name
    return call


def _integral_math(function_name: str, fn: Callable[[float], int]) -> DefaultFunction:
    """Wraps ceil/floor-like functions; infinities pass through."""

    def call(*args: Any) -> RuntimeValue:
        _assert_arg_count(args, 1, function_name)
        x = _assert_number(args[0], "x", function_name)
        if not math.isfinite(x):
            return x
        return float(fn(x))

    call.__name__ = function_name
    return call


def _log(x: float) -> float:
    if x == 0:
        return -math.inf
    return math.log(x)


def _log10(x: float) -> float:
    if x == 0:
        return -math.inf
    return math.log10(x)


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


# ============================================================
# Math Helpers
# ============================================================


def _numbers_of(args: Sequence[Any], function_name: str) -> Sequence[float]:
    """Accepts either numbers as arguments or a single array of numbers."""
    values = to_list(args[0]) if len(args) == 1 and is_array(args[0]) else list(args)
    if not values:
        raise BuiltinError(function_name, "expected at least one number")
    return [_assert_number(v, "value", function_name) for v in values]


def _min(*args: Any) -> RuntimeValue:
    """min(...values: number) -> number - Returns the smallest value."""
    values = _numbers_of(args, "min")
    if any(math.isnan(v) for v in values):
        return math.nan
    return min(values)


def _max(*args: Any) -> RuntimeValue:
    """max(...values: number) -> number - Returns the largest value."""
    values = _numbers_of(args, "max")
    if any(math.isnan(v) for v in values):
        return math.nan
    return max(values)


# ============================================================
# String and Collection Helpers
# ============================================================


def _len(*args: Any) -> RuntimeValue:
    """len(x: string | array) -> number - Returns the length of a string or array."""
    _assert_arg_count(args, 1, "len")
    x = args[0]
    _assert_string_or_array(x, "len")
    return float(len(x))


def _lower(*args: Any) -> RuntimeValue:
    """lower(s: string) -> string - Returns the lowercase version of the string."""
    _assert_arg_count(args, 1, "lower")
    return _assert_string(args[0], "s", "lower").lower()


def _upper(*args: Any) -> RuntimeValue:
    """upper(s: string) -> string - Returns the uppercase version of the string."""
    _assert_arg_count(args, 1, "upper")
    return _assert_string(args[0], "s", "upper").upper()


def _trim(*args: Any) -> RuntimeValue:
    """trim(s: string) -> string - Trims whitespace from both ends of a string."""
    _assert_arg_count(args, 1, "trim")
    return _assert_string(args[0], "s", "trim").strip()


def _slice(*args: Any) -> RuntimeValue:
    """
    slice(x: string | array, start: number, end?: number) -> string | array

    Returns the part of x from start up to, not including, end. Negative
    indices count from the end.
    """
    _assert_arg_count_range(args, 2, 3, "slice")
    x = args[0]
    _assert_string_or_array(x, "slice")
    start = _assert_whole_number(args[1], "start", "slice")
    end = _assert_whole_number(args[2], "end", "slice") if len(args) == 3 else None
    if isinstance(x, str):
        return x[start:end]
    return to_list(x[start:end])


def _contains(*args: Any) -> RuntimeValue:
    """
    contains(x: string | array, search) -> boolean

    For a string, checks for a substring. For an array, checks for an
    element equal to search.
    """
    _assert_arg_count(args, 2, "contains")
    x, search = args
    _assert_string_or_array(x, "contains")
    if isinstance(x, str):
        return _assert_string(search, "search", "contains") in x
    return any(values_equal(element, search) for element in x)


def _split(*args: Any) -> RuntimeValue:
    """split(s: string, separator: string) -> string[] - Splits the string by the separator."""
    _assert_arg_count(args, 2, "split")
    s = _assert_string(args[0], "s", "split")
    separator = _assert_string(args[1], "separator", "split")
    # An empty separator splits into characters
    if separator == "":
        return list(s)
    return s.split(separator)


def _replace(*args: Any) -> RuntimeValue:
    """replace(s: string, search: string, replacement: string) -> string - Replaces the first match."""
    _assert_arg_count(args, 3, "replace")
    s = _assert_string(args[0], "s", "replace")
    search = _assert_string(args[1], "search", "replace")
    replacement = _assert_string(args[2], "replacement", "replace")
    return s.replace(search, replacement, 1)


def _starts_with(*args: Any) -> RuntimeValue:
    """starts_with(s: string, prefix: string) -> boolean"""
    _assert_arg_count(args, 2, "starts_with")
    s = _assert_string(args[0], "s", "starts_with")
    return s.startswith(_assert_string(args[1], "prefix", "starts_with"))


def _ends_with(*args: Any) -> RuntimeValue:
    """ends_with(s: string, suffix: string) -> boolean"""
    _assert_arg_count(args, 2, "ends_with")
    s = _assert_string(args[0], "s", "ends_with")
    return s.endswith(_assert_string(args[1], "suffix", "ends_with"))


# ============================================================
# Array Helpers
# ============================================================


def _is_string(value: Any) -> bool:
    return isinstance(value, str)


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, Timestamp)


def _sort(*args: Any) -> RuntimeValue:
    """
    sort(a: array) -> array

    Returns a sorted copy. Elements must all be numbers, all strings or all
    timestamps.
    """
    _assert_arg_count(args, 1, "sort")
    values = to_list(_assert_array(args[0], "a", "sort"))
    if not values:
        return values

    for check in (is_number, _is_string, _is_timestamp):
        if all(check(v) for v in values):
            return sorted(values)

    type_names = sorted({get_type_name(v) for v in values})
    raise BuiltinError("sort", f"cannot sort array of {', '.join(type_names)}")


def _unique(*args: Any) -> RuntimeValue:
    """unique(a: array) -> array - Drops repeated elements, keeping first occurrences."""
    _assert_arg_count(args, 1, "unique")
    result: list = []
    for element in to_list(_assert_array(args[0], "a", "unique")):
        if not any(values_equal(element, kept) for kept in result):
            result.append(element)
    return result


def _join(*args: Any) -> RuntimeValue:
    """join(a: string[], separator: string) -> string - Joins strings with a separator."""
    _assert_arg_count(args, 2, "join")
    values = _assert_array(args[0], "a", "join")
    separator = _assert_string(args[1], "separator", "join")
    for index, element in enumerate(values):
        if not isinstance(element, str):
            raise BuiltinError(
                "join",
                f"expected string element, got {get_type_name(element)} at index {index}",
            )
    return separator.join(values)


def _sum(*args: Any) -> RuntimeValue:
    """sum(a: number[]) -> number - Adds up an array of numbers; empty arrays sum to 0."""
    _assert_arg_count(args, 1, "sum")
    total = 0.0
    for element in to_list(_assert_array(args[0], "a", "sum")):
        total += _assert_number(element, "element", "sum")
    return total


# ============================================================
# Conversion Helpers
# ============================================================


def _format_number(x: float) -> str:
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "Infinity" if x > 0 else "-Infinity"
    if x.is_integer() and abs(x) < 1e21:
        return str(int(x))
    return repr(x)


def _str(*args: Any) -> RuntimeValue:
    """str(x: number | string | boolean | timestamp) -> string - Converts a value to a string."""
    _assert_arg_count(args, 1, "str")
    x = args[0]
    if isinstance(x, str):
        return x
    if isinstance(x, bool):
        return "true" if x else "false"
    if is_number(x):
        return _format_number(float(x))
    if isinstance(x, Timestamp):
        return str(x)
    raise BuiltinError("str", f"cannot convert {get_type_name(x)} to string")


def _num(*args: Any) -> RuntimeValue:
    """num(x: number | string | boolean) -> number - Converts a value to a number."""
    _assert_arg_count(args, 1, "num")
    x = args[0]
    if isinstance(x, bool):
        return 1.0 if x else 0.0
    if is_number(x):
        return float(x)
    if isinstance(x, str):
        try:
            return float(x)
        except ValueError:
            raise BuiltinError(
                "num", f'cannot convert string "{x}" to number'
            ) from None
    raise BuiltinError("num", f"cannot convert {get_type_name(x)} to number")


def _type(*args: Any) -> RuntimeValue:
    """type(x) -> string - Returns the type name of a value."""
    _assert_arg_count(args, 1, "type")
    return get_type_name(args[0])


# ============================================================
# Time Helpers
# ============================================================

MILLIS_PER_SECOND = 1000
MILLIS_PER_MINUTE = 60 * MILLIS_PER_SECOND
MILLIS_PER_HOUR = 60 * MILLIS_PER_MINUTE
MILLIS_PER_DAY = 24 * MILLIS_PER_HOUR


def _now(*args: Any) -> RuntimeValue:
    """now() -> timestamp - Returns the current time."""
    _assert_arg_count(args, 0, "now")
    return Timestamp(int(time.time() * 1000))


def _timestamp(*args: Any) -> RuntimeValue:
    """timestamp(ms: number) -> timestamp - Builds a timestamp from epoch milliseconds."""
    _assert_arg_count(args, 1, "timestamp")
    ms = _assert_number(args[0], "ms", "timestamp")
    if not math.isfinite(ms):
        raise BuiltinError("timestamp", "ms must be finite")
    return Timestamp(int(round(ms)))


def _to_millis(*args: Any) -> RuntimeValue:
    """to_millis(ts: timestamp) -> number - Returns epoch milliseconds."""
    _assert_arg_count(args, 1, "to_millis")
    ts = args[0]
    if not isinstance(ts, Timestamp):
        raise BuiltinError(
            "to_millis", f"ts must be a timestamp, got {get_type_name(ts)}"
        )
    return float(ts.millis)


def _duration(function_name: str, factor: int) -> DefaultFunction:
    """Builds a helper converting a count of units into milliseconds."""

    def call(*args: Any) -> RuntimeValue:
        _assert_arg_count(args, 1, function_name)
        return _assert_number(args[0], "n", function_name) * factor

    call.__name__ = function_name
    return call


DEFAULT_FUNCTIONS: Mapping[str, DefaultFunction] = MappingProxyType(
    {
        # Math
        "abs": _unary_math("abs", abs),
        "ceil": _integral_math("ceil", math.ceil),
        "floor": _integral_math("floor", math.floor),
        "round": _integral_math("round", _round_half_up),
        "sqrt": _unary_math("sqrt", math.sqrt),
        "min": _min,
        "max": _max,
        "sin": _unary_math("sin", math.sin),
        "cos": _unary_math("cos", math.cos),
        "tan": _unary_math("tan", math.tan),
        "log": _unary_math("log", _log),
        "log10": _unary_math("log10", _log10),
        "exp": _unary_math("exp", math.exp),
        # String and collection helpers
        "len": _len,
        "lower": _lower,
        "upper": _upper,
        "trim": _trim,
        "slice": _slice,
        "contains": _contains,
        "split": _split,
        "replace": _replace,
        "starts_with": _starts_with,
        "ends_with": _ends_with,
        "sort": _sort,
        "unique": _unique,
        "join": _join,
        "sum": _sum,
        # Conversions
        "str": _str,
        "num": _num,
        "type": _type,
        # Time helpers
        "now": _now,
        "timestamp": _timestamp,
        "to_millis": _to_millis,
        "milliseconds": _duration("milliseconds", 1),
        "seconds": _duration("seconds", MILLIS_PER_SECOND),
        "minutes": _duration("minutes", MILLIS_PER_MINUTE),
        "hours": _duration("hours", MILLIS_PER_HOUR),
        "days": _duration("days", MILLIS_PER_DAY),
    }
)


def default_context(
    variables: Optional[Mapping[str, Any]] = None,
    functions: Optional[Mapping[str, Callable[..., Any]]] = None,
    limits: Optional[ExpressionLimits] = None,
) -> ExecutionContext:
    """
    Builds an execution context with the default functions.

    Host functions are merged over the defaults, so a host can replace any
    default by name.
    """
    merged = dict(DEFAULT_FUNCTIONS)
    if functions:
        merged.update(functions)
    return ExecutionContext(
        functions=merged,
        variables=dict(variables or {}),
        limits=limits,
    )
