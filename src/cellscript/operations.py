"""
Operator semantics shared by the evaluator and the optimizer.

Both stages call into this module so that a constant folded at optimize
time always produces exactly the value (or the error) evaluation would.
"""

import math
from typing import Any, Optional

from .errors import DivisionByZeroError, EvaluationError, IndexOutOfRangeError
from .errors import TypeError as ExprTypeError
from .limits import ExpressionLimits, check_array_length, check_range_length
from .values import (
    RuntimeValue,
    Timestamp,
    get_type_name,
    is_array,
    is_integral,
    is_number,
    is_truthy,
    to_list,
    values_equal,
)


class _Site:
    """Source location forwarded into raised errors."""

    __slots__ = ("position", "expression", "end")

    def __init__(self, position: Optional[int], expression: Optional[str], end: Optional[int]):
        self.position = position
        self.expression = expression
        self.end = end

    def type_error(self, expected: str, value: Any, context: Optional[str] = None):
        return ExprTypeError(
            expected,
            get_type_name(value),
            self.position,
            self.expression,
            self.end,
            context=context,
        )


def safe_pow(base: float, exponent: float) -> float:
    """
    IEEE-style power.

    `math.pow` raises where IEEE 754 returns a special value; those cases
    are mapped back to inf or NaN here.
    """
    try:
        return math.pow(base, exponent)
    except OverflowError:
        odd_integer = exponent.is_integer() and exponent % 2 == 1
        return -math.inf if base < 0 and odd_integer else math.inf
    except ValueError:
        if base == 0 and exponent < 0:
            odd_integer = exponent.is_integer() and exponent % 2 == 1
            negative_zero = math.copysign(1.0, base) < 0
            return -math.inf if negative_zero and odd_integer else math.inf
        return math.nan


def safe_fmod(left: float, right: float) -> float:
    """IEEE remainder with the sign of the dividend; fmod(inf, x) is NaN."""
    try:
        return math.fmod(left, right)
    except ValueError:
        return math.nan


def _require_numbers(operator: str, left: Any, right: Any, site: _Site) -> None:
    context = f"Operator '{operator}'"
    if not is_number(left):
        raise site.type_error("number", left, context)
    if not is_number(right):
        raise site.type_error("number", right, context)


def _to_millis(value: Any, site: _Site) -> int:
    if not math.isfinite(value):
        raise EvaluationError(
            "Cannot shift a timestamp by a non-finite number",
            site.position,
            site.expression,
            site.end,
        )
    return int(round(value))


def _add(left: Any, right: Any, site: _Site, limits: Optional[ExpressionLimits]) -> RuntimeValue:
    if is_number(left) and is_number(right):
        return float(left) + float(right)

    if isinstance(left, str) and isinstance(right, str):
        return left + right

    if is_array(left) and is_array(right):
        check_array_length(len(left) + len(right), limits)
        return to_list(left) + to_list(right)

    if isinstance(left, Timestamp) and is_number(right):
        return Timestamp(left.millis + _to_millis(right, site))

    if is_number(left) and isinstance(right, Timestamp):
        return Timestamp(right.millis + _to_millis(left, site))

    context = "Operator '+'"
    if isinstance(left, str):
        raise site.type_error("string", right, context)
    if is_array(left):
        raise site.type_error("array", right, context)
    if is_number(left) or isinstance(left, Timestamp):
        raise site.type_error("number", right, context)
    raise site.type_error("number", left, context)


def _subtract(left: Any, right: Any, site: _Site) -> RuntimeValue:
    if isinstance(left, Timestamp):
        if isinstance(right, Timestamp):
            return float(left.millis - right.millis)
        if is_number(right):
            return Timestamp(left.millis - _to_millis(right, site))
        raise site.type_error("number or timestamp", right, "Operator '-'")

    _require_numbers("-", left, right, site)
    return float(left) - float(right)


def _compare(operator: str, left: Any, right: Any, site: _Site) -> bool:
    comparable = (
        (is_number(left) and is_number(right))
        or (isinstance(left, str) and isinstance(right, str))
        or (isinstance(left, Timestamp) and isinstance(right, Timestamp))
    )
    if not comparable:
        context = f"Operator '{operator}'"
        if is_number(left) or isinstance(left, (str, Timestamp)):
            raise site.type_error(get_type_name(left), right, context)
        raise site.type_error("number", left, context)

    if operator == "<":
        return left < right
    if operator == ">":
        return left > right
    if operator == "<=":
        return left <= right
    return left >= right


def evaluate_binary_operation(
    operator: str,
    left: Any,
    right: Any,
    position: Optional[int] = None,
    expression: Optional[str] = None,
    end: Optional[int] = None,
    limits: Optional[ExpressionLimits] = None,
) -> RuntimeValue:
    """
    Applies a binary operator to two already evaluated operands.

    Raises:
        DivisionByZeroError: For `/` or `%` with a zero right operand
        TypeError: For operands the operator does not accept
    """
    site = _Site(position, expression, end)

    if operator == "+":
        return _add(left, right, site, limits)

    if operator == "-":
        return _subtract(left, right, site)

    if operator == "*":
        _require_numbers(operator, left, right, site)
        return float(left) * float(right)

    if operator == "/":
        _require_numbers(operator, left, right, site)
        if right == 0:
            raise DivisionByZeroError("/", position, expression, end)
        return float(left) / float(right)

    if operator == "%":
        _require_numbers(operator, left, right, site)
        if right == 0:
            raise DivisionByZeroError("%", position, expression, end)
        return safe_fmod(float(left), float(right))

    if operator == "^":
        _require_numbers(operator, left, right, site)
        return safe_pow(float(left), float(right))

    if operator == "==":
        return values_equal(left, right)

    if operator == "!=":
        return not values_equal(left, right)

    if operator in ("<", ">", "<=", ">="):
        return _compare(operator, left, right, site)

    # Both operands are already evaluated; no short-circuit.
    if operator == "&&":
        left_truth = is_truthy(left, position, expression, end)
        right_truth = is_truthy(right, position, expression, end)
        return left_truth and right_truth

    if operator == "||":
        left_truth = is_truthy(left, position, expression, end)
        right_truth = is_truthy(right, position, expression, end)
        return left_truth or right_truth

    raise EvaluationError(f"Unknown operator: {operator}", position, expression, end)


def evaluate_unary_operation(
    operator: str,
    value: Any,
    position: Optional[int] = None,
    expression: Optional[str] = None,
    end: Optional[int] = None,
) -> RuntimeValue:
    """Applies a unary operator to an already evaluated operand."""
    if operator == "-":
        if not is_number(value):
            raise _Site(position, expression, end).type_error(
                "number", value, "Operator '-'"
            )
        return -float(value)

    if operator == "!":
        return not is_truthy(value, position, expression, end)

    raise EvaluationError(f"Unknown operator: {operator}", position, expression, end)


def resolve_index(
    obj: Any,
    index: Any,
    position: Optional[int] = None,
    expression: Optional[str] = None,
    end: Optional[int] = None,
) -> RuntimeValue:
    """
    Reads `obj[index]` from an array or string.

    Negative indices count from the end. The index must be a whole number.
    """
    site = _Site(position, expression, end)

    if not (is_array(obj) or isinstance(obj, str)):
        raise site.type_error("array or string", obj, "Index access")

    if not is_number(index):
        raise site.type_error("number", index, "Index access")
    if not is_integral(index):
        raise ExprTypeError(
            "integer", "non-integer number", position, expression, end, context="Index access"
        )

    length = len(obj)
    requested = int(index)
    resolved = requested + length if requested < 0 else requested
    if resolved < 0 or resolved >= length:
        raise IndexOutOfRangeError(requested, length, position, expression, end)

    element = obj[resolved]
    if isinstance(obj, range):
        return float(element)
    return element


def build_range(
    start: Any,
    stop: Any,
    inclusive: bool,
    position: Optional[int] = None,
    expression: Optional[str] = None,
    end: Optional[int] = None,
    limits: Optional[ExpressionLimits] = None,
) -> range:
    """
    Builds the lazy integer sequence of a range expression.

    Both bounds must be whole numbers with start <= end.
    """
    for bound in (start, stop):
        if not is_number(bound):
            raise _Site(position, expression, end).type_error("number", bound, "Range")
        if not is_integral(bound):
            raise ExprTypeError(
                "integer", "non-integer number", position, expression, end, context="Range"
            )

    first = int(start)
    last = int(stop)
    if first > last:
        raise EvaluationError(
            f"Invalid range: start ({first}) must not be greater than end ({last})",
            position,
            expression,
            end,
        )

    stop_value = last + 1 if inclusive else last
    # Checked before building; len() of a huge range overflows
    check_range_length(stop_value - first, limits)
    return range(first, stop_value)
