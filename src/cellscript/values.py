"""
Runtime value model.

Values produced by evaluation are one of:
- number (float; plain ints from hosts are accepted and normalized)
- string (str)
- boolean (bool)
- Timestamp (milliseconds since the Unix epoch)
- array (list, or a lazy `range` produced by a range expression)

`bool` is a subclass of `int` in Python, so every numeric check here
excludes it explicitly.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Sequence, Union

from .errors import EvaluationError
from .errors import TypeError as ExprTypeError


@dataclass(frozen=True, order=True)
class Timestamp:
    """A point in time, stored as whole milliseconds since the Unix epoch."""

    millis: int

    @classmethod
    def from_datetime(cls, value: datetime) -> "Timestamp":
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return cls(int(round(value.timestamp() * 1000)))

    def to_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.millis / 1000, tz=timezone.utc)

    def __str__(self) -> str:
        return self.to_datetime().isoformat(timespec="milliseconds")


RuntimeValue = Union[float, str, bool, Timestamp, Sequence["RuntimeValue"]]


def is_number(value: Any) -> bool:
    """Checks if a value is a number (booleans are not numbers)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_array(value: Any) -> bool:
    """Checks if a value is an array (lists, tuples and ranges)."""
    return isinstance(value, (list, tuple, range))


def is_integral(value: Any) -> bool:
    """Checks if a value is a finite number with no fractional part."""
    if not is_number(value):
        return False
    return float(value).is_integer()


def get_type_name(value: Any) -> str:
    """Gets the type name of a value for error messages."""
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Timestamp):
        return "timestamp"
    if is_array(value):
        return "array"
    if value is None:
        return "null"
    return type(value).__name__


def normalize_value(value: Any) -> RuntimeValue:
    """
    Normalizes a host-supplied Python value to a RuntimeValue.

    Rules:
    - bool/str/Timestamp/range -> returned as-is
    - int/float -> float
    - datetime -> Timestamp
    - list/tuple -> list with elements recursively normalized
    - anything else -> EvaluationError
    """
    if isinstance(value, bool):
        return value

    if is_number(value):
        try:
            return float(value)
        except OverflowError:
            raise EvaluationError("Number out of range") from None

    if isinstance(value, (str, Timestamp, range)):
        return value

    if isinstance(value, datetime):
        return Timestamp.from_datetime(value)

    if isinstance(value, (list, tuple)):
        return [normalize_value(element) for element in value]

    raise EvaluationError(f"Unsupported value type: {type(value).__name__}")


def to_list(value: Sequence[RuntimeValue]) -> List[RuntimeValue]:
    """Materializes an array value, turning range integers into numbers."""
    if isinstance(value, range):
        return [float(i) for i in value]
    return list(value)


def values_equal(left: Any, right: Any) -> bool:
    """
    Deep equality with no type coercion.

    Values of different types are never equal; arrays compare element-wise
    and a range equals a list holding the same numbers.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right

    if is_number(left) and is_number(right):
        return left == right

    if isinstance(left, str) and isinstance(right, str):
        return left == right

    if isinstance(left, Timestamp) and isinstance(right, Timestamp):
        return left.millis == right.millis

    if is_array(left) and is_array(right):
        if len(left) != len(right):
            return False
        return all(values_equal(a, b) for a, b in zip(left, right))

    return False


def is_truthy(value: Any, position=None, expression=None, end=None) -> bool:
    """
    Converts a condition value to a boolean.

    Booleans are themselves and numbers are true when non-zero (NaN is
    false). Other types raise a type error.
    """
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0 and not math.isnan(value)
    raise ExprTypeError(
        "boolean or number", get_type_name(value), position, expression, end
    )
