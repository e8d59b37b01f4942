"""
Tests for error types and diagnostics.
"""

import pytest

from cellscript import (
    BuiltinError,
    Diagnostic,
    DivisionByZeroError,
    EvaluationError,
    ExpressionError,
    IndexOutOfRangeError,
    LimitExceededError,
    ParseError,
    UndefinedFunctionError,
    UndefinedVariableError,
    evaluate,
    to_line_column,
)
from cellscript import TypeError as ExprTypeError


class TestMessages:
    """Tests for error messages and attributes."""

    def test_undefined_variable(self):
        error = UndefinedVariableError("x", 3)
        assert error.message == "Undefined variable: x"
        assert error.name == "x"
        assert isinstance(error, EvaluationError)

    def test_undefined_function(self):
        assert UndefinedFunctionError("f").message == "Undefined function: f"
        assert UndefinedFunctionError("f", not_callable=True).message == "f is not a function"

    @pytest.mark.parametrize(
        "operator, message", [("/", "Division by zero"), ("%", "Modulo by zero")]
    )
    def test_division_by_zero(self, operator, message):
        error = DivisionByZeroError(operator)
        assert error.message == message
        assert error.operator == operator

    def test_index_out_of_range(self):
        error = IndexOutOfRangeError(-5, 3)
        assert error.message == "Index -5 out of bounds for length 3"
        assert (error.index, error.length) == (-5, 3)

    def test_type_error_with_context(self):
        error = ExprTypeError("number", "string", context="Operator '*'")
        assert error.message == "Operator '*': Type error: expected number, got string"

    def test_type_error_without_context(self):
        assert ExprTypeError("number", "array").message == "Type error: expected number, got array"

    def test_limit_exceeded(self):
        error = LimitExceededError("max_ast_depth", 10, 11)
        assert error.message == "Limit exceeded: max_ast_depth (limit: 10, actual: 11)"
        assert error.limit_name == "max_ast_depth"
        assert not isinstance(error, EvaluationError)

    def test_builtin_error(self):
        error = BuiltinError("sqrt", "x must be a number")
        assert str(error) == "sqrt: x must be a number"
        assert error.function_name == "sqrt"

    def test_all_errors_share_base(self):
        for error in (ParseError("p"), UndefinedVariableError("v"), LimitExceededError("n", 1, 2)):
            assert isinstance(error, ExpressionError)


class TestFormatting:
    """Tests for source context rendering."""

    def test_points_at_offending_column(self):
        error = ExpressionError("Bad", 10, "x = 1\ny = ?")
        assert error.format_with_context() == "Bad\n  y = ?\n      ^"

    def test_without_position_returns_message(self):
        assert ExpressionError("Bad").format_with_context() == "Bad"
        assert ExpressionError("Bad", -1, "src").format_with_context() == "Bad"

    def test_runtime_error_carries_source(self):
        with pytest.raises(UndefinedVariableError) as exc_info:
            evaluate("1 +\n  foo")
        assert exc_info.value.format_with_context() == (
            "Undefined variable: foo\n    foo\n    ^"
        )


class TestDiagnostics:
    """Tests for diagnostic records and offset conversion."""

    def test_to_diagnostic(self):
        error = ExpressionError("Bad", 3, "abcdef", 5)
        assert error.to_diagnostic() == Diagnostic("Bad", 3, 5)

    def test_to_diagnostic_without_span(self):
        assert ExpressionError("Bad").to_diagnostic() == Diagnostic("Bad", 0, 0)
        assert ExpressionError("Bad", 4).to_diagnostic() == Diagnostic("Bad", 4, 4)

    @pytest.mark.parametrize(
        "offset, expected",
        [(0, (1, 1)), (1, (1, 2)), (3, (2, 1)), (4, (2, 2)), (99, (2, 3))],
    )
    def test_to_line_column(self, offset, expected):
        assert to_line_column("ab\ncd", offset) == expected
