"""
Error types for the cellscript language.

All errors extend ExpressionError for consistent handling. Every error
carries enough context (offsets, names, operators) to render a precise
diagnostic in an editor surface.
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Diagnostic:
    """Structured error record consumed by editor and diagnostics surfaces."""

    message: str
    start_offset: int
    end_offset: int


def to_line_column(source: str, offset: int) -> Tuple[int, int]:
    """Converts a source offset into a 1-based (line, column) pair."""
    line = 1
    column = 1
    for ch in source[: max(0, min(offset, len(source)))]:
        if ch == "\n":
            line += 1
            column = 1
        else:
            column += 1
    return line, column


class ExpressionError(Exception):
    """
    Base error class for all cellscript errors.
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        end: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.position = position
        self.expression = expression
        self.end = end

    def format_with_context(self) -> str:
        """
        Returns a formatted error message with position context.

        Only the source line containing the error is shown.
        """
        if self.expression is None or self.position is None or self.position < 0:
            return self.message

        line_start = self.expression.rfind("\n", 0, self.position) + 1
        line_end = self.expression.find("\n", self.position)
        if line_end == -1:
            line_end = len(self.expression)

        source_line = self.expression[line_start:line_end]
        pointer = " " * (self.position - line_start) + "^"
        return f"{self.message}\n  {source_line}\n  {pointer}"

    def to_diagnostic(self) -> Diagnostic:
        """Returns the error as a diagnostic record with a source span."""
        start = self.position if self.position is not None and self.position >= 0 else 0
        end = self.end if self.end is not None and self.end >= start else start
        return Diagnostic(message=self.message, start_offset=start, end_offset=end)


class TokenizerError(ExpressionError):
    """
    Error thrown during tokenization (lexical analysis).
    """

    pass


class ParseError(ExpressionError):
    """
    Error thrown during parsing (syntax analysis).
    """

    pass


class EvaluationError(ExpressionError):
    """
    Error thrown during evaluation (runtime error).

    Also raised by the optimizer when folding a constant subtree fails.
    """

    pass


class UndefinedVariableError(EvaluationError):
    """Error thrown when an identifier has no binding."""

    def __init__(
        self,
        name: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        end: Optional[int] = None,
    ):
        super().__init__(f"Undefined variable: {name}", position, expression, end)
        self.name = name


class UndefinedFunctionError(EvaluationError):
    """Error thrown when a called name is not bound to a callable."""

    def __init__(
        self,
        name: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        end: Optional[int] = None,
        not_callable: bool = False,
    ):
        message = (
            f"{name} is not a function" if not_callable else f"Undefined function: {name}"
        )
        super().__init__(message, position, expression, end)
        self.name = name
        self.not_callable = not_callable


class DivisionByZeroError(EvaluationError):
    """Error thrown for `/` or `%` with a zero right operand."""

    def __init__(
        self,
        operator: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        end: Optional[int] = None,
    ):
        message = "Modulo by zero" if operator == "%" else "Division by zero"
        super().__init__(message, position, expression, end)
        self.operator = operator


class IndexOutOfRangeError(EvaluationError):
    """Error thrown when an index falls outside an array or string."""

    def __init__(
        self,
        index: int,
        length: int,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        end: Optional[int] = None,
    ):
        message = f"Index {index} out of bounds for length {length}"
        super().__init__(message, position, expression, end)
        self.index = index
        self.length = length


class TypeError(EvaluationError):
    """
    Error thrown for type mismatches during evaluation.
    """

    def __init__(
        self,
        expected: str,
        actual: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        end: Optional[int] = None,
        context: Optional[str] = None,
    ):
        prefix = f"{context}: " if context else ""
        message = f"{prefix}Type error: expected {expected}, got {actual}"
        super().__init__(message, position, expression, end)
        self.expected = expected
        self.actual = actual
        self.context = context


class LimitExceededError(ExpressionError):
    """
    Error thrown when expression limits are exceeded.
    """

    def __init__(self, limit_name: str, limit: int, actual: int):
        message = f"Limit exceeded: {limit_name} (limit: {limit}, actual: {actual})"
        super().__init__(message)
        self.limit_name = limit_name
        self.limit = limit
        self.actual = actual


class BuiltinError(EvaluationError):
    """
    Error thrown when a host or default function encounters an error.
    """

    def __init__(
        self,
        function_name: str,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        end: Optional[int] = None,
    ):
        full_message = f"{function_name}: {message}"
        super().__init__(full_message, position, expression, end)
        self.function_name = function_name
