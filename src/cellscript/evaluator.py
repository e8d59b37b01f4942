"""
Interpreter.

Evaluates an AST against an execution context and returns a value.

Binding semantics:
- Identifiers resolve through the current scope chain, whose root is
  seeded from `ExecutionContext.variables`.
- Variables supplied by the host override assignments of the same name:
  the right-hand side of such an assignment is never evaluated.
- Each element of a `for` expression is evaluated in a fresh child scope,
  so assignments inside the body do not leak out.
- `&&` and `||` always evaluate both operands.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .ast import (
    ArrayLiteralNode,
    AssignmentNode,
    AstNode,
    BinaryOpNode,
    BooleanLiteralNode,
    ForExpressionNode,
    FunctionCallNode,
    IdentifierNode,
    IfExpressionNode,
    IndexAccessNode,
    NumberLiteralNode,
    ProgramNode,
    RangeExpressionNode,
    StringLiteralNode,
    UnaryOpNode,
)
from .errors import (
    BuiltinError,
    Diagnostic,
    EvaluationError,
    ExpressionError,
    UndefinedFunctionError,
    UndefinedVariableError,
)
from .errors import TypeError as ExprTypeError
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits, check_array_length
from .operations import (
    build_range,
    evaluate_binary_operation,
    evaluate_unary_operation,
    resolve_index,
)
from .parser import parse
from .values import RuntimeValue, get_type_name, is_array, is_truthy, normalize_value
from .visitor import visit

logger = logging.getLogger(__name__)


@dataclass
class ExecutionContext:
    """Host-supplied functions and variable bindings for one evaluation."""

    functions: Mapping[str, Callable[..., Any]] = field(default_factory=dict)
    """Callables available to scripts (see `default_context` for the defaults)."""

    variables: Mapping[str, Any] = field(default_factory=dict)
    """External variables; they override assignments of the same name."""

    limits: Optional[ExpressionLimits] = None
    """Expression limits."""

    source: Optional[str] = None
    """Source text for error reporting."""


@dataclass
class EvaluationResult:
    """Result of a non-raising evaluation."""

    value: Optional[RuntimeValue]
    """The evaluated value (None if evaluation failed)."""

    success: bool
    """Whether evaluation succeeded."""

    error: Optional[str] = None
    """Error message if evaluation failed."""

    diagnostic: Optional[Diagnostic] = None
    """Structured error record if evaluation failed."""

    variables: Dict[str, RuntimeValue] = field(default_factory=dict)
    """Top-level bindings at the end of evaluation (or at the failure)."""


class Scope:
    """A table of bindings with an optional enclosing scope."""

    def __init__(self, parent: Optional["Scope"] = None):
        self._parent = parent
        self._bindings: Dict[str, RuntimeValue] = {}

    def lookup(self, name: str) -> RuntimeValue:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope._bindings:
                return scope._bindings[name]
            scope = scope._parent
        raise KeyError(name)

    def bind(self, name: str, value: RuntimeValue) -> None:
        self._bindings[name] = value

    def snapshot(self) -> Dict[str, RuntimeValue]:
        return dict(self._bindings)


class Evaluator:
    """Evaluates AST nodes against an execution context."""

    def __init__(self, context: Optional[ExecutionContext] = None):
        context = context or ExecutionContext()
        self._limits = context.limits or DEFAULT_EXPRESSION_LIMITS
        self._source = context.source
        self._functions = context.functions

        self._globals = Scope()
        for name, value in context.variables.items():
            self._globals.bind(name, normalize_value(value))
        # Names present at construction time are authoritative overrides
        self._external = frozenset(context.variables)
        self._scope = self._globals

        self._handlers = {
            "Program": self._evaluate_program,
            "NumberLiteral": self._evaluate_literal,
            "StringLiteral": self._evaluate_literal,
            "BooleanLiteral": self._evaluate_literal,
            "ArrayLiteral": self._evaluate_array,
            "Identifier": self._evaluate_identifier,
            "BinaryOp": self._evaluate_binary_op,
            "UnaryOp": self._evaluate_unary_op,
            "FunctionCall": self._evaluate_function_call,
            "Assignment": self._evaluate_assignment,
            "IfExpression": self._evaluate_if,
            "ForExpression": self._evaluate_for,
            "IndexAccess": self._evaluate_index_access,
            "RangeExpression": self._evaluate_range,
        }

    @property
    def variables(self) -> Dict[str, RuntimeValue]:
        """Snapshot of the top-level bindings (external and assigned)."""
        return self._globals.snapshot()

    def evaluate(self, node: AstNode) -> RuntimeValue:
        """Evaluates an AST node and returns the value."""
        return visit(node, self._handlers)

    def _evaluate_program(self, node: ProgramNode, recurse) -> RuntimeValue:
        result: RuntimeValue = 0.0
        for statement in node.statements:
            result = recurse(statement)
        return result

    def _evaluate_literal(
        self,
        node: Union[NumberLiteralNode, StringLiteralNode, BooleanLiteralNode],
        _recurse,
    ) -> RuntimeValue:
        return node.value

    def _evaluate_array(self, node: ArrayLiteralNode, recurse) -> RuntimeValue:
        values = [recurse(element) for element in node.elements]
        check_array_length(len(values), self._limits)
        return values

    def _evaluate_identifier(self, node: IdentifierNode, _recurse) -> RuntimeValue:
        try:
            return self._scope.lookup(node.name)
        except KeyError:
            raise UndefinedVariableError(
                node.name, node.position, self._source, node.end_position
            ) from None

    def _evaluate_binary_op(self, node: BinaryOpNode, recurse) -> RuntimeValue:
        left = recurse(node.left)
        right = recurse(node.right)
        return evaluate_binary_operation(
            node.operator,
            left,
            right,
            node.position,
            self._source,
            node.end_position,
            self._limits,
        )

    def _evaluate_unary_op(self, node: UnaryOpNode, recurse) -> RuntimeValue:
        value = recurse(node.argument)
        return evaluate_unary_operation(
            node.operator, value, node.position, self._source, node.end_position
        )

    def _evaluate_function_call(self, node: FunctionCallNode, recurse) -> RuntimeValue:
        if node.name not in self._functions:
            raise UndefinedFunctionError(
                node.name, node.position, self._source, node.end_position
            )
        fn = self._functions[node.name]
        if not callable(fn):
            raise UndefinedFunctionError(
                node.name,
                node.position,
                self._source,
                node.end_position,
                not_callable=True,
            )

        args = [recurse(arg) for arg in node.args]

        try:
            result = fn(*args)
        except ExpressionError as e:
            if e.position is None:
                e.position = node.position
                e.expression = self._source
                e.end = node.end_position
            raise
        except Exception as e:
            logger.debug(
                "host_function_failed",
                extra={"function": node.name, "error": str(e)},
            )
            raise BuiltinError(
                node.name, str(e), node.position, self._source, node.end_position
            ) from e

        try:
            return normalize_value(result)
        except EvaluationError as e:
            raise BuiltinError(
                node.name,
                f"returned unsupported value ({e.message})",
                node.position,
                self._source,
                node.end_position,
            ) from None

    def _evaluate_assignment(self, node: AssignmentNode, recurse) -> RuntimeValue:
        if node.name in self._external:
            logger.debug("external_override_applied", extra={"variable": node.name})
            value = self._globals.lookup(node.name)
        else:
            value = recurse(node.value)
        self._scope.bind(node.name, value)
        return value

    def _evaluate_if(self, node: IfExpressionNode, recurse) -> RuntimeValue:
        condition = recurse(node.condition)
        if is_truthy(condition, node.position, self._source, node.end_position):
            return recurse(node.consequent)
        return recurse(node.alternate)

    def _evaluate_for(self, node: ForExpressionNode, recurse) -> RuntimeValue:
        iterable = recurse(node.iterable)

        items: List[RuntimeValue]
        if isinstance(iterable, str):
            items = list(iterable)
        elif isinstance(iterable, range):
            items = [float(i) for i in iterable]
        elif is_array(iterable):
            items = list(iterable)
        else:
            raise ExprTypeError(
                "array or string",
                get_type_name(iterable),
                node.position,
                self._source,
                node.end_position,
                context="For expression",
            )

        results: List[RuntimeValue] = []
        outer = self._scope
        try:
            for item in items:
                self._scope = Scope(outer)
                self._scope.bind(node.variable, item)

                if node.guard is not None:
                    guard_value = recurse(node.guard)
                    if not is_truthy(
                        guard_value, node.guard.position, self._source, node.guard.end_position
                    ):
                        continue

                results.append(recurse(node.body))
        finally:
            self._scope = outer

        check_array_length(len(results), self._limits)
        return results

    def _evaluate_index_access(self, node: IndexAccessNode, recurse) -> RuntimeValue:
        obj = recurse(node.object)
        index = recurse(node.index)
        return resolve_index(obj, index, node.position, self._source, node.end_position)

    def _evaluate_range(self, node: RangeExpressionNode, recurse) -> RuntimeValue:
        start = recurse(node.start)
        end = recurse(node.end)
        return build_range(
            start,
            end,
            node.inclusive,
            node.position,
            self._source,
            node.end_position,
            self._limits,
        )


def _prepare(
    input: Union[str, AstNode], context: Optional[ExecutionContext]
) -> Tuple[AstNode, ExecutionContext]:
    context = context or ExecutionContext()
    if isinstance(input, str):
        if context.source is None:
            context = replace(context, source=input)
        return parse(input, context.limits), context
    return input, context


def evaluate(
    input: Union[str, AstNode], context: Optional[ExecutionContext] = None
) -> RuntimeValue:
    """
    Evaluates source text or an AST and returns the value of the last statement.

    Args:
        input: Source text or a parsed AST
        context: Optional execution context with functions and variables

    Returns:
        The resulting runtime value

    Raises:
        ExpressionError: If parsing or evaluation fails
    """
    ast, context = _prepare(input, context)
    return Evaluator(context).evaluate(ast)


def evaluate_scope(
    input: Union[str, AstNode], context: Optional[ExecutionContext] = None
) -> Dict[str, RuntimeValue]:
    """
    Evaluates source text or an AST and returns every top-level binding.

    External variables are included alongside the names the script assigns;
    for a name assigned more than once the last value wins.
    """
    ast, context = _prepare(input, context)
    evaluator = Evaluator(context)
    evaluator.evaluate(ast)
    return evaluator.variables


def try_evaluate(
    input: Union[str, AstNode], context: Optional[ExecutionContext] = None
) -> EvaluationResult:
    """
    Evaluates without raising for language errors.

    Returns:
        The evaluation result with value, success status and, on failure,
        the error message and its diagnostic record
    """
    evaluator: Optional[Evaluator] = None
    try:
        ast, context = _prepare(input, context)
        evaluator = Evaluator(context)
        value = evaluator.evaluate(ast)
        return EvaluationResult(value=value, success=True, variables=evaluator.variables)
    except ExpressionError as error:
        return EvaluationResult(
            value=None,
            success=False,
            error=error.message,
            diagnostic=error.to_diagnostic(),
            variables=evaluator.variables if evaluator is not None else {},
        )
