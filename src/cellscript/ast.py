"""
Abstract Syntax Tree (AST) node types for the cellscript language.

The AST is produced by the parser (or the optimizer, which always builds a
new tree) and consumed by the evaluator and the code generator. Nodes are
frozen dataclasses; `position`/`end_position` record source offsets for
diagnostics and take no part in equality.
"""

import math
from abc import ABC
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Set, Union

# ============================================================
# Operator Types
# ============================================================

UnaryOperator = Literal["!", "-"]

BinaryOperator = Literal[
    "+",
    "-",
    "*",
    "/",
    "%",
    "^",
    "==",
    "!=",
    "<",
    ">",
    "<=",
    ">=",
    "&&",
    "||",
]

# Precedence slots, lowest to highest. Prefix constructs (if/for) bind
# loosest of all and have no slot.
PRECEDENCE_NONE = 0
PRECEDENCE_ASSIGNMENT = 1
PRECEDENCE_TERNARY = 2
PRECEDENCE_OR = 3
PRECEDENCE_AND = 4
PRECEDENCE_COMPARISON = 5
PRECEDENCE_RANGE = 6
PRECEDENCE_ADDITIVE = 7
PRECEDENCE_MULTIPLICATIVE = 8
PRECEDENCE_UNARY = 9
PRECEDENCE_EXPONENT = 10
PRECEDENCE_POSTFIX = 11

BINARY_OPERATOR_PRECEDENCE: Dict[str, int] = {
    "||": PRECEDENCE_OR,
    "&&": PRECEDENCE_AND,
    "==": PRECEDENCE_COMPARISON,
    "!=": PRECEDENCE_COMPARISON,
    "<": PRECEDENCE_COMPARISON,
    ">": PRECEDENCE_COMPARISON,
    "<=": PRECEDENCE_COMPARISON,
    ">=": PRECEDENCE_COMPARISON,
    "+": PRECEDENCE_ADDITIVE,
    "-": PRECEDENCE_ADDITIVE,
    "*": PRECEDENCE_MULTIPLICATIVE,
    "/": PRECEDENCE_MULTIPLICATIVE,
    "%": PRECEDENCE_MULTIPLICATIVE,
    "^": PRECEDENCE_EXPONENT,
}


def get_operator_precedence(operator: str) -> int:
    """Returns the precedence of a binary operator (0 if unknown)."""
    return BINARY_OPERATOR_PRECEDENCE.get(operator, PRECEDENCE_NONE)


def is_right_associative(operator: str) -> bool:
    """Only exponentiation associates to the right."""
    return operator == "^"


# ============================================================
# AST Node Types
# ============================================================


@dataclass(frozen=True)
class AstNodeBase(ABC):
    """Base class for all AST nodes."""

    position: int = field(default=-1, compare=False, repr=False, kw_only=True)
    """Start offset in the source (for error reporting), -1 if synthesized."""

    end_position: int = field(default=-1, compare=False, repr=False, kw_only=True)
    """End offset in the source, -1 if synthesized."""


@dataclass(frozen=True)
class ProgramNode(AstNodeBase):
    """Sequence of two or more statements; the last one is the result."""

    statements: Sequence["AstNode"]

    @property
    def type(self) -> Literal["Program"]:
        return "Program"


@dataclass(frozen=True)
class NumberLiteralNode(AstNodeBase):
    """Number literal node."""

    value: float

    @property
    def type(self) -> Literal["NumberLiteral"]:
        return "NumberLiteral"


@dataclass(frozen=True)
class StringLiteralNode(AstNodeBase):
    """String literal node."""

    value: str

    @property
    def type(self) -> Literal["StringLiteral"]:
        return "StringLiteral"


@dataclass(frozen=True)
class BooleanLiteralNode(AstNodeBase):
    """Boolean literal node."""

    value: bool

    @property
    def type(self) -> Literal["BooleanLiteral"]:
        return "BooleanLiteral"


@dataclass(frozen=True)
class ArrayLiteralNode(AstNodeBase):
    """Array literal node."""

    elements: Sequence["AstNode"]

    @property
    def type(self) -> Literal["ArrayLiteral"]:
        return "ArrayLiteral"


@dataclass(frozen=True)
class IdentifierNode(AstNodeBase):
    """Identifier node."""

    name: str

    @property
    def type(self) -> Literal["Identifier"]:
        return "Identifier"


@dataclass(frozen=True)
class BinaryOpNode(AstNodeBase):
    """Binary operator node."""

    left: "AstNode"
    operator: BinaryOperator
    right: "AstNode"

    @property
    def type(self) -> Literal["BinaryOp"]:
        return "BinaryOp"


@dataclass(frozen=True)
class UnaryOpNode(AstNodeBase):
    """Unary operator node."""

    operator: UnaryOperator
    argument: "AstNode"

    @property
    def type(self) -> Literal["UnaryOp"]:
        return "UnaryOp"


@dataclass(frozen=True)
class FunctionCallNode(AstNodeBase):
    """Function call node."""

    name: str
    args: Sequence["AstNode"]

    @property
    def type(self) -> Literal["FunctionCall"]:
        return "FunctionCall"


@dataclass(frozen=True)
class AssignmentNode(AstNodeBase):
    """Assignment node (name = value)."""

    name: str
    value: "AstNode"

    @property
    def type(self) -> Literal["Assignment"]:
        return "Assignment"


@dataclass(frozen=True)
class IfExpressionNode(AstNodeBase):
    """Conditional node (if condition then consequent else alternate)."""

    condition: "AstNode"
    consequent: "AstNode"
    alternate: "AstNode"

    @property
    def type(self) -> Literal["IfExpression"]:
        return "IfExpression"


@dataclass(frozen=True)
class ForExpressionNode(AstNodeBase):
    """Comprehension node (for variable in iterable when guard then body)."""

    variable: str
    iterable: "AstNode"
    guard: Optional["AstNode"]
    body: "AstNode"

    @property
    def type(self) -> Literal["ForExpression"]:
        return "ForExpression"


@dataclass(frozen=True)
class IndexAccessNode(AstNodeBase):
    """Index access node (e.g., arr[0])."""

    object: "AstNode"
    index: "AstNode"

    @property
    def type(self) -> Literal["IndexAccess"]:
        return "IndexAccess"


@dataclass(frozen=True)
class RangeExpressionNode(AstNodeBase):
    """Range node (start..end or start..=end)."""

    start: "AstNode"
    end: "AstNode"
    inclusive: bool

    @property
    def type(self) -> Literal["RangeExpression"]:
        return "RangeExpression"


# Union type for all AST nodes
AstNode = Union[
    ProgramNode,
    NumberLiteralNode,
    StringLiteralNode,
    BooleanLiteralNode,
    ArrayLiteralNode,
    IdentifierNode,
    BinaryOpNode,
    UnaryOpNode,
    FunctionCallNode,
    AssignmentNode,
    IfExpressionNode,
    ForExpressionNode,
    IndexAccessNode,
    RangeExpressionNode,
]

NODE_TYPES = (
    "Program",
    "NumberLiteral",
    "StringLiteral",
    "BooleanLiteral",
    "ArrayLiteral",
    "Identifier",
    "BinaryOp",
    "UnaryOp",
    "FunctionCall",
    "Assignment",
    "IfExpression",
    "ForExpression",
    "IndexAccess",
    "RangeExpression",
)

LiteralNode = Union[NumberLiteralNode, StringLiteralNode, BooleanLiteralNode]


def is_literal(node: AstNode) -> bool:
    """Checks if a node is a number, string, or boolean literal."""
    return isinstance(node, (NumberLiteralNode, StringLiteralNode, BooleanLiteralNode))


# ============================================================
# Smart Constructors
# ============================================================

NodeLike = Union[AstNode, bool, int, float, str]


def _coerce(value: NodeLike) -> AstNode:
    """Wraps plain Python values as literal nodes; strings become string literals."""
    if isinstance(value, AstNodeBase):
        return value
    if isinstance(value, bool):
        return BooleanLiteralNode(value)
    if isinstance(value, (int, float)):
        return NumberLiteralNode(float(value))
    if isinstance(value, str):
        return StringLiteralNode(value)
    raise ValueError(f"Cannot build an AST node from {type(value).__name__}")


def program(statements: Iterable[NodeLike]) -> ProgramNode:
    return ProgramNode(tuple(_coerce(s) for s in statements))


def number(value: float) -> NumberLiteralNode:
    return NumberLiteralNode(float(value))


def string(value: str) -> StringLiteralNode:
    return StringLiteralNode(value)


def boolean(value: bool) -> BooleanLiteralNode:
    return BooleanLiteralNode(bool(value))


def array(elements: Iterable[NodeLike]) -> ArrayLiteralNode:
    return ArrayLiteralNode(tuple(_coerce(e) for e in elements))


def identifier(name: str) -> IdentifierNode:
    return IdentifierNode(name)


def binary_op(left: NodeLike, operator: BinaryOperator, right: NodeLike) -> BinaryOpNode:
    if operator not in BINARY_OPERATOR_PRECEDENCE:
        raise ValueError(f"Unknown binary operator: {operator}")
    return BinaryOpNode(_coerce(left), operator, _coerce(right))


def unary_op(operator: UnaryOperator, argument: NodeLike) -> UnaryOpNode:
    if operator not in ("-", "!"):
        raise ValueError(f"Unknown unary operator: {operator}")
    return UnaryOpNode(operator, _coerce(argument))


def function_call(name: str, args: Iterable[NodeLike] = ()) -> FunctionCallNode:
    return FunctionCallNode(name, tuple(_coerce(a) for a in args))


def assign(name: str, value: NodeLike) -> AssignmentNode:
    return AssignmentNode(name, _coerce(value))


def if_expr(condition: NodeLike, consequent: NodeLike, alternate: NodeLike) -> IfExpressionNode:
    return IfExpressionNode(_coerce(condition), _coerce(consequent), _coerce(alternate))


def for_expr(
    variable: str,
    iterable: NodeLike,
    guard: Optional[NodeLike],
    body: NodeLike,
) -> ForExpressionNode:
    return ForExpressionNode(
        variable,
        _coerce(iterable),
        _coerce(guard) if guard is not None else None,
        _coerce(body),
    )


def index_access(obj: NodeLike, index: NodeLike) -> IndexAccessNode:
    return IndexAccessNode(_coerce(obj), _coerce(index))


def range_expr(start: NodeLike, end: NodeLike, inclusive: bool = False) -> RangeExpressionNode:
    return RangeExpressionNode(_coerce(start), _coerce(end), inclusive)


# Convenience builders for common operations


def add(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "+", right)


def subtract(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "-", right)


def multiply(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "*", right)


def divide(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "/", right)


def modulo(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "%", right)


def exponentiate(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "^", right)


def negate(argument: NodeLike) -> UnaryOpNode:
    return unary_op("-", argument)


def logical_not(argument: NodeLike) -> UnaryOpNode:
    return unary_op("!", argument)


def equals(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "==", right)


def not_equals(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "!=", right)


def less_than(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "<", right)


def greater_than(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, ">", right)


def less_equal(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "<=", right)


def greater_equal(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, ">=", right)


def logical_and(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "&&", right)


def logical_or(left: NodeLike, right: NodeLike) -> BinaryOpNode:
    return binary_op(left, "||", right)


# ============================================================
# AST Utilities
# ============================================================


def child_nodes(node: AstNode) -> List[AstNode]:
    """Returns the direct children of a node in evaluation order."""
    if isinstance(node, ProgramNode):
        return list(node.statements)
    if isinstance(node, ArrayLiteralNode):
        return list(node.elements)
    if isinstance(node, BinaryOpNode):
        return [node.left, node.right]
    if isinstance(node, UnaryOpNode):
        return [node.argument]
    if isinstance(node, FunctionCallNode):
        return list(node.args)
    if isinstance(node, AssignmentNode):
        return [node.value]
    if isinstance(node, IfExpressionNode):
        return [node.condition, node.consequent, node.alternate]
    if isinstance(node, ForExpressionNode):
        children = [node.iterable]
        if node.guard is not None:
            children.append(node.guard)
        children.append(node.body)
        return children
    if isinstance(node, IndexAccessNode):
        return [node.object, node.index]
    if isinstance(node, RangeExpressionNode):
        return [node.start, node.end]
    return []


def count_ast_nodes(node: AstNode) -> int:
    """Counts the total number of nodes in an AST."""
    count = 0
    stack = [node]
    while stack:
        current = stack.pop()
        count += 1
        stack.extend(child_nodes(current))
    return count


def calculate_ast_depth(node: AstNode) -> int:
    """Calculates the maximum depth of an AST without recursing."""
    max_depth = 0
    stack = [(node, 1)]
    while stack:
        current, depth = stack.pop()
        max_depth = max(max_depth, depth)
        for child in child_nodes(current):
            stack.append((child, depth + 1))
    return max_depth


def collect_identifiers(node: AstNode) -> Set[str]:
    """
    Collects every identifier name referenced in an AST.

    Assignment targets and loop variables are bindings, not references, and
    are not collected (a loop variable read inside its body is).
    """
    names: Set[str] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, IdentifierNode):
            names.add(current.name)
        stack.extend(child_nodes(current))
    return names


def format_number(value: float) -> str:
    """Formats a number the way the language spells literals."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value)) if value != 0 or math.copysign(1.0, value) > 0 else "-0"
    return repr(value)


def ast_to_string(node: AstNode, indent: int = 0) -> str:
    """Returns a human-readable representation of an AST node for debugging."""
    prefix = "  " * indent

    if isinstance(node, ProgramNode):
        statements_str = "\n".join(ast_to_string(s, indent + 1) for s in node.statements)
        return f"{prefix}Program:\n{statements_str}"

    if isinstance(node, StringLiteralNode):
        return f'{prefix}String: "{node.value}"'

    if isinstance(node, NumberLiteralNode):
        return f"{prefix}Number: {format_number(node.value)}"

    if isinstance(node, BooleanLiteralNode):
        return f"{prefix}Boolean: {'true' if node.value else 'false'}"

    if isinstance(node, ArrayLiteralNode):
        elements_str = "\n".join(ast_to_string(e, indent + 1) for e in node.elements)
        return f"{prefix}Array:\n{elements_str}" if node.elements else f"{prefix}Array: []"

    if isinstance(node, IdentifierNode):
        return f"{prefix}Identifier: {node.name}"

    if isinstance(node, BinaryOpNode):
        return (
            f"{prefix}BinaryOp: {node.operator}\n"
            f"{ast_to_string(node.left, indent + 1)}\n"
            f"{ast_to_string(node.right, indent + 1)}"
        )

    if isinstance(node, UnaryOpNode):
        return f"{prefix}UnaryOp: {node.operator}\n{ast_to_string(node.argument, indent + 1)}"

    if isinstance(node, FunctionCallNode):
        args_str = "".join("\n" + ast_to_string(a, indent + 1) for a in node.args)
        return f"{prefix}FunctionCall: {node.name}{args_str}"

    if isinstance(node, AssignmentNode):
        return f"{prefix}Assignment: {node.name}\n{ast_to_string(node.value, indent + 1)}"

    if isinstance(node, IfExpressionNode):
        return (
            f"{prefix}IfExpression:\n"
            f"{prefix}  condition:\n{ast_to_string(node.condition, indent + 2)}\n"
            f"{prefix}  consequent:\n{ast_to_string(node.consequent, indent + 2)}\n"
            f"{prefix}  alternate:\n{ast_to_string(node.alternate, indent + 2)}"
        )

    if isinstance(node, ForExpressionNode):
        guard_str = (
            f"{prefix}  guard:\n{ast_to_string(node.guard, indent + 2)}\n"
            if node.guard is not None
            else ""
        )
        return (
            f"{prefix}ForExpression: {node.variable}\n"
            f"{prefix}  iterable:\n{ast_to_string(node.iterable, indent + 2)}\n"
            f"{guard_str}"
            f"{prefix}  body:\n{ast_to_string(node.body, indent + 2)}"
        )

    if isinstance(node, IndexAccessNode):
        return (
            f"{prefix}IndexAccess:\n"
            f"{prefix}  object:\n{ast_to_string(node.object, indent + 2)}\n"
            f"{prefix}  index:\n{ast_to_string(node.index, indent + 2)}"
        )

    if isinstance(node, RangeExpressionNode):
        operator = "..=" if node.inclusive else ".."
        return (
            f"{prefix}RangeExpression: {operator}\n"
            f"{ast_to_string(node.start, indent + 1)}\n"
            f"{ast_to_string(node.end, indent + 1)}"
        )

    return f"{prefix}Unknown: {node}"
