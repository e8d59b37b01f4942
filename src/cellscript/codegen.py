"""
Code generator.

Turns an AST back into source text that re-parses to an equivalent tree.
Parentheses are only emitted where precedence or associativity requires
them.
"""

import math
from typing import List

from .ast import (
    PRECEDENCE_ASSIGNMENT,
    PRECEDENCE_NONE,
    PRECEDENCE_POSTFIX,
    PRECEDENCE_RANGE,
    PRECEDENCE_UNARY,
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
    get_operator_precedence,
    is_right_associative,
)
from .visitor import visit

# Statements starting with these would continue the previous statement
_CONTINUATION_STARTS = ("-", "(", "[")

_STRING_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def format_number_literal(value: float) -> str:
    """Spells a number so that it reads back as the same float."""
    if math.isnan(value):
        return "(0 * 1e999)"
    if math.isinf(value):
        return "1e999" if value > 0 else "-1e999"
    if value == 0 and math.copysign(1.0, value) < 0:
        return "-0"
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def escape_string(value: str) -> str:
    """Escapes a string for a double-quoted literal."""
    return "".join(_STRING_ESCAPES.get(ch, ch) for ch in value)


def node_precedence(node: AstNode) -> int:
    """Precedence at which the generated text of a node binds."""
    if isinstance(node, BinaryOpNode):
        return get_operator_precedence(node.operator)
    if isinstance(node, RangeExpressionNode):
        return PRECEDENCE_RANGE
    if isinstance(node, AssignmentNode):
        return PRECEDENCE_ASSIGNMENT
    if isinstance(node, (IfExpressionNode, ForExpressionNode, ProgramNode)):
        return PRECEDENCE_NONE
    if isinstance(node, UnaryOpNode):
        return PRECEDENCE_UNARY
    if isinstance(node, NumberLiteralNode) and not math.isnan(node.value):
        if math.copysign(1.0, node.value) < 0:
            return PRECEDENCE_UNARY
    return PRECEDENCE_POSTFIX


def _wrap(code: str) -> str:
    return f"({code})"


def _generate_program(node: ProgramNode, recurse) -> str:
    lines: List[str] = [recurse(s) for s in node.statements]
    wrapped = [False] * len(lines)

    # Backwards, since a wrapped statement itself starts with "("
    for i in range(len(lines) - 1, 0, -1):
        if wrapped[i] or lines[i].startswith(_CONTINUATION_STARTS):
            wrapped[i - 1] = True
            wrapped[i] = True

    return "\n".join(_wrap(line) if wrap else line for line, wrap in zip(lines, wrapped))


def _generate_number(node: NumberLiteralNode, _recurse) -> str:
    return format_number_literal(node.value)


def _generate_string(node: StringLiteralNode, _recurse) -> str:
    return f'"{escape_string(node.value)}"'


def _generate_boolean(node: BooleanLiteralNode, _recurse) -> str:
    return "true" if node.value else "false"


def _generate_array(node: ArrayLiteralNode, recurse) -> str:
    return f"[{', '.join(recurse(e) for e in node.elements)}]"


def _generate_identifier(node: IdentifierNode, _recurse) -> str:
    return node.name


def _generate_binary_op(node: BinaryOpNode, recurse) -> str:
    precedence = get_operator_precedence(node.operator)
    right_associative = is_right_associative(node.operator)

    left = recurse(node.left)
    left_precedence = node_precedence(node.left)
    if left_precedence < precedence or (
        left_precedence == precedence and right_associative
    ):
        left = _wrap(left)

    right = recurse(node.right)
    right_precedence = node_precedence(node.right)
    if right_precedence < precedence or (
        right_precedence == precedence and not right_associative
    ):
        right = _wrap(right)

    return f"{left} {node.operator} {right}"


def _generate_unary_op(node: UnaryOpNode, recurse) -> str:
    argument = recurse(node.argument)
    if isinstance(
        node.argument,
        (
            BinaryOpNode,
            RangeExpressionNode,
            AssignmentNode,
            IfExpressionNode,
            ForExpressionNode,
        ),
    ):
        argument = _wrap(argument)
    return f"{node.operator}{argument}"


def _generate_function_call(node: FunctionCallNode, recurse) -> str:
    return f"{node.name}({', '.join(recurse(a) for a in node.args)})"


def _generate_assignment(node: AssignmentNode, recurse) -> str:
    return f"{node.name} = {recurse(node.value)}"


def _generate_if(node: IfExpressionNode, recurse) -> str:
    return (
        f"if {recurse(node.condition)} then {recurse(node.consequent)} "
        f"else {recurse(node.alternate)}"
    )


def _generate_for(node: ForExpressionNode, recurse) -> str:
    parts = [f"for {node.variable} in {recurse(node.iterable)}"]
    if node.guard is not None:
        parts.append(f"when {recurse(node.guard)}")
    parts.append(f"then {recurse(node.body)}")
    return " ".join(parts)


def _generate_index_access(node: IndexAccessNode, recurse) -> str:
    obj = recurse(node.object)
    if node_precedence(node.object) < PRECEDENCE_POSTFIX:
        obj = _wrap(obj)
    return f"{obj}[{recurse(node.index)}]"


def _generate_range(node: RangeExpressionNode, recurse) -> str:
    start = recurse(node.start)
    if node_precedence(node.start) < PRECEDENCE_RANGE:
        start = _wrap(start)

    end = recurse(node.end)
    if node_precedence(node.end) <= PRECEDENCE_RANGE:
        end = _wrap(end)

    operator = "..=" if node.inclusive else ".."
    return f"{start}{operator}{end}"


GENERATE_HANDLERS = {
    "Program": _generate_program,
    "NumberLiteral": _generate_number,
    "StringLiteral": _generate_string,
    "BooleanLiteral": _generate_boolean,
    "ArrayLiteral": _generate_array,
    "Identifier": _generate_identifier,
    "BinaryOp": _generate_binary_op,
    "UnaryOp": _generate_unary_op,
    "FunctionCall": _generate_function_call,
    "Assignment": _generate_assignment,
    "IfExpression": _generate_if,
    "ForExpression": _generate_for,
    "IndexAccess": _generate_index_access,
    "RangeExpression": _generate_range,
}


def generate(node: AstNode) -> str:
    """
    Generates source text from an AST.

    Args:
        node: The tree to render

    Returns:
        Source text that parses back to an equivalent tree

    Raises:
        ValueError: If the tree contains something that is not an AST node
    """
    return visit(node, GENERATE_HANDLERS)
