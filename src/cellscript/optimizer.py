"""
AST optimizer.

Produces a new tree; the input is never modified. Passes:
- constant folding of operators, conditionals and literal index access,
  using the same operator semantics as the evaluator;
- optional constant propagation between top-level statements;
- dead-assignment elimination over the top-level statement sequence.

Folding a literal division or modulo by zero raises DivisionByZeroError
at optimize time, exactly as evaluation would.
"""

import logging
from dataclasses import replace
from typing import AbstractSet, Dict, List, Optional, Set

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
    child_nodes,
    collect_identifiers,
    is_literal,
)
from .errors import ExpressionError
from .errors import TypeError as ExprTypeError
from .operations import evaluate_binary_operation, evaluate_unary_operation, resolve_index
from .values import is_number, is_truthy
from .visitor import visit

logger = logging.getLogger(__name__)


def _literal_for(value, original: AstNode) -> Optional[AstNode]:
    """Wraps a folded value as a literal node, or None if it has no literal form."""
    span = {"position": original.position, "end_position": original.end_position}
    if isinstance(value, bool):
        return BooleanLiteralNode(value, **span)
    if is_number(value):
        if value != value:
            return None
        return NumberLiteralNode(float(value), **span)
    if isinstance(value, str):
        return StringLiteralNode(value, **span)
    return None


def _has_side_effects(node: AstNode) -> bool:
    """Checks if evaluating a node may call a function or bind a name."""
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, (FunctionCallNode, AssignmentNode)):
            return True
        stack.extend(child_nodes(current))
    return False


# ============================================================
# Constant Folding
# ============================================================


def _fold_program(node: ProgramNode, recurse) -> AstNode:
    return replace(node, statements=tuple(recurse(s) for s in node.statements))


def _fold_leaf(node: AstNode, _recurse) -> AstNode:
    return node


def _fold_array(node: ArrayLiteralNode, recurse) -> AstNode:
    return replace(node, elements=tuple(recurse(e) for e in node.elements))


def _fold_binary_op(node: BinaryOpNode, recurse) -> AstNode:
    left = recurse(node.left)
    right = recurse(node.right)
    rebuilt = replace(node, left=left, right=right)

    if not (is_literal(left) and is_literal(right)):
        return rebuilt

    try:
        value = evaluate_binary_operation(
            node.operator, left.value, right.value, node.position, None, node.end_position
        )
    except ExprTypeError:
        # Left for evaluation to report
        return rebuilt

    folded = _literal_for(value, node)
    if folded is None:
        return rebuilt
    logger.debug("constant_folded", extra={"node_type": node.type, "operator": node.operator})
    return folded


def _fold_unary_op(node: UnaryOpNode, recurse) -> AstNode:
    argument = recurse(node.argument)
    rebuilt = replace(node, argument=argument)

    if not isinstance(argument, (NumberLiteralNode, BooleanLiteralNode)):
        return rebuilt

    try:
        value = evaluate_unary_operation(
            node.operator, argument.value, node.position, None, node.end_position
        )
    except ExprTypeError:
        return rebuilt

    folded = _literal_for(value, node)
    if folded is None:
        return rebuilt
    logger.debug("constant_folded", extra={"node_type": node.type, "operator": node.operator})
    return folded


def _fold_if(node: IfExpressionNode, recurse) -> AstNode:
    condition = recurse(node.condition)

    # The untaken branch is dropped without being optimized
    if isinstance(condition, (BooleanLiteralNode, NumberLiteralNode)):
        taken = node.consequent if is_truthy(condition.value) else node.alternate
        logger.debug("constant_folded", extra={"node_type": node.type})
        return recurse(taken)

    return replace(
        node,
        condition=condition,
        consequent=recurse(node.consequent),
        alternate=recurse(node.alternate),
    )


def _fold_for(node: ForExpressionNode, recurse) -> AstNode:
    return replace(
        node,
        iterable=recurse(node.iterable),
        guard=recurse(node.guard) if node.guard is not None else None,
        body=recurse(node.body),
    )


def _fold_index_access(node: IndexAccessNode, recurse) -> AstNode:
    obj = recurse(node.object)
    index = recurse(node.index)
    rebuilt = replace(node, object=obj, index=index)

    if not isinstance(index, NumberLiteralNode):
        return rebuilt

    if isinstance(obj, StringLiteralNode):
        target = obj.value
    elif isinstance(obj, ArrayLiteralNode) and all(is_literal(e) for e in obj.elements):
        target = obj.elements
    else:
        return rebuilt

    try:
        element = resolve_index(target, index.value)
    except ExpressionError:
        # Out-of-range and non-integer indices fail at evaluation
        return rebuilt

    logger.debug("constant_folded", extra={"node_type": node.type})
    if isinstance(element, str) and isinstance(obj, StringLiteralNode):
        return StringLiteralNode(element, position=node.position, end_position=node.end_position)
    return element


def _fold_function_call(node: FunctionCallNode, recurse) -> AstNode:
    return replace(node, args=tuple(recurse(a) for a in node.args))


def _fold_assignment(node: AssignmentNode, recurse) -> AstNode:
    return replace(node, value=recurse(node.value))


def _fold_range(node: RangeExpressionNode, recurse) -> AstNode:
    return replace(node, start=recurse(node.start), end=recurse(node.end))


FOLD_HANDLERS = {
    "Program": _fold_program,
    "NumberLiteral": _fold_leaf,
    "StringLiteral": _fold_leaf,
    "BooleanLiteral": _fold_leaf,
    "Identifier": _fold_leaf,
    "ArrayLiteral": _fold_array,
    "BinaryOp": _fold_binary_op,
    "UnaryOp": _fold_unary_op,
    "IfExpression": _fold_if,
    "ForExpression": _fold_for,
    "IndexAccess": _fold_index_access,
    "FunctionCall": _fold_function_call,
    "Assignment": _fold_assignment,
    "RangeExpression": _fold_range,
}


def fold_constants(node: AstNode) -> AstNode:
    """Folds literal subexpressions bottom-up and returns the new tree."""
    return visit(node, FOLD_HANDLERS)


# ============================================================
# Constant Propagation
# ============================================================


def _assignment_counts(statements: List[AstNode]) -> Dict[str, int]:
    """Counts assignments per name at every depth."""
    counts: Dict[str, int] = {}
    stack = list(statements)
    while stack:
        current = stack.pop()
        if isinstance(current, AssignmentNode):
            counts[current.name] = counts.get(current.name, 0) + 1
        stack.extend(child_nodes(current))
    return counts


def _loop_variables(statements: List[AstNode]) -> Set[str]:
    names: Set[str] = set()
    stack = list(statements)
    while stack:
        current = stack.pop()
        if isinstance(current, ForExpressionNode):
            names.add(current.variable)
        stack.extend(child_nodes(current))
    return names


def _substitute(node: AstNode, name: str, value: AstNode) -> AstNode:
    """Replaces references to `name` with `value`, respecting loop shadowing."""

    def substitute_identifier(n: IdentifierNode, _recurse) -> AstNode:
        return value if n.name == name else n

    def substitute_for(n: ForExpressionNode, recurse) -> AstNode:
        iterable = recurse(n.iterable)
        if n.variable == name:
            return replace(n, iterable=iterable)
        return replace(
            n,
            iterable=iterable,
            guard=recurse(n.guard) if n.guard is not None else None,
            body=recurse(n.body),
        )

    handlers = dict(FOLD_HANDLERS)
    handlers.update(
        {
            "Identifier": substitute_identifier,
            "ForExpression": substitute_for,
            # Rebuild without folding; folding runs as its own pass
            "BinaryOp": lambda n, r: replace(n, left=r(n.left), right=r(n.right)),
            "UnaryOp": lambda n, r: replace(n, argument=r(n.argument)),
            "IfExpression": lambda n, r: replace(
                n,
                condition=r(n.condition),
                consequent=r(n.consequent),
                alternate=r(n.alternate),
            ),
            "IndexAccess": lambda n, r: replace(n, object=r(n.object), index=r(n.index)),
        }
    )
    return visit(node, handlers)


def _propagate_constants(
    statements: List[AstNode], external_variables: AbstractSet[str]
) -> List[AstNode]:
    """
    Substitutes single-assignment literal names into later statements.

    Names the host may override, names assigned more than once anywhere, and
    loop variables are never propagated. Each substitution is followed by a
    folding pass, which can expose further literal assignments.
    """
    counts = _assignment_counts(statements)
    excluded = set(external_variables) | _loop_variables(statements)
    propagated: Set[str] = set()

    while True:
        candidate = None
        for i, statement in enumerate(statements):
            if (
                isinstance(statement, AssignmentNode)
                and is_literal(statement.value)
                and counts.get(statement.name) == 1
                and statement.name not in excluded
                and statement.name not in propagated
            ):
                candidate = i
                break

        if candidate is None:
            return statements

        assignment = statements[candidate]
        propagated.add(assignment.name)
        logger.debug("constant_propagated", extra={"variable": assignment.name})

        statements = statements[: candidate + 1] + [
            fold_constants(_substitute(s, assignment.name, assignment.value))
            for s in statements[candidate + 1 :]
        ]


# ============================================================
# Dead Assignment Elimination
# ============================================================


def _eliminate_dead_assignments(statements: List[AstNode]) -> List[AstNode]:
    """
    Drops top-level assignments whose name is never read afterwards.

    The final statement is always kept. Assignments whose value may have
    side effects are kept as well.
    """
    if not statements:
        return statements

    live = collect_identifiers(statements[-1])
    kept = [statements[-1]]

    for statement in reversed(statements[:-1]):
        if isinstance(statement, AssignmentNode):
            if statement.name not in live and not _has_side_effects(statement.value):
                logger.debug(
                    "dead_assignment_eliminated", extra={"variable": statement.name}
                )
                continue
        live |= collect_identifiers(statement)
        kept.append(statement)

    kept.reverse()
    return kept


def optimize(
    ast: AstNode, external_variables: Optional[AbstractSet[str]] = None
) -> AstNode:
    """
    Optimizes an AST.

    Args:
        ast: The tree to optimize
        external_variables: Names the host may supply at evaluation time.
            When given, single-assignment literal names outside this set are
            propagated into later statements. When None, no propagation
            happens.

    Returns:
        A new, optimized tree

    Raises:
        DivisionByZeroError: If a literal division or modulo by zero is folded
    """
    folded = fold_constants(ast)
    if not isinstance(folded, ProgramNode):
        return folded

    statements = list(folded.statements)
    if external_variables is not None:
        statements = _propagate_constants(statements, external_variables)
    statements = _eliminate_dead_assignments(statements)

    if len(statements) == 1:
        return statements[0]
    return replace(folded, statements=tuple(statements))
