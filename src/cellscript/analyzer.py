"""
Static analysis helpers for hosts that present scripts as forms.
"""

from typing import AbstractSet, List

from .ast import (
    AssignmentNode,
    AstNode,
    ForExpressionNode,
    IdentifierNode,
    ProgramNode,
    child_nodes,
)
from .visitor import visit_partial


def _references_outer_name(node: AstNode, bound: AbstractSet[str] = frozenset()) -> bool:
    """Checks if a node reads a name not bound by an enclosing for expression."""

    def on_identifier(n: IdentifierNode, _recurse) -> bool:
        return n.name not in bound

    def on_for(n: ForExpressionNode, recurse) -> bool:
        if recurse(n.iterable):
            return True
        inner = set(bound) | {n.variable}
        parts = [n.body] if n.guard is None else [n.guard, n.body]
        return any(_references_outer_name(p, inner) for p in parts)

    def default(n: AstNode, recurse) -> bool:
        return any(recurse(child) for child in child_nodes(n))

    return visit_partial(
        node, {"Identifier": on_identifier, "ForExpression": on_for}, default
    )


def extract_input_variables(ast: AstNode) -> List[str]:
    """
    Returns the names of top-level assignments whose value reads no variable.

    These are the script's tunable inputs: `price = 100; tax = price * 0.08`
    yields `["price"]`. Constant expressions and calls with constant
    arguments count as inputs. Names are deduplicated in definition order.
    """
    statements = ast.statements if isinstance(ast, ProgramNode) else [ast]

    names: List[str] = []
    for statement in statements:
        if isinstance(statement, AssignmentNode) and statement.name not in names:
            if not _references_outer_name(statement.value):
                names.append(statement.name)
    return names


def extract_assigned_variables(ast: AstNode) -> List[str]:
    """Returns every assigned name, nested ones included, in definition order."""
    names: List[str] = []

    def on_assignment(n: AssignmentNode, recurse) -> None:
        if n.name not in names:
            names.append(n.name)
        recurse(n.value)

    def default(n: AstNode, recurse) -> None:
        for child in child_nodes(n):
            recurse(child)

    visit_partial(ast, {"Assignment": on_assignment}, default)
    return names
