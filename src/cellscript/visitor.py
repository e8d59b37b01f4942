"""
Recursive dispatcher shared by the optimizer, evaluator and code generator.

A handler table maps each node type name (`node.type`) to a function taking
the node and a `recurse` callback. Handlers decide which children to visit
and in what order by calling `recurse(child)`.
"""

from typing import Callable, Mapping, Optional, TypeVar

from .ast import NODE_TYPES, AstNode, AstNodeBase

T = TypeVar("T")

Recurse = Callable[[AstNode], T]
Handler = Callable[[AstNode, Callable[[AstNode], T]], T]


def _node_type(node: object) -> str:
    if not isinstance(node, AstNodeBase):
        raise ValueError(f"Not an AST node: {node!r}")
    node_type = getattr(node, "type", None)
    if node_type not in NODE_TYPES:
        raise ValueError(f"Unknown node type: {node_type!r}")
    return node_type


def visit(node: AstNode, handlers: Mapping[str, Handler[T]]) -> T:
    """
    Dispatches `node` to the handler registered for its type.

    Args:
        node: The node to visit
        handlers: Handler per node type; every type reached must be present

    Returns:
        The handler's result

    Raises:
        ValueError: If the node is not an AST node or has no handler
    """

    def recurse(child: AstNode) -> T:
        return visit(child, handlers)

    node_type = _node_type(node)
    handler = handlers.get(node_type)
    if handler is None:
        raise ValueError(f"No handler for node type: {node_type}")
    return handler(node, recurse)


def visit_partial(
    node: AstNode,
    handlers: Mapping[str, Handler[T]],
    default_handler: Handler[T],
) -> T:
    """Like `visit`, but node types without a handler go to `default_handler`."""

    def recurse(child: AstNode) -> T:
        return visit_partial(child, handlers, default_handler)

    node_type = _node_type(node)
    handler: Optional[Handler[T]] = handlers.get(node_type)
    return (handler or default_handler)(node, recurse)
