"""
Resource limits for parsing and evaluation.

These limits protect hosts against runaway scripts: oversized sources,
pathologically nested expressions, and huge ranges or arrays.
"""

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

from .errors import LimitExceededError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpressionLimits:
    """Expression limits configuration."""

    # Maximum source length in characters
    max_expression_length: int = 16384

    # Maximum nesting level while parsing
    max_ast_depth: int = 128

    # Maximum depth of the finished tree, flat operator chains included
    max_tree_depth: int = 200

    # Maximum number of AST nodes
    max_ast_nodes: int = 10000

    # Maximum string literal length
    max_string_length: int = 4096

    # Maximum array length (literals and computed arrays)
    max_array_length: int = 10000

    # Maximum function call arguments
    max_function_args: int = 64

    # Maximum number of integers a range may produce
    max_range_length: int = 1_000_000

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ExpressionLimits":
        """
        Builds limits from a plain mapping, e.g. a parsed config file.

        Missing keys keep their defaults. Unknown keys and non-integer
        values are rejected.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown expression limit(s): {', '.join(unknown)}")

        values = {}
        for key, value in data.items():
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"Expression limit {key} must be a positive integer")
            values[key] = value
        return cls(**values)


# Default expression limits.
#
# These values allow spreadsheet-sized scripts while keeping recursion
# well inside the interpreter's stack.
DEFAULT_EXPRESSION_LIMITS = ExpressionLimits()


def load_expression_limits(path: Union[str, Path]) -> ExpressionLimits:
    """
    Loads limits from a JSON or YAML file.

    Files ending in `.json` are read as JSON, everything else as YAML. An
    optional top-level `limits` key may wrap the values.
    """
    file_path = Path(path)
    content = file_path.read_text(encoding="utf-8")

    if file_path.suffix.lower() == ".json":
        parsed = json.loads(content)
        format = "json"
    else:
        parsed = yaml.safe_load(content or "") or {}
        format = "yaml"

    if not isinstance(parsed, dict):
        raise ValueError(f"Expression limits file must contain a mapping: {file_path}")

    if isinstance(parsed.get("limits"), dict):
        parsed = parsed["limits"]

    limits = ExpressionLimits.from_mapping(parsed)
    logger.info(
        "expression_limits_loaded",
        extra={"path": str(file_path), "format": format},
    )
    return limits


def check_expression_length(
    expression: str, limits: Optional[ExpressionLimits] = None
) -> None:
    """Validates that source length is within limits."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if len(expression) > limits.max_expression_length:
        raise LimitExceededError(
            "max_expression_length", limits.max_expression_length, len(expression)
        )


def check_ast_depth(depth: int, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates nesting depth during parsing."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if depth > limits.max_ast_depth:
        raise LimitExceededError("max_ast_depth", limits.max_ast_depth, depth)


def check_tree_depth(depth: int, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates the depth of a finished AST after parsing."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if depth > limits.max_tree_depth:
        raise LimitExceededError("max_tree_depth", limits.max_tree_depth, depth)


def check_ast_node_count(
    count: int, limits: Optional[ExpressionLimits] = None
) -> None:
    """Validates AST node count after parsing."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if count > limits.max_ast_nodes:
        raise LimitExceededError("max_ast_nodes", limits.max_ast_nodes, count)


def check_string_length(length: int, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates string literal length during tokenization."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if length > limits.max_string_length:
        raise LimitExceededError("max_string_length", limits.max_string_length, length)


def check_array_length(length: int, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates array length during parsing and evaluation."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if length > limits.max_array_length:
        raise LimitExceededError("max_array_length", limits.max_array_length, length)


def check_function_arg_count(
    count: int, limits: Optional[ExpressionLimits] = None
) -> None:
    """Validates function argument count."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if count > limits.max_function_args:
        raise LimitExceededError("max_function_args", limits.max_function_args, count)


def check_range_length(length: int, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates the size of a range before it is produced."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if length > limits.max_range_length:
        raise LimitExceededError("max_range_length", limits.max_range_length, length)
