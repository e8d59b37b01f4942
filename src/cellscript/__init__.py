"""
Embeddable formula language.

This package tokenizes, parses, optimizes, evaluates and regenerates
scripts written in a small numeric-and-string formula language with
variables, conditionals, arrays, ranges and host-supplied functions.
"""

# Analysis
from .analyzer import extract_assigned_variables, extract_input_variables

# Core types and utilities
from .ast import (
    ArrayLiteralNode,
    AssignmentNode,
    AstNode,
    AstNodeBase,
    BinaryOperator,
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
    UnaryOperator,
    UnaryOpNode,
    ast_to_string,
    calculate_ast_depth,
    collect_identifiers,
    count_ast_nodes,
    get_operator_precedence,
    is_right_associative,
)

# Code generation
from .codegen import generate

# Defaults
from .defaults import DEFAULT_FUNCTIONS, default_context
from .errors import (
    BuiltinError,
    Diagnostic,
    DivisionByZeroError,
    EvaluationError,
    ExpressionError,
    IndexOutOfRangeError,
    LimitExceededError,
    ParseError,
    TokenizerError,
    TypeError,
    UndefinedFunctionError,
    UndefinedVariableError,
    to_line_column,
)

# Evaluator
from .evaluator import (
    EvaluationResult,
    Evaluator,
    ExecutionContext,
    evaluate,
    evaluate_scope,
    try_evaluate,
)
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
    load_expression_limits,
)

# Optimizer
from .optimizer import optimize

# Parser
from .parser import (
    Parser,
    parse,
)

# Tokenizer
from .tokenizer import (
    Token,
    Tokenizer,
    TokenType,
    tokenize,
)

# Values
from .values import RuntimeValue, Timestamp, get_type_name, values_equal
from .visitor import visit, visit_partial

__all__ = [
    # AST types
    "AstNode",
    "AstNodeBase",
    "ProgramNode",
    "NumberLiteralNode",
    "StringLiteralNode",
    "BooleanLiteralNode",
    "ArrayLiteralNode",
    "IdentifierNode",
    "BinaryOpNode",
    "UnaryOpNode",
    "FunctionCallNode",
    "AssignmentNode",
    "IfExpressionNode",
    "ForExpressionNode",
    "IndexAccessNode",
    "RangeExpressionNode",
    "UnaryOperator",
    "BinaryOperator",
    "count_ast_nodes",
    "calculate_ast_depth",
    "collect_identifiers",
    "ast_to_string",
    "get_operator_precedence",
    "is_right_associative",
    # Errors
    "ExpressionError",
    "TokenizerError",
    "ParseError",
    "EvaluationError",
    "UndefinedVariableError",
    "UndefinedFunctionError",
    "DivisionByZeroError",
    "IndexOutOfRangeError",
    "TypeError",
    "LimitExceededError",
    "BuiltinError",
    "Diagnostic",
    "to_line_column",
    # Limits
    "ExpressionLimits",
    "DEFAULT_EXPRESSION_LIMITS",
    "load_expression_limits",
    # Tokenizer
    "Token",
    "TokenType",
    "Tokenizer",
    "tokenize",
    # Parser
    "Parser",
    "parse",
    # Visitor
    "visit",
    "visit_partial",
    # Values
    "RuntimeValue",
    "Timestamp",
    "get_type_name",
    "values_equal",
    # Evaluator
    "ExecutionContext",
    "EvaluationResult",
    "Evaluator",
    "evaluate",
    "evaluate_scope",
    "try_evaluate",
    # Optimizer
    "optimize",
    # Code generation
    "generate",
    # Analysis
    "extract_input_variables",
    "extract_assigned_variables",
    # Defaults
    "DEFAULT_FUNCTIONS",
    "default_context",
]
