"""
Parser for the cellscript language.

Parses a stream of tokens into an Abstract Syntax Tree (AST) using
precedence climbing: `_parse_expression(min_precedence)` parses a prefix
term, then keeps folding infix and postfix constructs whose precedence is
at least `min_precedence`.

Precedence (lowest to highest):
1. Assignment: =  (right-associative)
2. Ternary: ? :  (right-associative)
3. Logical OR: ||
4. Logical AND: &&
5. Comparison: == != < > <= >=
6. Range: .. ..=
7. Additive: + -
8. Multiplicative: * / %
9. Unary: ! -  (prefix)
10. Exponent: ^  (right-associative)
11. Postfix: [index]

`if` and `for` are prefix constructs and bind loosest of all. Unary minus
binds looser than `^`, so `-2 ^ 2` is `-(2 ^ 2)`.
"""

from typing import Dict, List, Optional

from .ast import (
    PRECEDENCE_ASSIGNMENT,
    PRECEDENCE_NONE,
    PRECEDENCE_POSTFIX,
    PRECEDENCE_RANGE,
    PRECEDENCE_TERNARY,
    PRECEDENCE_UNARY,
    ArrayLiteralNode,
    AssignmentNode,
    AstNode,
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
    UnaryOpNode,
    calculate_ast_depth,
    count_ast_nodes,
    get_operator_precedence,
    is_right_associative,
)
from .errors import ParseError
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
    check_array_length,
    check_ast_depth,
    check_ast_node_count,
    check_function_arg_count,
    check_tree_depth,
)
from .tokenizer import Token, TokenType, tokenize

BINARY_OPERATORS: Dict[TokenType, BinaryOperator] = {
    TokenType.PLUS: "+",
    TokenType.MINUS: "-",
    TokenType.STAR: "*",
    TokenType.SLASH: "/",
    TokenType.PERCENT: "%",
    TokenType.CARET: "^",
    TokenType.EQ: "==",
    TokenType.NE: "!=",
    TokenType.LT: "<",
    TokenType.GT: ">",
    TokenType.LE: "<=",
    TokenType.GE: ">=",
    TokenType.AND: "&&",
    TokenType.OR: "||",
}


def _infix_precedence(token_type: TokenType) -> int:
    """Precedence of a token in infix/postfix position (0 ends the expression)."""
    if token_type in BINARY_OPERATORS:
        return get_operator_precedence(BINARY_OPERATORS[token_type])
    if token_type == TokenType.LBRACKET:
        return PRECEDENCE_POSTFIX
    if token_type in (TokenType.DOT_DOT, TokenType.DOT_DOT_EQ):
        return PRECEDENCE_RANGE
    if token_type == TokenType.QUESTION:
        return PRECEDENCE_TERNARY
    if token_type == TokenType.ASSIGN:
        return PRECEDENCE_ASSIGNMENT
    return PRECEDENCE_NONE


class Parser:
    """Parser for cellscript source."""

    def __init__(
        self,
        tokens: List[Token],
        source: str,
        limits: ExpressionLimits = DEFAULT_EXPRESSION_LIMITS,
    ):
        self._tokens = tokens
        self._source = source
        self._limits = limits
        self._current = 0
        self._depth = 0

    def parse(self) -> AstNode:
        """
        Parses the token stream into an AST.

        A single statement is returned as-is; two or more are wrapped in a
        ProgramNode.
        """
        if self._is_at_end():
            raise ParseError("Empty program", 0, self._source, 0)

        statements: List[AstNode] = []
        while not self._is_at_end():
            statements.append(self._parse_expression(PRECEDENCE_NONE))

        if len(statements) == 1:
            ast = statements[0]
        else:
            ast = ProgramNode(
                tuple(statements), position=0, end_position=len(self._source)
            )

        # Validate AST limits
        node_count = count_ast_nodes(ast)
        check_ast_node_count(node_count, self._limits)

        depth = calculate_ast_depth(ast)
        check_tree_depth(depth, self._limits)

        return ast

    # ============================================================
    # Token Helpers
    # ============================================================

    def _is_at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self) -> Token:
        return self._tokens[self._current]

    def _previous(self) -> Token:
        return self._tokens[self._current - 1]

    def _advance(self) -> Token:
        if not self._is_at_end():
            self._current += 1
        return self._previous()

    def _check(self, token_type: TokenType) -> bool:
        if self._is_at_end():
            return False
        return self._peek().type == token_type

    def _match(self, *types: TokenType) -> bool:
        for token_type in types:
            if self._check(token_type):
                self._advance()
                return True
        return False

    def _consume(self, token_type: TokenType, message: str) -> Token:
        if self._check(token_type):
            return self._advance()
        token = self._peek()
        raise ParseError(message, token.position, self._source, token.end)

    def _unexpected(self, token: Token) -> ParseError:
        if token.type == TokenType.EOF:
            return ParseError("Unexpected end of input", token.position, self._source, token.end)
        text = self._source[token.position : token.end] or token.type.value
        return ParseError(f"Unexpected token: {text}", token.position, self._source, token.end)

    # ============================================================
    # Precedence Climbing
    # ============================================================

    def _parse_expression(self, min_precedence: int) -> AstNode:
        """Parses an expression whose infix operators bind at least `min_precedence`."""
        self._depth += 1
        try:
            check_ast_depth(self._depth, self._limits)

            left = self._parse_prefix()

            while True:
                token = self._peek()
                precedence = _infix_precedence(token.type)
                if precedence == PRECEDENCE_NONE or precedence < min_precedence:
                    break
                self._advance()
                left = self._parse_infix(left, token, precedence)

            return left
        finally:
            self._depth -= 1

    def _parse_infix(self, left: AstNode, token: Token, precedence: int) -> AstNode:
        """Parses the construct introduced by an infix/postfix token (already consumed)."""
        if token.type == TokenType.LBRACKET:
            index = self._parse_expression(PRECEDENCE_NONE)
            closing = self._consume(TokenType.RBRACKET, "Expected ']' after index")
            return IndexAccessNode(
                left, index, position=token.position, end_position=closing.end
            )

        if token.type == TokenType.ASSIGN:
            if not isinstance(left, IdentifierNode):
                raise ParseError(
                    "Invalid assignment target",
                    left.position if left.position >= 0 else token.position,
                    self._source,
                    token.end,
                )
            value = self._parse_expression(PRECEDENCE_ASSIGNMENT)
            return AssignmentNode(
                left.name,
                value,
                position=left.position,
                end_position=self._previous().end,
            )

        if token.type == TokenType.QUESTION:
            consequent = self._parse_expression(PRECEDENCE_NONE)
            self._consume(TokenType.COLON, "Expected ':' in ternary expression")
            alternate = self._parse_expression(PRECEDENCE_TERNARY)
            return IfExpressionNode(
                left,
                consequent,
                alternate,
                position=token.position,
                end_position=self._previous().end,
            )

        if token.type in (TokenType.DOT_DOT, TokenType.DOT_DOT_EQ):
            end = self._parse_expression(PRECEDENCE_RANGE + 1)
            return RangeExpressionNode(
                left,
                end,
                token.type == TokenType.DOT_DOT_EQ,
                position=token.position,
                end_position=token.end,
            )

        operator = BINARY_OPERATORS[token.type]
        next_precedence = precedence if is_right_associative(operator) else precedence + 1
        right = self._parse_expression(next_precedence)
        return BinaryOpNode(
            left, operator, right, position=token.position, end_position=token.end
        )

    # ============================================================
    # Prefix Terms
    # ============================================================

    def _parse_prefix(self) -> AstNode:
        """Parses literals, identifiers, calls, groups, arrays, unary, if and for."""
        token = self._peek()
        position = token.position

        # Boolean literals
        if self._match(TokenType.TRUE):
            return BooleanLiteralNode(True, position=position, end_position=token.end)
        if self._match(TokenType.FALSE):
            return BooleanLiteralNode(False, position=position, end_position=token.end)

        # String literal
        if self._match(TokenType.STRING):
            return StringLiteralNode(token.value, position=position, end_position=token.end)

        # Number literal (1e999 is how infinity is spelled)
        if self._match(TokenType.NUMBER):
            return NumberLiteralNode(
                float(token.value), position=position, end_position=token.end
            )

        # Identifier or function call
        if self._match(TokenType.IDENTIFIER):
            if self._match(TokenType.LPAREN):
                args = self._parse_list(
                    TokenType.RPAREN, "Expected ')' after function arguments"
                )
                check_function_arg_count(len(args), self._limits)
                return FunctionCallNode(
                    token.value,
                    tuple(args),
                    position=position,
                    end_position=self._previous().end,
                )
            return IdentifierNode(token.value, position=position, end_position=token.end)

        # Parenthesized expression
        if self._match(TokenType.LPAREN):
            expr = self._parse_expression(PRECEDENCE_NONE)
            self._consume(TokenType.RPAREN, "Expected ')' after expression")
            return expr

        # Array literal
        if self._match(TokenType.LBRACKET):
            elements = self._parse_list(
                TokenType.RBRACKET, "Expected ']' after array elements"
            )
            check_array_length(len(elements), self._limits)
            return ArrayLiteralNode(
                tuple(elements), position=position, end_position=self._previous().end
            )

        # Unary operators
        if self._match(TokenType.MINUS, TokenType.NOT):
            operator = "-" if token.type == TokenType.MINUS else "!"
            argument = self._parse_expression(PRECEDENCE_UNARY)
            return UnaryOpNode(operator, argument, position=position, end_position=token.end)

        if self._match(TokenType.IF):
            return self._parse_if(token)

        if self._match(TokenType.FOR):
            return self._parse_for(token)

        raise self._unexpected(token)

    def _parse_list(self, closing: TokenType, message: str) -> List[AstNode]:
        """Parses comma-separated expressions up to `closing` (opening already consumed)."""
        items: List[AstNode] = []

        if not self._check(closing):
            items.append(self._parse_expression(PRECEDENCE_NONE))
            while self._match(TokenType.COMMA):
                items.append(self._parse_expression(PRECEDENCE_NONE))

        self._consume(closing, message)
        return items

    def _parse_if(self, keyword: Token) -> IfExpressionNode:
        """Parses: if condition then consequent else alternate"""
        condition = self._parse_expression(PRECEDENCE_NONE)
        self._consume(TokenType.THEN, "Expected 'then' in if expression")
        consequent = self._parse_expression(PRECEDENCE_NONE)
        self._consume(TokenType.ELSE, "Expected 'else' in if expression")
        alternate = self._parse_expression(PRECEDENCE_NONE)
        return IfExpressionNode(
            condition,
            consequent,
            alternate,
            position=keyword.position,
            end_position=self._previous().end,
        )

    def _parse_for(self, keyword: Token) -> ForExpressionNode:
        """Parses: for variable in iterable [when guard] then body"""
        variable = self._consume(TokenType.IDENTIFIER, "Expected identifier after 'for'")
        self._consume(TokenType.IN, "Expected 'in' in for expression")
        iterable = self._parse_expression(PRECEDENCE_NONE)

        guard: Optional[AstNode] = None
        if self._match(TokenType.WHEN):
            guard = self._parse_expression(PRECEDENCE_NONE)

        self._consume(TokenType.THEN, "Expected 'then' in for expression")
        body = self._parse_expression(PRECEDENCE_NONE)
        return ForExpressionNode(
            variable.value,
            iterable,
            guard,
            body,
            position=keyword.position,
            end_position=self._previous().end,
        )


def parse(source: str, limits: Optional[ExpressionLimits] = None) -> AstNode:
    """
    Parses source text into an AST.

    Args:
        source: The source text to parse
        limits: Optional expression limits

    Returns:
        The parsed AST

    Raises:
        TokenizerError: If tokenization fails
        ParseError: If parsing fails
        LimitExceededError: If the source or the tree exceeds a limit
    """
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    tokens = tokenize(source, limits)
    parser = Parser(tokens, source, limits)
    return parser.parse()
