"""
Tokenizer (lexer) for the cellscript language.

Converts source text into a lazy stream of tokens for the parser.
Whitespace, newlines, `;` statement separators and `// line comments`
are skipped between tokens and never emitted.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional

from .errors import TokenizerError
from .limits import ExpressionLimits, check_expression_length, check_string_length


class TokenType(Enum):
    """Token types produced by the tokenizer."""

    # Literals
    STRING = "STRING"
    NUMBER = "NUMBER"
    TRUE = "TRUE"
    FALSE = "FALSE"

    # Identifiers
    IDENTIFIER = "IDENTIFIER"

    # Operators
    PLUS = "PLUS"
    MINUS = "MINUS"
    STAR = "STAR"
    SLASH = "SLASH"
    PERCENT = "PERCENT"
    CARET = "CARET"
    LT = "LT"
    LE = "LE"
    GT = "GT"
    GE = "GE"
    EQ = "EQ"
    NE = "NE"
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    DOT_DOT = "DOT_DOT"
    DOT_DOT_EQ = "DOT_DOT_EQ"

    # Delimiters
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    COMMA = "COMMA"
    QUESTION = "QUESTION"
    COLON = "COLON"
    ASSIGN = "ASSIGN"

    # Keywords
    IF = "IF"
    THEN = "THEN"
    ELSE = "ELSE"
    FOR = "FOR"
    IN = "IN"
    WHEN = "WHEN"

    # Special
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    """A token produced by the tokenizer."""

    type: TokenType
    value: str
    position: int
    end: int


# Keywords recognized by the tokenizer
KEYWORDS: Dict[str, TokenType] = {
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "if": TokenType.IF,
    "then": TokenType.THEN,
    "else": TokenType.ELSE,
    "for": TokenType.FOR,
    "in": TokenType.IN,
    "when": TokenType.WHEN,
}

SINGLE_CHAR_TOKENS: Dict[str, TokenType] = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ",": TokenType.COMMA,
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
    "^": TokenType.CARET,
    "?": TokenType.QUESTION,
    ":": TokenType.COLON,
}

ESCAPE_MAP: Dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "'": "'",
}


def _is_digit(ch: str) -> bool:
    """Checks if a character is a digit."""
    return "0" <= ch <= "9"


def _is_identifier_start(ch: str) -> bool:
    """Checks if a character can start an identifier."""
    return ("a" <= ch <= "z") or ("A" <= ch <= "Z") or ch == "_"


def _is_identifier_part(ch: str) -> bool:
    """Checks if a character can continue an identifier."""
    return _is_identifier_start(ch) or _is_digit(ch)


def _is_skippable(ch: str) -> bool:
    """Checks if a character separates tokens without meaning."""
    return ch in (" ", "\t", "\n", "\r", ";")


class Tokenizer:
    """
    Tokenizer for cellscript source.

    `next_token()` advances an internal cursor and returns one token at a
    time; after the end of input it keeps returning EOF.
    """

    def __init__(self, source: str, limits: Optional[ExpressionLimits] = None):
        check_expression_length(source, limits)
        self._source = source
        self._limits = limits
        self._position = 0

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                return

    def tokenize(self) -> List[Token]:
        """Tokenizes the whole source and returns all tokens, EOF included."""
        return list(self)

    def next_token(self) -> Token:
        """Scans and returns the next token."""
        self._skip_trivia()

        if self._is_at_end():
            return Token(TokenType.EOF, "", self._position, self._position)

        start_position = self._position
        ch = self._advance()

        if ch in SINGLE_CHAR_TOKENS:
            return self._make_token(SINGLE_CHAR_TOKENS[ch], start_position)

        # Operators that may be followed by '='
        if ch == "<":
            token_type = TokenType.LE if self._match("=") else TokenType.LT
            return self._make_token(token_type, start_position)

        if ch == ">":
            token_type = TokenType.GE if self._match("=") else TokenType.GT
            return self._make_token(token_type, start_position)

        if ch == "=":
            token_type = TokenType.EQ if self._match("=") else TokenType.ASSIGN
            return self._make_token(token_type, start_position)

        if ch == "!":
            token_type = TokenType.NE if self._match("=") else TokenType.NOT
            return self._make_token(token_type, start_position)

        if ch == "&":
            if self._match("&"):
                return self._make_token(TokenType.AND, start_position)
            raise TokenizerError(
                "Unexpected '&'. Did you mean '&&'?",
                start_position,
                self._source,
                start_position + 1,
            )

        if ch == "|":
            if self._match("|"):
                return self._make_token(TokenType.OR, start_position)
            raise TokenizerError(
                "Unexpected '|'. Did you mean '||'?",
                start_position,
                self._source,
                start_position + 1,
            )

        if ch == ".":
            if _is_digit(self._peek()):
                return self._scan_number(start_position)
            if self._match("."):
                token_type = TokenType.DOT_DOT_EQ if self._match("=") else TokenType.DOT_DOT
                return self._make_token(token_type, start_position)
            raise TokenizerError(
                "Unexpected character: '.'",
                start_position,
                self._source,
                start_position + 1,
            )

        # String literals
        if ch == '"' or ch == "'":
            return self._scan_string(ch, start_position)

        # Number literals
        if _is_digit(ch):
            return self._scan_number(start_position)

        # Identifiers and keywords
        if _is_identifier_start(ch):
            return self._scan_identifier(start_position)

        raise TokenizerError(
            f"Unexpected character: '{ch}'",
            start_position,
            self._source,
            start_position + 1,
        )

    # ============================================================
    # Cursor Helpers
    # ============================================================

    def _is_at_end(self) -> bool:
        return self._position >= len(self._source)

    def _peek(self) -> str:
        if self._is_at_end():
            return "\0"
        return self._source[self._position]

    def _peek_next(self) -> str:
        if self._position + 1 >= len(self._source):
            return "\0"
        return self._source[self._position + 1]

    def _advance(self) -> str:
        ch = self._source[self._position]
        self._position += 1
        return ch

    def _match(self, expected: str) -> bool:
        if self._peek() != expected:
            return False
        self._position += 1
        return True

    def _make_token(self, token_type: TokenType, start_position: int) -> Token:
        return Token(
            token_type,
            self._source[start_position : self._position],
            start_position,
            self._position,
        )

    def _skip_trivia(self) -> None:
        while not self._is_at_end():
            ch = self._peek()
            if _is_skippable(ch):
                self._position += 1
            elif ch == "/" and self._peek_next() == "/":
                while not self._is_at_end() and self._peek() not in ("\n", "\r"):
                    self._position += 1
            else:
                return

    # ============================================================
    # Literal Scanners
    # ============================================================

    def _scan_string(self, quote: str, start_position: int) -> Token:
        chars: List[str] = []

        while not self._is_at_end() and self._peek() != quote:
            ch = self._advance()

            if ch == "\\":
                if self._is_at_end():
                    raise TokenizerError(
                        "Unterminated string", start_position, self._source, self._position
                    )
                escaped = self._advance()
                if escaped not in ESCAPE_MAP:
                    raise TokenizerError(
                        f"Invalid escape sequence: \\{escaped}",
                        self._position - 2,
                        self._source,
                        self._position,
                    )
                chars.append(ESCAPE_MAP[escaped])
            elif ch in ("\n", "\r"):
                raise TokenizerError(
                    "Unterminated string (newline in string literal)",
                    start_position,
                    self._source,
                    self._position,
                )
            else:
                chars.append(ch)

        if self._is_at_end():
            raise TokenizerError(
                "Unterminated string", start_position, self._source, self._position
            )

        # Consume closing quote
        self._advance()

        check_string_length(len(chars), self._limits)
        return Token(TokenType.STRING, "".join(chars), start_position, self._position)

    def _scan_number(self, start_position: int) -> Token:
        # The first character (digit or '.') is already consumed
        if self._source[start_position] == ".":
            while _is_digit(self._peek()):
                self._advance()
        else:
            while _is_digit(self._peek()):
                self._advance()

            # Fractional part; a lone '.' or '..' belongs to the next token
            if self._peek() == "." and _is_digit(self._peek_next()):
                self._advance()
                while _is_digit(self._peek()):
                    self._advance()

        # Exponent part
        if self._peek() in ("e", "E"):
            self._advance()
            if self._peek() in ("+", "-"):
                self._advance()
            if not _is_digit(self._peek()):
                raise TokenizerError(
                    "Invalid number: expected digit after exponent",
                    start_position,
                    self._source,
                    self._position,
                )
            while _is_digit(self._peek()):
                self._advance()

        # A second decimal point, as in "1.5.5"
        if self._peek() == "." and _is_digit(self._peek_next()):
            raise TokenizerError(
                "Invalid number: unexpected '.'",
                start_position,
                self._source,
                self._position + 1,
            )

        return self._make_token(TokenType.NUMBER, start_position)

    def _scan_identifier(self, start_position: int) -> Token:
        while _is_identifier_part(self._peek()):
            self._advance()

        value = self._source[start_position : self._position]
        keyword_type = KEYWORDS.get(value)
        return self._make_token(keyword_type or TokenType.IDENTIFIER, start_position)


def tokenize(source: str, limits: Optional[ExpressionLimits] = None) -> List[Token]:
    """
    Tokenizes source text into tokens.

    Args:
        source: The source text to tokenize
        limits: Optional expression limits

    Returns:
        List of tokens, ending with an EOF token

    Raises:
        TokenizerError: If the source contains invalid tokens
    """
    return Tokenizer(source, limits).tokenize()
