"""
Tests for the code generator.
"""

import math
import random

import pytest

from cellscript import evaluate, generate, parse
from cellscript import ast as a

IDENTIFIERS = ["a", "b", "xs", "total", "_n2"]
FUNCTIONS = ["f", "max", "lookup"]
NUMBERS = [0, 1, 2.5, 42, 0.125, 1e20, 1e-7]
STRINGS = ["", "hi", 'say "x"', "line\nbreak", "tab\there", "back\\slash"]
BINARY_OPERATORS = ["+", "-", "*", "/", "%", "^", "==", "!=", "<", ">", "<=", ">=", "&&", "||"]


def random_leaf(rng: random.Random) -> a.AstNode:
    kind = rng.randrange(4)
    if kind == 0:
        return a.number(rng.choice(NUMBERS))
    if kind == 1:
        return a.string(rng.choice(STRINGS))
    if kind == 2:
        return a.boolean(rng.random() < 0.5)
    return a.identifier(rng.choice(IDENTIFIERS))


def random_expression(rng: random.Random, depth: int) -> a.AstNode:
    """Builds a random tree using every expression node type."""
    if depth <= 0 or rng.random() < 0.2:
        return random_leaf(rng)

    def sub():
        return random_expression(rng, depth - 1)

    kind = rng.randrange(10)
    if kind == 0:
        return a.binary_op(sub(), rng.choice(BINARY_OPERATORS), sub())
    if kind == 1:
        return a.unary_op(rng.choice(["-", "!"]), sub())
    if kind == 2:
        return a.array([sub() for _ in range(rng.randrange(3))])
    if kind == 3:
        return a.function_call(rng.choice(FUNCTIONS), [sub() for _ in range(rng.randrange(3))])
    if kind == 4:
        return a.assign(rng.choice(IDENTIFIERS), sub())
    if kind == 5:
        return a.if_expr(sub(), sub(), sub())
    if kind == 6:
        guard = sub() if rng.random() < 0.5 else None
        return a.for_expr(rng.choice(IDENTIFIERS), sub(), guard, sub())
    if kind == 7:
        return a.index_access(sub(), sub())
    if kind == 8:
        return a.range_expr(sub(), sub(), inclusive=rng.random() < 0.5)
    return a.binary_op(sub(), rng.choice(["+", "*", "^"]), sub())


def random_program(rng: random.Random) -> a.AstNode:
    count = rng.randint(1, 3)
    statements = [random_expression(rng, 4) for _ in range(count)]
    if count == 1:
        return statements[0]
    return a.program(statements)


class TestParentheses:
    """Tests for precedence-driven parenthesization."""

    def test_wraps_lower_precedence_left_operand(self):
        assert generate(parse("(1 + 2) * 3")) == "(1 + 2) * 3"

    def test_wraps_lower_precedence_right_operand(self):
        assert generate(parse("2 * (1 + 2)")) == "2 * (1 + 2)"

    def test_omits_redundant_parentheses(self):
        assert generate(parse("(1 * 2) + 3")) == "1 * 2 + 3"

    def test_negative_base_of_exponent(self):
        assert generate(parse("(-2) ^ 2")) == "(-2) ^ 2"

    def test_negated_exponent(self):
        assert generate(parse("-(2 ^ 2)")) == "-(2 ^ 2)"
        assert generate(parse("-2 ^ 2")) == "-(2 ^ 2)"

    def test_negative_literal_base(self):
        assert generate(a.exponentiate(a.number(-2), 2)) == "(-2) ^ 2"

    def test_right_associative_exponent(self):
        assert generate(a.exponentiate(2, a.exponentiate(3, 2))) == "2 ^ 3 ^ 2"
        assert generate(a.exponentiate(a.exponentiate(2, 3), 2)) == "(2 ^ 3) ^ 2"

    def test_left_associative_subtraction(self):
        assert generate(a.subtract(a.subtract(10, 4), 3)) == "10 - 4 - 3"
        assert generate(a.subtract(10, a.subtract(4, 3))) == "10 - (4 - 3)"

    def test_assignment_inside_operator(self):
        assert generate(a.add(a.assign("x", 1), 2)) == "(x = 1) + 2"

    def test_chained_assignment(self):
        assert generate(parse("x = y = 3")) == "x = y = 3"

    def test_conditional_inside_operator(self):
        ast = a.add(1, a.if_expr(a.identifier("c"), 2, 3))
        assert generate(ast) == "1 + (if c then 2 else 3)"

    def test_unary_of_conditional(self):
        ast = a.negate(a.if_expr(a.identifier("c"), 1, 2))
        assert generate(ast) == "-(if c then 1 else 2)"

    def test_index_of_range(self):
        assert generate(parse("(0..5)[1]")) == "(0..5)[1]"


class TestConstructs:
    """Tests for the text of each construct."""

    def test_literals(self):
        assert generate(parse("[1, 2.5, true, 'x']")) == '[1, 2.5, true, "x"]'

    def test_function_call(self):
        assert generate(parse("max(1, x)")) == "max(1, x)"

    def test_if_expression(self):
        assert generate(parse("if a then 1 else 2")) == "if a then 1 else 2"

    def test_ternary_becomes_if(self):
        assert generate(parse("a ? 1 : 2")) == "if a then 1 else 2"

    def test_for_expression_with_guard(self):
        source = "for x in xs when x > 1 then x * 2"
        assert generate(parse(source)) == source

    def test_ranges(self):
        assert generate(parse("0..=n + 1")) == "0..=n + 1"
        assert generate(parse("0..(a < b)")) == "0..(a < b)"

    def test_escapes_strings(self):
        assert generate(a.string('say "hi"\n\\')) == '"say \\"hi\\"\\n\\\\"'

    def test_rejects_non_node(self):
        with pytest.raises(ValueError):
            generate(object())


class TestNumbers:
    """Tests for number spelling."""

    def test_integral_numbers_drop_fraction(self):
        assert generate(a.number(3.0)) == "3"

    def test_fractions(self):
        assert generate(a.number(0.1)) == "0.1"

    def test_large_numbers(self):
        assert generate(a.number(1e16)) == "1e+16"
        assert evaluate(generate(a.number(1e16))) == 1e16

    def test_infinity(self):
        assert generate(a.number(math.inf)) == "1e999"
        assert evaluate(generate(a.number(-math.inf))) == -math.inf

    def test_nan(self):
        assert math.isnan(evaluate(generate(a.number(math.nan))))

    def test_negative_zero(self):
        assert generate(a.number(-0.0)) == "-0"
        result = evaluate(generate(a.number(-0.0)))
        assert result == 0
        assert math.copysign(1.0, result) < 0


class TestPrograms:
    """Tests for statement sequences."""

    def test_joins_statements_with_newlines(self):
        ast = parse("a = 1; a + 1")
        assert generate(ast) == "a = 1\na + 1"

    def test_wraps_statement_starting_with_minus(self):
        ast = a.program([a.identifier("x"), a.negate(a.identifier("y"))])
        code = generate(ast)
        assert code == "(x)\n(-y)"
        assert parse(code) == ast

    def test_wraps_statement_starting_with_bracket(self):
        ast = a.program([a.assign("a", 1), a.array([1])])
        code = generate(ast)
        assert code == "(a = 1)\n([1])"
        assert parse(code) == ast

    def test_wraps_statement_starting_with_paren(self):
        ast = a.program([a.identifier("f"), a.multiply(a.add(1, 2), 3)])
        code = generate(ast)
        assert parse(code) == ast


class TestRoundTrip:
    """Seeded property checks: generated text parses back to the same tree."""

    @pytest.mark.parametrize("seed", range(200))
    def test_parse_of_generate_is_identity(self, seed):
        ast = random_program(random.Random(seed))
        code = generate(ast)
        assert parse(code) == ast, code

    @pytest.mark.parametrize("seed", range(50))
    def test_generate_is_stable(self, seed):
        code = generate(random_program(random.Random(seed)))
        assert generate(parse(code)) == code

    @pytest.mark.parametrize(
        "source",
        [
            "1 + 2 * 3",
            "(1 + 2) * 3",
            "2 ^ 3 ^ 2",
            "(-2) ^ 2",
            "-2 ^ 2",
            "10 - 4 - 3",
            "x = 5; y = x * 2; y - 1",
            "if 1 > 2 then 'a' else 'b'",
            "for i in 0..5 when i % 2 == 0 then i * i",
            "[1, 2, 3][-1]",
            "'abc'[0] + 'd'",
        ],
    )
    def test_generated_code_evaluates_the_same(self, source):
        assert evaluate(generate(parse(source))) == evaluate(source)
