"""
Tests for AST nodes, builders and utilities.
"""

import dataclasses

import pytest

from cellscript import (
    ast_to_string,
    calculate_ast_depth,
    collect_identifiers,
    count_ast_nodes,
    get_operator_precedence,
    is_right_associative,
    parse,
)
from cellscript import ast as a


class TestNodes:
    """Tests for node identity and immutability."""

    def test_type_names(self):
        assert a.number(1).type == "NumberLiteral"
        assert a.range_expr(0, 1).type == "RangeExpression"
        assert a.program([1, 2]).type == "Program"

    def test_equality_ignores_positions(self):
        assert parse("  1 +   2") == a.add(1, 2)
        assert parse("  1 +   2").position == 4

    def test_nodes_are_frozen(self):
        node = a.identifier("x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            node.name = "y"

    def test_sequences_are_tuples(self):
        assert a.array([1, 2]).elements == (a.number(1), a.number(2))

    def test_builders_coerce_plain_values(self):
        node = a.function_call("f", [1, "s", True])
        assert node.args == (a.number(1), a.string("s"), a.boolean(True))

    def test_builders_reject_other_values(self):
        with pytest.raises(ValueError, match="Cannot build an AST node from NoneType"):
            a.array([None])

    def test_is_literal(self):
        assert a.is_literal(a.string("x"))
        assert not a.is_literal(a.array([]))


class TestOperators:
    """Tests for the operator tables."""

    @pytest.mark.parametrize(
        "operator, precedence",
        [("||", 3), ("&&", 4), ("==", 5), ("<", 5), ("+", 7), ("%", 8), ("^", 10), ("?", 0)],
    )
    def test_precedence(self, operator, precedence):
        assert get_operator_precedence(operator) == precedence

    def test_only_exponent_is_right_associative(self):
        assert is_right_associative("^")
        assert not is_right_associative("-")


class TestUtilities:
    """Tests for tree metrics and debugging output."""

    def test_count_nodes(self):
        assert count_ast_nodes(parse("1 + 2 * 3")) == 5

    def test_depth(self):
        assert calculate_ast_depth(a.number(1)) == 1
        assert calculate_ast_depth(parse("1 + 2 * 3")) == 3

    def test_depth_of_long_chain_does_not_recurse(self):
        node = a.number(0)
        for _ in range(5000):
            node = a.add(node, 1)
        assert calculate_ast_depth(node) == 5001

    def test_collect_identifiers(self):
        ast = parse("x = a + b; for i in xs when i > lo then i * c")
        assert collect_identifiers(ast) == {"a", "b", "xs", "i", "lo", "c"}

    def test_ast_to_string(self):
        assert ast_to_string(parse("x = -1")) == (
            "Assignment: x\n  UnaryOp: -\n    Number: 1"
        )

    def test_ast_to_string_for_expression(self):
        text = ast_to_string(parse("for i in 0..=2 then i"))
        assert text.splitlines() == [
            "ForExpression: i",
            "  iterable:",
            "    RangeExpression: ..=",
            "      Number: 0",
            "      Number: 2",
            "  body:",
            "    Identifier: i",
        ]
