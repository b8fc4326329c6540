"""Tests for boolean function expression parsing and printing."""

import pytest

from cellpower.exceptions import LibraryError, ResourceReleasedError
from cellpower.models.func_expr import FuncExpr, FuncOp
from cellpower.parsers.func_expr import parse_func_expr


@pytest.mark.parametrize(
    "text, expected",
    [
        ("A", "A"),
        ('"A & !B"', "A&!B"),
        ("!(A & B)", "!(A&B)"),
        ("A | B & C", "A|B&C"),
        ("(A + B) * C", "(A|B)&C"),
        ("A B", "A&B"),
        ("A'", "!A"),
        ("(A B)'", "!(A&B)"),
        ("A ^ B & C", "A^B&C"),
        ("A ^ (B | C)", "A^(B|C)"),
        ("1", "1"),
        ("!0", "!0"),
    ],
)
def test_parse_and_print(text, expected):
    assert parse_func_expr(text).to_string() == expected


def test_precedence_builds_expected_tree():
    expr = parse_func_expr("A | B & !C")

    assert expr.op is FuncOp.OR
    assert expr.left.port == "A"
    assert expr.right.op is FuncOp.AND
    assert expr.right.right.op is FuncOp.NOT


def test_bus_bit_port_names():
    expr = parse_func_expr("D[0] & EN")

    assert expr.ports() == ["D[0]", "EN"]


def test_ports_are_unique_in_first_use_order():
    expr = parse_func_expr("B & A | !B")

    assert expr.ports() == ["B", "A"]


@pytest.mark.parametrize("text", ["", '""', "A &", "(A | B", "A ! B |"])
def test_malformed_expressions_raise(text):
    with pytest.raises(LibraryError):
        parse_func_expr(text)


def test_delete_subexprs_releases_tree_once():
    expr = FuncExpr.make_and(FuncExpr.make_port("A"), FuncExpr.make_not(FuncExpr.make_port("B")))
    operand = expr.right

    expr.delete_subexprs()

    assert expr.released
    assert operand.released
    assert expr.left is None
    with pytest.raises(ResourceReleasedError, match="already released"):
        expr.delete_subexprs()
