"""Parser for Liberty boolean function expressions.

Accepts the operators used in `when` and `function` attributes: `!` and a
trailing `'` for NOT, `&`, `*` or juxtaposition for AND, `|` or `+` for OR,
`^` for XOR, parentheses and the constants 0 and 1.
"""

import functools
from pathlib import Path

from lark import Lark, Transformer
from lark.exceptions import LarkError

from ..exceptions import LibraryError
from ..models.func_expr import FuncExpr

GRAMMAR_PATH = Path(__file__).parent / "func_expr.lark"


@functools.cache
def _get_lark_parser() -> Lark:
    """Returns a cached Lark parser for function expressions."""
    return Lark(GRAMMAR_PATH.read_text(), parser="lalr", maybe_placeholders=False)


class FuncExprTransformer(Transformer):
    """Transforms the parse tree into FuncExpr nodes."""

    def port(self, items) -> FuncExpr:
        return FuncExpr.make_port(str(items[0]))

    def one(self, items) -> FuncExpr:
        return FuncExpr.make_one()

    def zero(self, items) -> FuncExpr:
        return FuncExpr.make_zero()

    def not_(self, items) -> FuncExpr:
        return FuncExpr.make_not(items[0])

    def and_(self, items) -> FuncExpr:
        return FuncExpr.make_and(items[0], items[1])

    def or_(self, items) -> FuncExpr:
        return FuncExpr.make_or(items[0], items[1])

    def xor_(self, items) -> FuncExpr:
        return FuncExpr.make_xor(items[0], items[1])


def parse_func_expr(text: str) -> FuncExpr:
    """Parses a boolean function expression.

    Args:
        text: The expression, optionally still wrapped in quotes.

    Returns:
        The root of the expression tree.

    Raises:
        LibraryError: If the expression is empty or malformed.
    """
    expr = text.strip().strip('"').strip()
    if not expr:
        raise LibraryError("empty function expression")
    try:
        tree = _get_lark_parser().parse(expr)
    except LarkError as e:
        raise LibraryError(f"invalid function expression '{expr}': {e}") from e
    return FuncExprTransformer().transform(tree)
