"""Boolean function expressions.

Liberty `when` conditions and pin `function` attributes are boolean
expressions over port names. The tree is only stored and printed here; it is
not evaluated.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..exceptions import ResourceReleasedError


class FuncOp(str, Enum):
    PORT = "port"
    NOT = "not"
    AND = "and"
    OR = "or"
    XOR = "xor"
    ONE = "one"
    ZERO = "zero"


_BINARY_SYMBOLS = {FuncOp.AND: "&", FuncOp.OR: "|", FuncOp.XOR: "^"}

# Binding strength used to decide where parentheses are needed
_PRECEDENCE = {FuncOp.OR: 1, FuncOp.AND: 2, FuncOp.XOR: 3, FuncOp.NOT: 4}


@dataclass
class FuncExpr:
    """A node of a boolean expression tree.

    Attributes:
        op: The node operator.
        port: Port name for PORT nodes.
        left: Operand of NOT, or left operand of a binary operator.
        right: Right operand of a binary operator.
    """

    op: FuncOp
    port: Optional[str] = None
    left: Optional["FuncExpr"] = None
    right: Optional["FuncExpr"] = None
    released: bool = field(default=False, repr=False, compare=False)

    @classmethod
    def make_port(cls, name: str) -> "FuncExpr":
        return cls(FuncOp.PORT, port=name)

    @classmethod
    def make_not(cls, expr: "FuncExpr") -> "FuncExpr":
        return cls(FuncOp.NOT, left=expr)

    @classmethod
    def make_and(cls, left: "FuncExpr", right: "FuncExpr") -> "FuncExpr":
        return cls(FuncOp.AND, left=left, right=right)

    @classmethod
    def make_or(cls, left: "FuncExpr", right: "FuncExpr") -> "FuncExpr":
        return cls(FuncOp.OR, left=left, right=right)

    @classmethod
    def make_xor(cls, left: "FuncExpr", right: "FuncExpr") -> "FuncExpr":
        return cls(FuncOp.XOR, left=left, right=right)

    @classmethod
    def make_one(cls) -> "FuncExpr":
        return cls(FuncOp.ONE)

    @classmethod
    def make_zero(cls) -> "FuncExpr":
        return cls(FuncOp.ZERO)

    def ports(self) -> list[str]:
        """Returns the referenced port names in first-use order, without duplicates."""
        names: list[str] = []
        for node in self._walk():
            if node.op is FuncOp.PORT and node.port not in names:
                names.append(node.port)
        return names

    def _walk(self):
        yield self
        for child in (self.left, self.right):
            if child is not None:
                yield from child._walk()

    def to_string(self) -> str:
        """Prints the expression in Liberty syntax with minimal parentheses."""
        if self.op is FuncOp.PORT:
            return self.port
        if self.op is FuncOp.ONE:
            return "1"
        if self.op is FuncOp.ZERO:
            return "0"
        if self.op is FuncOp.NOT:
            return f"!{self._operand_string(self.left)}"
        symbol = _BINARY_SYMBOLS[self.op]
        return f"{self._operand_string(self.left)}{symbol}{self._operand_string(self.right)}"

    def _operand_string(self, operand: "FuncExpr") -> str:
        text = operand.to_string()
        inner = _PRECEDENCE.get(operand.op)
        if inner is not None and inner < _PRECEDENCE[self.op]:
            return f"({text})"
        return text

    def delete_subexprs(self) -> None:
        """Releases this node and every node below it.

        Raises:
            ResourceReleasedError: If the expression was already released.
        """
        if self.released:
            raise ResourceReleasedError(f"{self.op.value} expression already released")
        for child in (self.left, self.right):
            if child is not None:
                child.delete_subexprs()
        self.left = None
        self.right = None
        self.released = True

    def __str__(self) -> str:
        return self.to_string()
