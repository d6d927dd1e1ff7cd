"""Expression tree types for parsed expressions"""

from dataclasses import dataclass, field
from typing import Any, Tuple


class Expr:
    """Base class for all expression nodes"""
    pass


@dataclass(frozen=True)
class Literal(Expr):
    """Literal value (number, string, boolean, nil)"""
    value: Any  # int, float, str, bool, None
    position: int = field(default=0, compare=False)

    def __repr__(self) -> str:
        if isinstance(self.value, str):
            return f"Literal('{self.value}')"
        return f"Literal({self.value})"


@dataclass(frozen=True)
class Name(Expr):
    """Identifier bound against the schema (e.g., temperature, forecast)"""
    name: str
    position: int = field(default=0, compare=False)

    def __repr__(self) -> str:
        return f"Name({self.name})"


@dataclass(frozen=True)
class Member(Expr):
    """Record field access: target.name"""
    target: Expr
    name: str
    position: int = field(default=0, compare=False)

    def __repr__(self) -> str:
        return f"Member({self.target}.{self.name})"


@dataclass(frozen=True)
class Call(Expr):
    """Function call: callee(arg, ...)"""
    callee: Expr
    args: Tuple[Expr, ...]
    position: int = field(default=0, compare=False)

    def __repr__(self) -> str:
        args = ", ".join(repr(a) for a in self.args)
        return f"Call({self.callee}({args}))"


@dataclass(frozen=True)
class UnaryOp(Expr):
    """Unary operation: operator operand"""
    operator: str  # "!", "-", "+"
    operand: Expr
    position: int = field(default=0, compare=False)

    def __repr__(self) -> str:
        return f"UnaryOp({self.operator} {self.operand})"


@dataclass(frozen=True)
class BinaryOp(Expr):
    """Binary operation: left operator right"""
    left: Expr
    operator: str  # "&&", "||", "==", "!=", "<", "<=", ">", ">=", "+", "-", "*", "/", "%", "**"
    right: Expr
    position: int = field(default=0, compare=False)

    def __repr__(self) -> str:
        return f"BinaryOp({self.left} {self.operator} {self.right})"


@dataclass(frozen=True)
class Conditional(Expr):
    """Ternary expression: test ? if_true : if_false"""
    test: Expr
    if_true: Expr
    if_false: Expr
    position: int = field(default=0, compare=False)

    def __repr__(self) -> str:
        return f"Conditional({self.test} ? {self.if_true} : {self.if_false})"
