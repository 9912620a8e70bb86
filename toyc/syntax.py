"""Abstract syntax tree of the Toy language."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from toyc.lexer import Location


@dataclass
class VarType:
    """A variable type: its shape, empty when not given."""

    shape: list[int] = field(default_factory=list)


@dataclass
class Expr:
    """Base of all expression nodes."""

    location: Location


@dataclass
class NumberExpr(Expr):
    """A numeric literal such as ``1.0``."""

    value: float


@dataclass
class LiteralExpr(Expr):
    """A tensor literal; ``dims`` holds its shape, outermost first."""

    values: list[Expr]
    dims: list[int]


@dataclass
class VariableExpr(Expr):
    """A reference to a variable."""

    name: str


@dataclass
class VarDeclExpr(Expr):
    """A ``var`` declaration with an optional shape and an initializer."""

    name: str
    type: VarType
    init: Expr | None


@dataclass
class ReturnExpr(Expr):
    """A ``return`` statement with an optional value."""

    expr: Expr | None = None


@dataclass
class BinaryExpr(Expr):
    """A binary operation; ``op`` is the operator character."""

    op: str
    lhs: Expr
    rhs: Expr


@dataclass
class CallExpr(Expr):
    """A call to a function by name."""

    callee: str
    args: list[Expr]


@dataclass
class PrintExpr(Expr):
    """A call to the builtin ``print``."""

    arg: Expr


@dataclass
class Prototype:
    """A function's name and parameters."""

    location: Location
    name: str
    args: list[VariableExpr]


@dataclass
class Function:
    """A function definition: prototype and body."""

    proto: Prototype
    body: list[Expr]


@dataclass
class Module:
    """A list of functions processed together."""

    functions: list[Function]

    def __iter__(self) -> Iterator[Function]:
        return iter(self.functions)