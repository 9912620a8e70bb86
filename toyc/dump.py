"""Human-readable dump of a Toy syntax tree."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from toyc.lexer import Location
from toyc.syntax import (
    BinaryExpr,
    CallExpr,
    Expr,
    Function,
    LiteralExpr,
    Module,
    NumberExpr,
    PrintExpr,
    Prototype,
    ReturnExpr,
    VarDeclExpr,
    VariableExpr,
    VarType,
)


def _loc(location: Location) -> str:
    return f"@{location.file}:{location.line}:{location.col}"


def _number(value: float) -> str:
    return f"{value:e}"


def _literal_text(expr: Expr) -> str:
    """Render a literal with its dimensions spelled out at every level."""
    if isinstance(expr, NumberExpr):
        return _number(expr.value)
    if not isinstance(expr, LiteralExpr):
        raise TypeError(
            f"expected a literal or a number inside a literal, got {type(expr).__name__}"
        )
    dims = ", ".join(str(d) for d in expr.dims)
    values = ", ".join(_literal_text(v) for v in expr.values)
    return f"<{dims}>[ {values}]"


def _shape_text(var_type: VarType) -> str:
    return "<" + ", ".join(str(d) for d in var_type.shape) + ">"


class _Dumper:
    def __init__(self) -> None:
        self.level = 0
        self.lines: list[str] = []

    @contextmanager
    def _indented(self) -> Iterator[None]:
        self.level += 1
        try:
            yield
        finally:
            self.level -= 1

    def _line(self, text: str) -> None:
        self.lines.append("  " * self.level + text + "\n")

    def module(self, module: Module) -> None:
        with self._indented():
            self._line("Module:")
            for function in module:
                self.function(function)

    def function(self, function: Function) -> None:
        with self._indented():
            self._line("Function ")
            self.prototype(function.proto)
            self.block(function.body)

    def prototype(self, proto: Prototype) -> None:
        with self._indented():
            self._line(f"Proto '{proto.name}' {_loc(proto.location)}")
            params = ", ".join(arg.name for arg in proto.args)
            self._line(f"Params: [{params}]")

    def block(self, body: list[Expr]) -> None:
        with self._indented():
            self._line("Block {")
            for expr in body:
                self.expr(expr)
            self._line("} // Block")

    def expr(self, expr: Expr) -> None:
        with self._indented():
            match expr:
                case BinaryExpr():
                    self._line(f"BinOp: {expr.op} {_loc(expr.location)}")
                    self.expr(expr.lhs)
                    self.expr(expr.rhs)
                case CallExpr():
                    self._line(f"Call '{expr.callee}' [ {_loc(expr.location)}")
                    for arg in expr.args:
                        self.expr(arg)
                    self._line("]")
                case LiteralExpr():
                    self._line(f"Literal: {_literal_text(expr)} {_loc(expr.location)}")
                case NumberExpr():
                    self._line(f"{_number(expr.value)} {_loc(expr.location)}")
                case PrintExpr():
                    self._line(f"Print [ {_loc(expr.location)}")
                    self.expr(expr.arg)
                    self._line("]")
                case ReturnExpr():
                    self._line("Return")
                    if expr.expr is not None:
                        self.expr(expr.expr)
                    else:
                        with self._indented():
                            self._line("(void)")
                case VarDeclExpr():
                    self._line(
                        f"VarDecl {expr.name}{_shape_text(expr.type)} "
                        f"{_loc(expr.location)}"
                    )
                    if expr.init is not None:
                        self.expr(expr.init)
                case VariableExpr():
                    self._line(f"var: {expr.name} {_loc(expr.location)}")
                case _:
                    self._line(f"<unknown Expr, kind {type(expr).__name__}>")


def dump(module: Module) -> str:
    """Return the indented textual dump of a parsed Toy module."""
    dumper = _Dumper()
    dumper.module(module)
    return "".join(dumper.lines)