"""Generation of Toy dialect IR from a Toy syntax tree."""

from __future__ import annotations

from collections import ChainMap
from collections.abc import Iterator

from toyc.ir import (
    AddOp,
    ConstantOp,
    FunctionType,
    FuncOp,
    GenericCallOp,
    ModuleOp,
    MulOp,
    Operation,
    PrintOp,
    ReshapeOp,
    ReturnOp,
    TensorType,
    TransposeOp,
    Value,
    VerificationError,
)
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
    ReturnExpr,
    VarDeclExpr,
    VariableExpr,
)

Scope = ChainMap  # variable name -> Value

_BINARY_OPS: dict[str, type[AddOp] | type[MulOp]] = {"+": AddOp, "*": MulOp}

# Numbering of expression kinds used in diagnostics.
_EXPR_KIND = {
    VarDeclExpr: 0,
    ReturnExpr: 1,
    NumberExpr: 2,
    LiteralExpr: 3,
    VariableExpr: 4,
    BinaryExpr: 5,
    CallExpr: 6,
    PrintExpr: 7,
}


class CodegenError(Exception):
    """Raised when a syntax tree cannot be turned into valid IR."""

    def __init__(self, message: str, location: Location | None = None) -> None:
        self.message = message
        self.location = location
        if location is not None:
            message = f"{location.file}:{location.line}:{location.col}: {message}"
        super().__init__(message)


def _flatten(expr: Expr) -> Iterator[float]:
    """Yield the numbers of a nested tensor literal in row-major order."""
    if isinstance(expr, LiteralExpr):
        for value in expr.values:
            yield from _flatten(value)
    elif isinstance(expr, NumberExpr):
        yield expr.value
    else:
        raise CodegenError("expected literal or number expr", expr.location)


class _Generator:
    def __init__(self) -> None:
        self.module = ModuleOp()
        self._func: FuncOp | None = None

    def generate(self, module_ast: Module) -> ModuleOp:
        for function in module_ast:
            self._function(function)
        try:
            self.module.verify()
        except VerificationError as exc:
            raise CodegenError(f"module verification error: {exc}") from exc
        return self.module

    def _emit(self, op: Operation) -> Operation:
        assert self._func is not None
        return self._func.append(op)

    @staticmethod
    def _declare(scope: Scope, name: str, value: Value, location: Location) -> None:
        if name in scope:
            raise CodegenError(f"variable '{name}' is already declared", location)
        scope[name] = value

    def _function(self, function: Function) -> FuncOp:
        proto = function.proto
        signature = FunctionType(tuple(TensorType() for _ in proto.args))
        func = self.module.append(FuncOp(proto.name, signature, proto.location))
        self._func = func

        scope: Scope = ChainMap()
        for arg, value in zip(proto.args, func.arguments):
            self._declare(scope, arg.name, value, arg.location)

        self._block(function.body, scope.new_child())

        last = func.body[-1] if func.body else None
        if not isinstance(last, ReturnOp):
            func.append(ReturnOp(location=proto.location))
        elif last.has_operand:
            func.function_type = FunctionType(
                func.function_type.inputs, (TensorType(),)
            )

        func.private = proto.name != "main"
        return func

    def _block(self, body: list[Expr], scope: Scope) -> None:
        for expr in body:
            match expr:
                case VarDeclExpr():
                    self._var_decl(expr, scope)
                case ReturnExpr():
                    self._return(expr, scope)
                    return
                case PrintExpr():
                    arg = self._expr(expr.arg, scope)
                    self._emit(PrintOp(arg, expr.location))
                case _:
                    self._expr(expr, scope)

    def _var_decl(self, decl: VarDeclExpr, scope: Scope) -> Value:
        if decl.init is None:
            raise CodegenError(
                "missing initializer in variable declaration", decl.location
            )
        value = self._expr(decl.init, scope)
        if decl.type.shape:
            reshape = ReshapeOp(value, TensorType(tuple(decl.type.shape)), decl.location)
            value = self._emit(reshape).result
        self._declare(scope, decl.name, value, decl.location)
        return value

    def _return(self, ret: ReturnExpr, scope: Scope) -> None:
        operands = [] if ret.expr is None else [self._expr(ret.expr, scope)]
        self._emit(ReturnOp(operands, ret.location))

    def _expr(self, expr: Expr, scope: Scope) -> Value:
        match expr:
            case BinaryExpr():
                return self._binary(expr, scope)
            case VariableExpr():
                value = scope.get(expr.name)
                if value is None:
                    raise CodegenError(
                        f"error: unknown variable '{expr.name}'", expr.location
                    )
                return value
            case LiteralExpr():
                tensor_type = TensorType(tuple(expr.dims))
                op = ConstantOp(_flatten(expr), tensor_type, tensor_type, expr.location)
                return self._emit(op).result
            case CallExpr():
                return self._call(expr, scope)
            case NumberExpr():
                return self._emit(ConstantOp.scalar(expr.value, expr.location)).result
            case _:
                kind = _EXPR_KIND.get(type(expr), -1)
                raise CodegenError(
                    f"MLIR codegen encountered an unhandled expr kind '{kind}'",
                    expr.location,
                )

    def _binary(self, binop: BinaryExpr, scope: Scope) -> Value:
        lhs = self._expr(binop.lhs, scope)
        rhs = self._expr(binop.rhs, scope)
        op_class = _BINARY_OPS.get(binop.op)
        if op_class is None:
            raise CodegenError(
                f"invalid binary operator '{binop.op}'", binop.location
            )
        return self._emit(op_class(lhs, rhs, binop.location)).result

    def _call(self, call: CallExpr, scope: Scope) -> Value:
        operands = [self._expr(arg, scope) for arg in call.args]
        if call.callee == "transpose":
            if len(call.args) != 1:
                raise CodegenError(
                    "MLIR codegen encountered an error: toy.transpose "
                    "does not accept multiple arguments",
                    call.location,
                )
            return self._emit(TransposeOp(operands[0], call.location)).result
        return self._emit(GenericCallOp(call.callee, operands, call.location)).result


def mlir_gen(module_ast: Module) -> ModuleOp:
    """Build and verify the IR module for a parsed Toy module."""
    return _Generator().generate(module_ast)