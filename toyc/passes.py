"""Optimization passes over Toy IR: inlining, shape inference and cleanups."""

from __future__ import annotations

import copy
from collections.abc import Hashable

from toyc.ir import (
    AddOp,
    CastOp,
    ConstantOp,
    FuncOp,
    GenericCallOp,
    ModuleOp,
    MulOp,
    Operation,
    ReshapeOp,
    ReturnOp,
    TransposeOp,
    Value,
)

_PURE_OPS = (ConstantOp, AddOp, MulOp, CastOp, TransposeOp, ReshapeOp)


class ShapeInferenceError(Exception):
    """Raised when the shapes in a function cannot all be inferred."""


# -- inlining ---------------------------------------------------------------


def _clone(op: Operation, mapping: dict[Value, Value]) -> Operation:
    """Copy ``op`` with operands remapped through ``mapping``."""
    new = copy.copy(op)
    new.parent = None
    new.operands = []
    new.results = [Value(r.type, new) for r in op.results]
    new.set_operands(mapping.get(v, v) for v in op.operands)
    for old, fresh in zip(op.results, new.results):
        mapping[old] = fresh
    return new


def _inline_call(func: FuncOp, call: GenericCallOp, callee: FuncOp) -> bool:
    if len(callee.arguments) != len(call.operands):
        return False
    if not callee.body or not isinstance(callee.body[-1], ReturnOp):
        return False
    terminator = callee.body[-1]
    if len(terminator.operands) != len(call.results):
        return False

    mapping: dict[Value, Value] = {}
    for arg, operand in zip(callee.arguments, call.operands):
        if operand.type != arg.type:
            cast = func.insert_before(call, CastOp(operand, arg.type, call.location))
            operand = cast.result
        mapping[arg] = operand

    for op in callee.body[:-1]:
        func.insert_before(call, _clone(op, mapping))

    for result, returned in zip(call.results, terminator.operands):
        value = mapping.get(returned, returned)
        if value.type != result.type:
            cast = func.insert_before(call, CastOp(value, result.type, call.location))
            value = cast.result
        result.replace_all_uses_with(value)
    call.erase()
    return True


def _inline_into(
    func: FuncOp, module: ModuleOp, stack: frozenset[str], done: set[str]
) -> None:
    if func.sym_name in done:
        return
    for op in func:
        if not isinstance(op, GenericCallOp) or op.parent is not func:
            continue
        callee = module.lookup(op.callee)
        if callee is None or callee is func or callee.sym_name in stack:
            continue
        _inline_into(callee, module, stack | {callee.sym_name}, done)
        _inline_call(func, op, callee)
    done.add(func.sym_name)


def inline_functions(module: ModuleOp) -> None:
    """Inline every call that can be inlined, then drop unused private functions."""
    done: set[str] = set()
    for func in module:
        _inline_into(func, module, frozenset({func.sym_name}), done)

    while True:
        called = {
            op.callee
            for func in module
            for op in func
            if isinstance(op, GenericCallOp)
        }
        dead = [f for f in module if f.private and f.sym_name not in called]
        if not dead:
            return
        for func in dead:
            func.erase()


# -- shape inference --------------------------------------------------------


def _all_operands_inferred(op: Operation) -> bool:
    return all(t.ranked for t in op.operand_types)


def _returns_dynamic_shape(op: Operation) -> bool:
    return any(not t.ranked for t in op.result_types)


def infer_shapes(func: FuncOp) -> None:
    """Give every operation in ``func`` a ranked result type.

    Raises ShapeInferenceError when an operation cannot infer its shape or
    when some operations are left unresolved.
    """
    worklist = [op for op in func.body if _returns_dynamic_shape(op)]
    while worklist:
        op = next((o for o in worklist if _all_operands_inferred(o)), None)
        if op is None:
            break
        worklist.remove(op)
        if not op.infers_shapes:
            raise ShapeInferenceError(
                f"'{op.name}': unable to infer shape of operation without shape "
                "inference interface"
            )
        op.infer_shapes()

    if worklist:
        raise ShapeInferenceError(
            f"Shape inference failed, {len(worklist)} operations couldn't be inferred"
        )


# -- canonicalization -------------------------------------------------------


def simplify_redundant_transpose(func: FuncOp) -> int:
    """Rewrite transpose(transpose(x)) to x; return the number of rewrites."""
    count = 0
    for op in func:
        if not isinstance(op, TransposeOp) or op.parent is not func:
            continue
        inner = op.input.owner
        if not isinstance(inner, TransposeOp):
            continue
        op.result.replace_all_uses_with(inner.input)
        op.erase()
        count += 1
    return count


def _fold_identity_casts(func: FuncOp) -> int:
    count = 0
    for op in func:
        if isinstance(op, CastOp) and op.parent is func and op.input.type == op.result.type:
            op.result.replace_all_uses_with(op.input)
            op.erase()
            count += 1
    return count


def _eliminate_dead_code(func: FuncOp) -> int:
    count = 0
    for op in reversed(list(func.body)):
        if isinstance(op, _PURE_OPS) and not any(r.has_uses for r in op.results):
            op.erase()
            count += 1
    return count


def _canonicalize(func: FuncOp) -> None:
    while (
        simplify_redundant_transpose(func)
        + _fold_identity_casts(func)
        + _eliminate_dead_code(func)
    ):
        pass


def _cse_key(op: Operation) -> Hashable | None:
    if not isinstance(op, _PURE_OPS):
        return None
    extra: Hashable = None
    if isinstance(op, ConstantOp):
        extra = (op.data, op.value_type)
    return (type(op), tuple(op.operands), tuple(op.result_types), extra)


def _eliminate_common_subexpressions(func: FuncOp) -> None:
    seen: dict[Hashable, Operation] = {}
    for op in func:
        key = _cse_key(op)
        if key is None:
            continue
        existing = seen.get(key)
        if existing is None:
            seen[key] = op
            continue
        for old, new in zip(op.results, existing.results):
            old.replace_all_uses_with(new)
        op.erase()


def optimize(module: ModuleOp) -> None:
    """Inline calls, infer shapes, then canonicalize and deduplicate each function."""
    inline_functions(module)
    for func in module:
        infer_shapes(func)
        _canonicalize(func)
        _eliminate_common_subexpressions(func)