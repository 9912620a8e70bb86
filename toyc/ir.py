"""Intermediate representation of the Toy dialect: types, operations and printing."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import ClassVar, Union

from toyc.lexer import Location


class VerificationError(Exception):
    """Raised when the IR breaks one of the dialect's rules."""


@dataclass(frozen=True)
class TensorType:
    """A tensor of ``element_type``; ``shape`` is None when unranked."""

    shape: tuple[int, ...] | None = None
    element_type: str = "f64"

    def __post_init__(self) -> None:
        if self.shape is not None:
            object.__setattr__(self, "shape", tuple(int(d) for d in self.shape))

    @property
    def ranked(self) -> bool:
        return self.shape is not None

    @property
    def rank(self) -> int:
        if self.shape is None:
            raise ValueError("an unranked tensor has no rank")
        return len(self.shape)

    @property
    def num_elements(self) -> int:
        if self.shape is None:
            raise ValueError("an unranked tensor has no element count")
        return math.prod(self.shape)

    def __str__(self) -> str:
        if self.shape is None:
            return f"tensor<*x{self.element_type}>"
        dims = "".join(f"{d}x" for d in self.shape)
        return f"tensor<{dims}{self.element_type}>"


@dataclass(frozen=True)
class FunctionType:
    """The signature of a function: input and result types."""

    inputs: tuple[TensorType, ...] = ()
    results: tuple[TensorType, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "results", tuple(self.results))

    def __str__(self) -> str:
        inputs = ", ".join(str(t) for t in self.inputs)
        if len(self.results) == 1:
            results = str(self.results[0])
        else:
            results = "(" + ", ".join(str(t) for t in self.results) + ")"
        return f"({inputs}) -> {results}"


Type = Union[TensorType, FunctionType]


@dataclass(eq=False)
class Value:
    """An SSA value; ``owner`` is the defining operation, None for arguments."""

    type: TensorType
    owner: Operation | None = None
    _users: list[Operation] = field(default_factory=list, repr=False)

    @property
    def users(self) -> tuple[Operation, ...]:
        """Operations using this value, once per use."""
        return tuple(self._users)

    @property
    def has_uses(self) -> bool:
        return bool(self._users)

    def replace_all_uses_with(self, other: Value) -> None:
        """Make every user of this value use ``other`` instead."""
        if other is self:
            return
        for user in list(dict.fromkeys(self._users)):
            user.set_operands([other if v is self else v for v in user.operands])


def _format_float(value: float) -> str:
    return f"{value:e}"


def _nest(data: Sequence[float], shape: tuple[int, ...]) -> str:
    if not shape:
        return _format_float(data[0])
    step = math.prod(shape[1:])
    parts = (
        _nest(data[i * step : (i + 1) * step], shape[1:]) for i in range(shape[0])
    )
    return "[" + ", ".join(parts) + "]"


Namer = Callable[[Value], str]


class Operation:
    """Base of all operations inside a function body."""

    name: ClassVar[str] = "toy.op"
    infers_shapes: ClassVar[bool] = False

    def __init__(
        self,
        operands: Iterable[Value] = (),
        result_types: Iterable[TensorType] = (),
        location: Location | None = None,
    ) -> None:
        self.location = location
        self.parent: FuncOp | None = None
        self.operands: list[Value] = []
        self.results = [Value(t, self) for t in result_types]
        self.set_operands(operands)

    def set_operands(self, operands: Iterable[Value]) -> None:
        """Replace the operand list, keeping use lists up to date."""
        for value in self.operands:
            value._users.remove(self)
        self.operands = list(operands)
        for value in self.operands:
            value._users.append(self)

    @property
    def result(self) -> Value:
        if len(self.results) != 1:
            raise ValueError(f"'{self.name}' does not have exactly one result")
        return self.results[0]

    @property
    def operand_types(self) -> list[TensorType]:
        return [v.type for v in self.operands]

    @property
    def result_types(self) -> list[TensorType]:
        return [v.type for v in self.results]

    def verify(self) -> None:
        """Check the operation's own rules; raise VerificationError if broken."""

    def infer_shapes(self) -> None:
        """Set result types from operand types."""
        raise TypeError(
            f"unable to infer shape of operation '{self.name}' without shape "
            "inference interface"
        )

    def erase(self) -> None:
        """Remove the operation from its function; its results must be unused."""
        if any(r.has_uses for r in self.results):
            raise ValueError(f"cannot erase '{self.name}': its results are in use")
        self.set_operands(())
        if self.parent is not None:
            self.parent.body.remove(self)
            self.parent = None

    def _op_error(self, message: str) -> VerificationError:
        return VerificationError(f"'{self.name}' op {message}")

    def _assembly(self, names: Namer) -> str:
        operands = ", ".join(names(v) for v in self.operands)
        types = FunctionType(tuple(self.operand_types), tuple(self.result_types))
        return f'"{self.name}"({operands}) : {types}'


class ConstantOp(Operation):
    """A constant tensor holding flattened ``data`` of shape ``value_type``."""

    name = "toy.constant"

    def __init__(
        self,
        data: Iterable[float],
        value_type: TensorType,
        result_type: TensorType | None = None,
        location: Location | None = None,
    ) -> None:
        if not value_type.ranked:
            raise ValueError("a constant's value must have a ranked type")
        values = tuple(float(x) for x in data)
        if len(values) != value_type.num_elements:
            raise ValueError(
                f"constant has {len(values)} elements but its type "
                f"{value_type} needs {value_type.num_elements}"
            )
        self.data = values
        self.value_type = value_type
        super().__init__((), [result_type or value_type], location)

    @classmethod
    def scalar(cls, value: float, location: Location | None = None) -> ConstantOp:
        """A rank-0 constant holding one number."""
        return cls([value], TensorType(()), location=location)

    def verify(self) -> None:
        result_type = self.result.type
        if not result_type.ranked:
            return
        attr_type = self.value_type
        if attr_type.rank != result_type.rank:
            raise self._op_error(
                "return type must match the one of the attached value attribute: "
                f"{attr_type.rank} != {result_type.rank}"
            )
        assert attr_type.shape is not None and result_type.shape is not None
        for dim, (have, want) in enumerate(zip(attr_type.shape, result_type.shape)):
            if have != want:
                raise self._op_error(
                    "return type shape mismatches its attribute at dimension "
                    f"{dim}: {have} != {want}"
                )

    def dense_text(self) -> str:
        """The value printed as a dense elements attribute."""
        assert self.value_type.shape is not None
        if self.data and all(x == self.data[0] for x in self.data):
            body = _format_float(self.data[0])
        elif not self.data:
            body = ""
        else:
            body = _nest(self.data, self.value_type.shape)
        return f"dense<{body}> : {self.value_type}"

    def _assembly(self, names: Namer) -> str:
        return f"{self.name} {self.dense_text()}"


def _binary_assembly(op: Operation, names: Namer) -> str:
    operands = ", ".join(names(v) for v in op.operands)
    result_type = op.result.type
    if all(t == result_type for t in op.operand_types):
        type_text = str(result_type)
    else:
        type_text = str(FunctionType(tuple(op.operand_types), (result_type,)))
    return f"{op.name} {operands} : {type_text}"


class _BinaryOp(Operation):
    infers_shapes = True

    def __init__(
        self, lhs: Value, rhs: Value, location: Location | None = None
    ) -> None:
        super().__init__((lhs, rhs), [TensorType()], location)

    @property
    def lhs(self) -> Value:
        return self.operands[0]

    @property
    def rhs(self) -> Value:
        return self.operands[1]

    def infer_shapes(self) -> None:
        self.result.type = self.lhs.type

    def _assembly(self, names: Namer) -> str:
        return _binary_assembly(self, names)


class AddOp(_BinaryOp):
    """Element-wise addition."""

    name = "toy.add"


class MulOp(_BinaryOp):
    """Element-wise multiplication."""

    name = "toy.mul"


def are_cast_compatible(
    inputs: Sequence[Type], outputs: Sequence[Type]
) -> bool:
    """Whether a cast from ``inputs`` to ``outputs`` is allowed."""
    if len(inputs) != 1 or len(outputs) != 1:
        return False
    source, target = inputs[0], outputs[0]
    if not isinstance(source, TensorType) or not isinstance(target, TensorType):
        return False
    if source.element_type != target.element_type:
        return False
    return not source.ranked or not target.ranked or source == target


class CastOp(Operation):
    """A shape cast between compatible tensor types."""

    name = "toy.cast"
    infers_shapes = True

    def __init__(
        self, input: Value, result_type: TensorType, location: Location | None = None
    ) -> None:
        super().__init__((input,), [result_type], location)

    @property
    def input(self) -> Value:
        return self.operands[0]

    def infer_shapes(self) -> None:
        self.result.type = self.input.type

    def verify(self) -> None:
        if not are_cast_compatible(self.operand_types, self.result_types):
            raise self._op_error(
                f"operand type {self.input.type} and result type "
                f"{self.result.type} are cast incompatible"
            )

    def _assembly(self, names: Namer) -> str:
        return (
            f"{self.name} {names(self.input)} : {self.input.type} "
            f"to {self.result.type}"
        )


class TransposeOp(Operation):
    """Transposition: the result shape is the input shape reversed."""

    name = "toy.transpose"
    infers_shapes = True

    def __init__(self, input: Value, location: Location | None = None) -> None:
        super().__init__((input,), [TensorType()], location)

    @property
    def input(self) -> Value:
        return self.operands[0]

    def infer_shapes(self) -> None:
        source = self.input.type
        if source.shape is None:
            raise TypeError("cannot infer the shape of a transpose of an unranked tensor")
        self.result.type = TensorType(tuple(reversed(source.shape)), source.element_type)

    def verify(self) -> None:
        source, result = self.input.type, self.result.type
        if source.shape is None or result.shape is None:
            return
        if source.shape != tuple(reversed(result.shape)):
            raise VerificationError(
                "expected result shape to be a transpose of the input"
            )

    def _assembly(self, names: Namer) -> str:
        return (
            f"{self.name}({names(self.input)} : {self.input.type}) "
            f"to {self.result.type}"
        )


class ReshapeOp(Operation):
    """Reshape of a tensor to a given ranked type."""

    name = "toy.reshape"

    def __init__(
        self, input: Value, result_type: TensorType, location: Location | None = None
    ) -> None:
        super().__init__((input,), [result_type], location)

    @property
    def input(self) -> Value:
        return self.operands[0]

    def _assembly(self, names: Namer) -> str:
        return (
            f"{self.name}({names(self.input)} : {self.input.type}) "
            f"to {self.result.type}"
        )


class PrintOp(Operation):
    """The builtin print of a tensor."""

    name = "toy.print"

    def __init__(self, input: Value, location: Location | None = None) -> None:
        super().__init__((input,), (), location)

    @property
    def input(self) -> Value:
        return self.operands[0]

    def _assembly(self, names: Namer) -> str:
        return f"{self.name} {names(self.input)} : {self.input.type}"


class ReturnOp(Operation):
    """Function terminator, returning at most one value."""

    name = "toy.return"

    def __init__(
        self, operands: Iterable[Value] = (), location: Location | None = None
    ) -> None:
        super().__init__(operands, (), location)

    @property
    def has_operand(self) -> bool:
        return bool(self.operands)

    def verify(self) -> None:
        function = self.parent
        if function is None:
            raise self._op_error("expects parent op 'toy.func'")
        if len(self.operands) > 1:
            raise self._op_error("expects at most 1 return operand")
        results = function.function_type.results
        if len(self.operands) != len(results):
            raise self._op_error(
                f"does not return the same number of values ({len(self.operands)}) "
                f"as the enclosing function ({len(results)})"
            )
        if not self.operands:
            return
        input_type, result_type = self.operands[0].type, results[0]
        if input_type == result_type or not input_type.ranked or not result_type.ranked:
            return
        raise VerificationError(
            f"type of return operand ({input_type}) doesn't match function "
            f"result type ({result_type})"
        )

    def _assembly(self, names: Namer) -> str:
        if not self.operands:
            return self.name
        operands = ", ".join(names(v) for v in self.operands)
        types = ", ".join(str(t) for t in self.operand_types)
        return f"{self.name} {operands} : {types}"


class GenericCallOp(Operation):
    """A call to a user-defined function by symbol name."""

    name = "toy.generic_call"

    def __init__(
        self,
        callee: str,
        arguments: Iterable[Value],
        location: Location | None = None,
    ) -> None:
        self.callee = callee
        super().__init__(arguments, [TensorType()], location)

    def _assembly(self, names: Namer) -> str:
        args = ", ".join(names(v) for v in self.operands)
        types = FunctionType(tuple(self.operand_types), tuple(self.result_types))
        return f"{self.name} @{self.callee}({args}) : {types}"


class FuncOp:
    """A function: a signature, entry arguments and a body of operations."""

    name: ClassVar[str] = "toy.func"

    def __init__(
        self,
        sym_name: str,
        function_type: FunctionType,
        location: Location | None = None,
        private: bool = False,
    ) -> None:
        self.sym_name = sym_name
        self.function_type = function_type
        self.location = location
        self.private = private
        self.parent: ModuleOp | None = None
        self.arguments = [Value(t) for t in function_type.inputs]
        self.body: list[Operation] = []

    def __iter__(self) -> Iterator[Operation]:
        return iter(list(self.body))

    def append(self, op: Operation) -> Operation:
        """Add ``op`` at the end of the body."""
        op.parent = self
        self.body.append(op)
        return op

    def insert(self, index: int, op: Operation) -> Operation:
        """Add ``op`` at position ``index`` of the body."""
        op.parent = self
        self.body.insert(index, op)
        return op

    def insert_before(self, anchor: Operation, op: Operation) -> Operation:
        """Add ``op`` just before ``anchor``."""
        return self.insert(self.body.index(anchor), op)

    def erase(self) -> None:
        """Remove the function from its module."""
        if self.parent is not None:
            self.parent.functions.remove(self)
            self.parent = None

    def verify(self) -> None:
        """Check the body's structure and every operation in it."""
        prefix = f"'{self.name}' op @{self.sym_name}:"
        if [a.type for a in self.arguments] != list(self.function_type.inputs):
            raise VerificationError(
                f"{prefix} entry block arguments do not match the function signature"
            )
        if not self.body or not isinstance(self.body[-1], ReturnOp):
            raise VerificationError(f"{prefix} block with no terminator")
        defined = set(self.arguments)
        for position, op in enumerate(self.body):
            if op.parent is not self:
                raise VerificationError(f"{prefix} operation has a wrong parent")
            if isinstance(op, ReturnOp) and position != len(self.body) - 1:
                raise op._op_error("must be the last operation in the parent block")
            for index, operand in enumerate(op.operands):
                if operand not in defined:
                    raise op._op_error(
                        f"operand #{index} does not dominate this use"
                    )
            op.verify()
            defined.update(op.results)


class ModuleOp:
    """A list of functions; the unit of compilation."""

    def __init__(self, functions: Iterable[FuncOp] = ()) -> None:
        self.functions: list[FuncOp] = []
        for func in functions:
            self.append(func)

    def __iter__(self) -> Iterator[FuncOp]:
        return iter(list(self.functions))

    def append(self, func: FuncOp) -> FuncOp:
        func.parent = self
        self.functions.append(func)
        return func

    def lookup(self, name: str) -> FuncOp | None:
        """The function named ``name``, or None."""
        return next((f for f in self.functions if f.sym_name == name), None)

    def verify(self) -> None:
        """Verify every function; raise VerificationError on the first fault."""
        seen: set[str] = set()
        for func in self.functions:
            if func.sym_name in seen:
                raise VerificationError(
                    f"redefinition of symbol named '{func.sym_name}'"
                )
            seen.add(func.sym_name)
            func.verify()

    def __str__(self) -> str:
        return print_module(self)


def _print_func(func: FuncOp, indent: str) -> list[str]:
    names: dict[Value, str] = {}
    for index, arg in enumerate(func.arguments):
        names[arg] = f"%arg{index}"

    def namer(value: Value) -> str:
        return names.get(value, "<<UNKNOWN SSA VALUE>>")

    params = ", ".join(f"{names[a]}: {a.type}" for a in func.arguments)
    header = f"{indent}{func.name} "
    if func.private:
        header += "private "
    header += f"@{func.sym_name}({params})"
    results = func.function_type.results
    if len(results) == 1:
        header += f" -> {results[0]}"
    elif results:
        header += " -> (" + ", ".join(str(t) for t in results) + ")"
    lines = [header + " {"]

    counter = 0
    for op in func.body:
        text = op._assembly(namer)
        if op.results:
            result_names = []
            for result in op.results:
                names[result] = f"%{counter}"
                result_names.append(names[result])
                counter += 1
            text = ", ".join(result_names) + " = " + text
        lines.append(f"{indent}  {text}")
    lines.append(indent + "}")
    return lines


def print_module(module: ModuleOp) -> str:
    """Render ``module`` in the textual IR form."""
    lines = ["module {"]
    for func in module.functions:
        lines.extend(_print_func(func, "  "))
    lines.append("}")
    return "\n".join(lines) + "\n"