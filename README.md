# toyc

A compiler front end for Toy, a small tensor language. It reads Toy source,
builds an abstract syntax tree, generates an intermediate representation in a
Toy dialect, and can inline functions, infer tensor shapes and run a few
cleanups over that representation.

## A taste of Toy

```
def multiply_transpose(a, b) {
  return transpose(a) * transpose(b);
}

def main() {
  var a<2, 3> = [[1, 2, 3], [4, 5, 6]];
  var b<2, 3> = [1, 2, 3, 4, 5, 6];
  var c = multiply_transpose(a, b);
  print(c);
}
```

## Installing

```
pip install .
```

## Command line

```
toyc example.toy -emit=ast
toyc example.toy -emit=mlir
toyc example.toy -emit=mlir -opt
```

- `-emit=ast` (or `--emit ast`) writes the syntax tree to standard error.
- `-emit=mlir` writes the generated IR to standard error.
- `-opt` (or `--opt`), together with `-emit=mlir`, inlines calls into their
  callers and drops private functions that are no longer called, infers tensor
  shapes, then removes redundant transpose pairs, identity casts, unused
  operations and duplicate operations before printing.
- `-x toy` (the default) reads the input as Toy source; `-x mlir` marks it as
  textual IR. With no file name, or `-`, the input is read from standard input.

Without `-emit`, the tool reports that no action was given and exits with
status 0. Errors are reported on standard error with a non-zero exit status:

| Situation                                        | Status |
|--------------------------------------------------|--------|
| parse error or unreadable file with `-emit=ast`  | 1      |
| parse error or unreadable file with `-emit=mlir` | 6      |
| IR generation error                              | 1      |
| textual IR input (`-x mlir` or a `.mlir` file)   | 3      |
| shape inference or verification failure (`-opt`)| 4      |
| `-emit=ast` together with `-x mlir`              | 5      |

## As a library

```python
from toyc.parser import parse_module
from toyc.dump import dump
from toyc.mlirgen import mlir_gen
from toyc.passes import optimize
from toyc.ir import print_module

source = "def main() { var a<2, 2> = [1, 2, 3, 4]; print(transpose(a)); }"
ast = parse_module(source, "example.toy")
print(dump(ast), end="")

module = mlir_gen(ast)
optimize(module)
print(print_module(module), end="")
```

The modules:

- `toyc.lexer` — `Lexer`, `Token` and `Location`.
- `toyc.syntax` — the syntax tree node dataclasses (`Module`, `Function`,
  `Prototype`, `NumberExpr`, `LiteralExpr`, `BinaryExpr`, `CallExpr`, ...).
- `toyc.parser` — `Parser` and `parse_module(text, filename)`.
- `toyc.dump` — `dump(module)` returns the indented tree as a string.
- `toyc.ir` — types (`TensorType`, `FunctionType`), values, the operations
  (`ConstantOp`, `AddOp`, `MulOp`, `CastOp`, `TransposeOp`, `ReshapeOp`,
  `PrintOp`, `ReturnOp`, `GenericCallOp`), `FuncOp`, `ModuleOp`,
  `are_cast_compatible` and `print_module`.
- `toyc.mlirgen` — `mlir_gen(module_ast)` builds and verifies a `ModuleOp`.
- `toyc.passes` — `inline_functions`, `infer_shapes`,
  `simplify_redundant_transpose` and `optimize`.
- `toyc.cli` — `main(argv=None)`, the `toyc` command.

Malformed source raises `toyc.parser.ParseError`; problems found while
generating IR raise `toyc.mlirgen.CodegenError`; IR that fails its checks
raises `toyc.ir.VerificationError`; and shapes that cannot be resolved raise
`toyc.passes.ShapeInferenceError`.

## What it does not do

- It cannot read textual IR: `-x mlir` and `.mlir` files are rejected.
- There is no lowering to loops or to any lower-level form, and no code is
  executed or emitted; output stops at the Toy-dialect IR.
- Reshape operations are kept as written; no reshape folding is done.

## Running the tests

```
pip install .[test]
pytest
```