"""Command-line driver for the Toy compiler."""

from __future__ import annotations

import argparse
import enum
import sys
from collections.abc import Sequence
from pathlib import Path

from toyc.dump import dump
from toyc.ir import ModuleOp, VerificationError
from toyc.mlirgen import CodegenError, mlir_gen
from toyc.parser import ParseError, parse_module
from toyc.passes import ShapeInferenceError, optimize
from toyc.syntax import Module


class InputType(enum.Enum):
    """How the input file is to be read."""

    TOY = "toy"
    MLIR = "mlir"


class Action(enum.Enum):
    """What the driver emits."""

    DUMP_AST = "ast"
    DUMP_MLIR = "mlir"


class _InputError(Exception):
    """The input file could not be read or parsed."""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="toyc", description="toy compiler")
    parser.add_argument(
        "input",
        nargs="?",
        default="-",
        metavar="filename",
        help="input toy file",
    )
    parser.add_argument(
        "-x",
        dest="input_type",
        type=InputType,
        choices=list(InputType),
        default=InputType.TOY,
        metavar="{toy,mlir}",
        help="load the input file as a Toy source or as an MLIR file",
    )
    parser.add_argument(
        "-emit",
        "--emit",
        dest="action",
        type=Action,
        choices=list(Action),
        default=None,
        metavar="{ast,mlir}",
        help="select the kind of output desired",
    )
    parser.add_argument(
        "-opt",
        "--opt",
        dest="opt",
        action="store_true",
        help="enable optimizations",
    )
    return parser


def _err(message: str) -> None:
    sys.stderr.write(message + "\n")


def _read_input(filename: str) -> str:
    if filename == "-":
        return sys.stdin.read()
    try:
        return Path(filename).read_text()
    except OSError as exc:
        raise _InputError(
            f"Could not open input file: {exc.strerror or exc}"
        ) from exc


def _parse_input_file(filename: str) -> Module:
    text = _read_input(filename)
    try:
        return parse_module(text, filename)
    except ParseError as exc:
        raise _InputError(str(exc)) from exc


def _load_module(filename: str, input_type: InputType) -> ModuleOp | int:
    """Build the IR module, or return the exit status of the failure."""
    if input_type is not InputType.MLIR and not filename.endswith(".mlir"):
        try:
            module_ast = _parse_input_file(filename)
        except _InputError as exc:
            _err(str(exc))
            return 6
        try:
            return mlir_gen(module_ast)
        except CodegenError as exc:
            _err(str(exc))
            return 1

    try:
        _read_input(filename)
    except _InputError as exc:
        _err(str(exc))
        return -1
    _err(f"Error can't load file {filename}: textual IR input is not supported")
    return 3


def _dump_mlir(filename: str, input_type: InputType, opt: bool) -> int:
    loaded = _load_module(filename, input_type)
    if isinstance(loaded, int):
        return loaded
    module = loaded

    if opt:
        try:
            optimize(module)
            module.verify()
        except (ShapeInferenceError, VerificationError) as exc:
            _err(str(exc))
            return 4

    sys.stderr.write(str(module))
    return 0


def _dump_ast(filename: str, input_type: InputType) -> int:
    if input_type is InputType.MLIR:
        _err("Can't dump a Toy AST when the input is MLIR")
        return 5
    try:
        module_ast = _parse_input_file(filename)
    except _InputError as exc:
        _err(str(exc))
        return 1
    sys.stderr.write(dump(module_ast))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the compiler on the command line ``argv``; return the exit status."""
    args = _build_parser().parse_args(argv)

    if args.action is Action.DUMP_AST:
        return _dump_ast(args.input, args.input_type)
    if args.action is Action.DUMP_MLIR:
        return _dump_mlir(args.input, args.input_type, args.opt)

    _err("No action specified (parsing only?), use -emit=<action>")
    return 0


if __name__ == "__main__":
    sys.exit(main())