"""Compiler front end for the Toy tensor language: lexer, parser, AST dump, IR generation and passes."""

__version__ = "0.5.0"

__all__ = ["cli", "dump", "ir", "lexer", "mlirgen", "parser", "passes", "syntax"]