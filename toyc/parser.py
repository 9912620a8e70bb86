"""Recursive-descent parser turning Toy tokens into a syntax tree."""

from __future__ import annotations

from toyc.lexer import Lexer, Location, Token, TokenKind
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

_PRECEDENCE = {"-": 20, "+": 20, "*": 40}


def _token_code(tok: TokenKind) -> int:
    return tok.value if isinstance(tok, Token) else ord(tok)


def _describe_token(tok: TokenKind) -> str:
    code = _token_code(tok)
    text = str(code)
    if 32 <= code < 127:
        text += f" '{chr(code)}'"
    return text


class ParseError(Exception):
    """Raised when the source text does not follow the Toy grammar."""

    def __init__(
        self, message: str, location: Location, token: TokenKind | None = None
    ) -> None:
        super().__init__(message)
        self.location = location
        self.token = token


class Parser:
    """Builds a `Module` from the tokens of a `Lexer`.

    No semantic checks are made: undeclared variables and unknown
    functions parse without complaint.
    """

    def __init__(self, lexer: Lexer) -> None:
        self.lexer = lexer

    def parse_module(self) -> Module:
        """Parse a whole module, a sequence of function definitions."""
        self.lexer.next_token()
        functions: list[Function] = []
        while self.lexer.cur_token is not Token.EOF:
            functions.append(self._parse_definition())
        return Module(functions)

    # -- errors -----------------------------------------------------------

    def _error(self, expected: str, context: str = "") -> ParseError:
        loc = self.lexer.last_location
        tok = self.lexer.cur_token
        message = (
            f"Parse error ({loc.line}, {loc.col}): expected '{expected}' "
            f"{context} but has Token {_describe_token(tok)}"
        )
        return ParseError(message, loc, tok)

    # -- expressions ------------------------------------------------------

    def _parse_return(self) -> ReturnExpr:
        loc = self.lexer.last_location
        self.lexer.consume(Token.RETURN)
        expr = None
        if self.lexer.cur_token != ";":
            expr = self._parse_expression()
        return ReturnExpr(loc, expr)

    def _parse_number(self) -> NumberExpr:
        result = NumberExpr(self.lexer.last_location, self.lexer.value)
        self.lexer.consume(Token.NUMBER)
        return result

    def _parse_tensor_literal(self) -> LiteralExpr:
        loc = self.lexer.last_location
        self.lexer.consume("[")
        values: list[Expr] = []
        while True:
            if self.lexer.cur_token == "[":
                values.append(self._parse_tensor_literal())
            elif self.lexer.cur_token is Token.NUMBER:
                values.append(self._parse_number())
            else:
                raise self._error("<num> or [", "in literal expression")

            if self.lexer.cur_token == "]":
                break
            if self.lexer.cur_token != ",":
                raise self._error("] or ,", "in literal expression")
            self.lexer.next_token()

        self.lexer.next_token()
        dims = [len(values)]

        if any(isinstance(value, LiteralExpr) for value in values):
            first = values[0]
            if not all(isinstance(value, LiteralExpr) for value in values):
                raise self._error(
                    "uniform well-nested dimensions", "inside literal expression"
                )
            assert isinstance(first, LiteralExpr)
            if any(value.dims != first.dims for value in values):  # type: ignore[union-attr]
                raise self._error(
                    "uniform well-nested dimensions", "inside literal expression"
                )
            dims.extend(first.dims)

        return LiteralExpr(loc, values, dims)

    def _parse_paren(self) -> Expr:
        self.lexer.next_token()
        expr = self._parse_expression()
        if self.lexer.cur_token != ")":
            raise self._error(")", "to close expression with parentheses")
        self.lexer.consume(")")
        return expr

    def _parse_identifier_expr(self) -> Expr:
        name = self.lexer.identifier
        loc = self.lexer.last_location
        self.lexer.next_token()

        if self.lexer.cur_token != "(":
            return VariableExpr(loc, name)

        self.lexer.consume("(")
        args: list[Expr] = []
        if self.lexer.cur_token != ")":
            while True:
                args.append(self._parse_expression())
                if self.lexer.cur_token == ")":
                    break
                if self.lexer.cur_token != ",":
                    raise self._error(", or )", "in argument list")
                self.lexer.next_token()
        self.lexer.consume(")")

        if name == "print":
            if len(args) != 1:
                raise self._error("<single arg>", "as argument to print()")
            return PrintExpr(loc, args[0])
        return CallExpr(loc, name, args)

    def _parse_primary(self) -> Expr:
        tok = self.lexer.cur_token
        if tok is Token.IDENTIFIER:
            return self._parse_identifier_expr()
        if tok is Token.NUMBER:
            return self._parse_number()
        if tok == "(":
            return self._parse_paren()
        if tok == "[":
            return self._parse_tensor_literal()
        raise ParseError(
            f"unknown token '{_token_code(tok)}' when expecting an expression",
            self.lexer.last_location,
            tok,
        )

    def _precedence(self) -> int:
        tok = self.lexer.cur_token
        if isinstance(tok, Token):
            return -1
        return _PRECEDENCE.get(tok, -1)

    def _parse_binop_rhs(self, expr_prec: int, lhs: Expr) -> Expr:
        while True:
            tok_prec = self._precedence()
            if tok_prec < expr_prec:
                return lhs

            op = self.lexer.cur_token
            assert isinstance(op, str)
            self.lexer.consume(op)
            loc = self.lexer.last_location
            try:
                rhs = self._parse_primary()
            except ParseError:
                raise self._error("expression", "to complete binary operator")

            if tok_prec < self._precedence():
                rhs = self._parse_binop_rhs(tok_prec + 1, rhs)

            lhs = BinaryExpr(loc, op, lhs, rhs)

    def _parse_expression(self) -> Expr:
        return self._parse_binop_rhs(0, self._parse_primary())

    # -- statements -------------------------------------------------------

    def _parse_type(self) -> VarType:
        if self.lexer.cur_token != "<":
            raise self._error("<", "to begin type")
        self.lexer.next_token()
        shape: list[int] = []
        while self.lexer.cur_token is Token.NUMBER:
            shape.append(int(self.lexer.value))
            self.lexer.next_token()
            if self.lexer.cur_token == ",":
                self.lexer.next_token()
        if self.lexer.cur_token != ">":
            raise self._error(">", "to end type")
        self.lexer.next_token()
        return VarType(shape)

    def _parse_declaration(self) -> VarDeclExpr:
        if self.lexer.cur_token is not Token.VAR:
            raise self._error("var", "to begin declaration")
        loc = self.lexer.last_location
        self.lexer.next_token()

        if self.lexer.cur_token is not Token.IDENTIFIER:
            raise self._error("identified", "after 'var' declaration")
        name = self.lexer.identifier
        self.lexer.next_token()

        var_type = self._parse_type() if self.lexer.cur_token == "<" else VarType()

        if self.lexer.cur_token != "=":
            raise self._error("=", "in variable declaration")
        self.lexer.consume("=")

        init: Expr | None = None
        if self.lexer.cur_token not in (";", "}"):
            init = self._parse_expression()
        return VarDeclExpr(loc, name, var_type, init)

    def _skip_semicolons(self) -> None:
        while self.lexer.cur_token == ";":
            self.lexer.consume(";")

    def _parse_block(self) -> list[Expr]:
        if self.lexer.cur_token != "{":
            raise self._error("{", "to begin block")
        self.lexer.consume("{")
        exprs: list[Expr] = []
        self._skip_semicolons()

        while self.lexer.cur_token != "}" and self.lexer.cur_token is not Token.EOF:
            if self.lexer.cur_token is Token.VAR:
                exprs.append(self._parse_declaration())
            elif self.lexer.cur_token is Token.RETURN:
                exprs.append(self._parse_return())
            else:
                exprs.append(self._parse_expression())

            if self.lexer.cur_token != ";":
                raise self._error(";", "after expression")
            self._skip_semicolons()

        if self.lexer.cur_token != "}":
            raise self._error("}", "to close block")
        self.lexer.consume("}")
        return exprs

    def _parse_prototype(self) -> Prototype:
        loc = self.lexer.last_location
        if self.lexer.cur_token is not Token.DEF:
            raise self._error("def", "in prototype")
        self.lexer.consume(Token.DEF)

        if self.lexer.cur_token is not Token.IDENTIFIER:
            raise self._error("function name", "in prototype")
        name = self.lexer.identifier
        self.lexer.consume(Token.IDENTIFIER)

        if self.lexer.cur_token != "(":
            raise self._error("(", "in prototype")
        self.lexer.consume("(")

        args: list[VariableExpr] = []
        if self.lexer.cur_token != ")":
            if self.lexer.cur_token is not Token.IDENTIFIER:
                raise self._error("identifier", "in function parameter list")
            while True:
                args.append(
                    VariableExpr(self.lexer.last_location, self.lexer.identifier)
                )
                self.lexer.consume(Token.IDENTIFIER)
                if self.lexer.cur_token != ",":
                    break
                self.lexer.consume(",")
                if self.lexer.cur_token is not Token.IDENTIFIER:
                    raise self._error(
                        "identifier", "after ',' in function parameter list"
                    )

        if self.lexer.cur_token != ")":
            raise self._error(")", "to end function prototype")
        self.lexer.consume(")")
        return Prototype(loc, name, args)

    def _parse_definition(self) -> Function:
        proto = self._parse_prototype()
        return Function(proto, self._parse_block())


def parse_module(text: str, filename: str = "-") -> Module:
    """Parse Toy source text into a `Module`."""
    return Parser(Lexer(text, filename)).parse_module()