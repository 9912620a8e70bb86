"""Tokenizer for the Toy language."""

from __future__ import annotations

import enum
import re
import string
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Union

_SPACE = frozenset(" \t\n\r\v\f")
_ALPHA = frozenset(string.ascii_letters)
_ALNUM = frozenset(string.ascii_letters + string.digits)
_DIGITS = frozenset(string.digits)
_NUMBER_PREFIX = re.compile(r"\d+\.?\d*|\.\d+")

_KEYWORDS = {
    "return": "RETURN",
    "def": "DEF",
    "var": "VAR",
}


class Token(enum.Enum):
    """Token kinds that are not a single punctuation character."""

    EOF = -1
    RETURN = -2
    VAR = -3
    DEF = -4
    IDENTIFIER = -5
    NUMBER = -6


TokenKind = Union[Token, str]
"""A token is either a `Token` member or a single punctuation character."""


@dataclass(frozen=True)
class Location:
    """A position in a source file; lines and columns count from 1."""

    file: str
    line: int
    col: int


def _split_lines(text: str) -> Iterator[str]:
    """Yield the lines of ``text``, each keeping its trailing newline."""
    start = 0
    while start < len(text):
        newline = text.find("\n", start)
        stop = len(text) if newline < 0 else newline + 1
        yield text[start:stop]
        start = stop


def _parse_number(digits: str) -> float:
    """Read the longest numeric prefix of a run of digits and dots."""
    match = _NUMBER_PREFIX.match(digits)
    return float(match.group()) if match else 0.0


class Lexer:
    """Splits Toy source text into tokens, tracking source locations.

    The current token is in ``cur_token``. When it is ``Token.IDENTIFIER``
    the name is in ``identifier``; when it is ``Token.NUMBER`` the number is
    in ``value``. ``last_location`` is where the current token starts.
    """

    def __init__(self, text: str, filename: str = "-") -> None:
        nul = text.find("\0")
        if nul >= 0:
            text = text[:nul]
        self.filename = filename
        self.cur_token: TokenKind = Token.EOF
        self.last_location = Location(filename, 0, 0)
        self.identifier = ""
        self.value = 0.0
        self._lines = _split_lines(text)
        self._buffer = "\n"
        self._pos = 0
        self._line = 0
        self._col = 0
        self._last_char: str | None = " "

    @property
    def line(self) -> int:
        """The line the lexer has read up to."""
        return self._line

    @property
    def col(self) -> int:
        """The column the lexer has read up to."""
        return self._col

    def next_token(self) -> TokenKind:
        """Advance to the next token and return it."""
        self.cur_token = self._read_token()
        return self.cur_token

    def consume(self, tok: TokenKind) -> None:
        """Advance past the current token, which must be ``tok``."""
        if tok != self.cur_token:
            raise ValueError(
                f"expected token {tok!r} but the current token is {self.cur_token!r}"
            )
        self.next_token()

    def _next_char(self) -> str | None:
        if self._pos >= len(self._buffer):
            return None
        self._col += 1
        char = self._buffer[self._pos]
        self._pos += 1
        if self._pos >= len(self._buffer):
            self._buffer = next(self._lines, "")
            self._pos = 0
        if char == "\n":
            self._line += 1
            self._col = 0
        return char

    def _advance(self) -> str | None:
        self._last_char = self._next_char()
        return self._last_char

    def _read_token(self) -> TokenKind:
        while True:
            while self._last_char is not None and self._last_char in _SPACE:
                self._advance()

            self.last_location = Location(self.filename, self._line, self._col)
            char = self._last_char

            if char is None:
                return Token.EOF

            if char in _ALPHA:
                chars = [char]
                while (nxt := self._advance()) is not None and (
                    nxt in _ALNUM or nxt == "_"
                ):
                    chars.append(nxt)
                self.identifier = "".join(chars)
                keyword = _KEYWORDS.get(self.identifier)
                return Token[keyword] if keyword else Token.IDENTIFIER

            if char in _DIGITS or char == ".":
                chars = []
                nxt: str | None = char
                while nxt is not None and (nxt in _DIGITS or nxt == "."):
                    chars.append(nxt)
                    nxt = self._advance()
                self.value = _parse_number("".join(chars))
                return Token.NUMBER

            if char == "#":
                while (nxt := self._advance()) is not None and nxt not in "\n\r":
                    pass
                if nxt is not None:
                    continue
                return Token.EOF

            self._advance()
            return char