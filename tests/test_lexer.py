import pytest

from toyc.lexer import Lexer, Location, Token


def tokens(text, filename="test.toy"):
    lexer = Lexer(text, filename)
    result = []
    while (tok := lexer.next_token()) != Token.EOF:
        result.append(tok)
    return result


def test_keywords_and_identifiers():
    assert tokens("def var return foo") == [
        Token.DEF,
        Token.VAR,
        Token.RETURN,
        Token.IDENTIFIER,
    ]


def test_identifier_text_with_digits_and_underscore():
    lexer = Lexer("a_1b next", "f")
    assert lexer.next_token() == Token.IDENTIFIER
    assert lexer.identifier == "a_1b"
    assert lexer.next_token() == Token.IDENTIFIER
    assert lexer.identifier == "next"


def test_number_value():
    lexer = Lexer("3.5", "f")
    assert lexer.next_token() == Token.NUMBER
    assert lexer.value == 3.5


def test_number_uses_longest_valid_prefix():
    lexer = Lexer("1.2.3", "f")
    assert lexer.next_token() == Token.NUMBER
    assert lexer.value == 1.2
    assert lexer.next_token() == Token.EOF


def test_punctuation_is_returned_as_characters():
    text = "(){}[];<>,=+*-"
    assert tokens(text) == list(text)


def test_comment_is_skipped():
    assert tokens("# a comment\nvar # trailing\n") == [Token.VAR]


def test_comment_at_end_of_file():
    assert tokens("# only a comment") == []


def test_empty_input_stays_at_eof():
    lexer = Lexer("", "f")
    assert lexer.cur_token == Token.EOF
    assert lexer.next_token() == Token.EOF
    assert lexer.next_token() == Token.EOF


def test_nul_ends_input():
    assert tokens("var\0def") == [Token.VAR]


def test_carriage_return_is_whitespace():
    assert tokens("var\r\ndef") == [Token.VAR, Token.DEF]


def test_locations():
    lexer = Lexer("def\n  foo", "prog.toy")
    lexer.next_token()
    assert lexer.last_location == Location("prog.toy", 1, 1)
    lexer.next_token()
    assert lexer.last_location == Location("prog.toy", 2, 3)


def test_locations_increase_along_a_line():
    lexer = Lexer("var a = b;", "f")
    columns = []
    while lexer.next_token() != Token.EOF:
        columns.append(lexer.last_location.col)
        assert lexer.last_location.line == lexer.line
    assert columns == sorted(columns)
    assert len(set(columns)) == len(columns)


def test_consume_advances():
    lexer = Lexer("def main", "f")
    lexer.next_token()
    lexer.consume(Token.DEF)
    assert lexer.cur_token == Token.IDENTIFIER
    assert lexer.identifier == "main"


def test_consume_mismatch_raises():
    lexer = Lexer("def", "f")
    lexer.next_token()
    with pytest.raises(ValueError):
        lexer.consume(";")