"""Lexer turning pipeline script source into a list of tokens."""

from __future__ import annotations

from pathlib import Path
from typing import List

from pipescript.errors import LexError

from .tokens import KEYWORDS, Position, Token, TokenKind

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    '"': '"',
    "\\": "\\",
    "$": "$",
}

_TWO_CHAR_OPERATORS = {
    "==": TokenKind.EQ,
    "!=": TokenKind.NE,
    "<=": TokenKind.LE,
    ">=": TokenKind.GE,
    "&&": TokenKind.AND,
    "||": TokenKind.OR,
}

_ONE_CHAR_TOKENS = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    ".": TokenKind.DOT,
    ",": TokenKind.COMMA,
    ":": TokenKind.COLON,
    "=": TokenKind.ASSIGN,
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "%": TokenKind.PERCENT,
    "<": TokenKind.LT,
    ">": TokenKind.GT,
    "!": TokenKind.NOT,
}

_SEPARATORS = frozenset(" \t\r\n;")
_DIGITS = frozenset("0123456789")


class Lexer:
    """Single-pass scanner over a script string."""

    def __init__(self, source: str) -> None:
        self.source = source
        self._pos = 0
        self._line = 1
        self._column = 1

    @classmethod
    def from_path(cls, path: str | Path) -> "Lexer":
        return cls(Path(path).read_text(encoding="utf-8"))

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        while True:
            self._skip_separators_and_comments()
            char = self._peek()
            if char is None:
                tokens.append(Token(TokenKind.EOF, None, self._position()))
                return tokens

            if char.isalpha() or char == "_":
                tokens.append(self._scan_identifier())
            elif char in _DIGITS:
                tokens.append(self._scan_number())
            elif char == '"':
                tokens.append(self._scan_string())
            else:
                tokens.append(self._scan_symbol())

    def _peek(self, ahead: int = 0) -> str | None:
        index = self._pos + ahead
        if index >= len(self.source):
            return None
        return self.source[index]

    def _advance(self) -> str:
        char = self.source[self._pos]
        self._pos += 1
        if char == "\n":
            self._line += 1
            self._column = 1
        else:
            self._column += 1
        return char

    def _position(self, length: int = 0) -> Position:
        return Position(self._pos, self._line, self._column, length)

    def _finish(self, start: Position) -> Position:
        return Position(start.offset, start.line, start.column, self._pos - start.offset)

    def _skip_separators_and_comments(self) -> None:
        while True:
            char = self._peek()
            if char is None:
                return
            if char in _SEPARATORS:
                self._advance()
                continue
            if char == "/" and self._peek(1) == "/":
                while self._peek() not in (None, "\n"):
                    self._advance()
                continue
            if char == "/" and self._peek(1) == "*":
                start = self._position(2)
                self._advance()
                self._advance()
                while not (self._peek() == "*" and self._peek(1) == "/"):
                    if self._peek() is None:
                        raise LexError("unterminated block comment", start)
                    self._advance()
                self._advance()
                self._advance()
                continue
            return

    def _scan_identifier(self) -> Token:
        start = self._position()
        chars = [self._advance()]
        while True:
            char = self._peek()
            if char is None or not (char.isalnum() or char == "_"):
                break
            chars.append(self._advance())
        text = "".join(chars)
        kind = TokenKind.KEYWORD if text in KEYWORDS else TokenKind.IDENTIFIER
        return Token(kind, text, self._finish(start))

    def _scan_number(self) -> Token:
        start = self._position()
        chars = self._scan_digits()
        following = self._peek(1)
        if self._peek() == "." and following is not None and following in _DIGITS:
            chars.append(self._advance())
            chars.extend(self._scan_digits())
            return Token(TokenKind.FLOAT, float("".join(chars)), self._finish(start))
        return Token(TokenKind.INT, int("".join(chars)), self._finish(start))

    def _scan_digits(self) -> List[str]:
        digits: List[str] = []
        while True:
            char = self._peek()
            if char is None or char not in _DIGITS:
                return digits
            digits.append(self._advance())

    def _scan_string(self) -> Token:
        start = self._position()
        self._advance()
        chars = []
        while True:
            char = self._peek()
            if char is None:
                raise LexError("unterminated string literal", self._finish(start))
            self._advance()
            if char == '"':
                break
            if char == "\\":
                escaped = self._peek()
                if escaped is None:
                    raise LexError("unterminated string literal", self._finish(start))
                self._advance()
                if escaped not in _ESCAPES:
                    raise LexError(f"unknown escape sequence '\\{escaped}'", self._finish(start))
                chars.append(_ESCAPES[escaped])
                continue
            chars.append(char)
        return Token(TokenKind.STRING, "".join(chars), self._finish(start))

    def _scan_symbol(self) -> Token:
        start = self._position()
        pair = self.source[self._pos:self._pos + 2]
        if pair in _TWO_CHAR_OPERATORS:
            self._advance()
            self._advance()
            return Token(_TWO_CHAR_OPERATORS[pair], None, self._finish(start))

        char = self._peek()
        kind = _ONE_CHAR_TOKENS.get(char or "")
        if kind is None:
            raise LexError(f"undefined symbol '{char}'", self._position(1))
        self._advance()
        return Token(kind, None, self._finish(start))


def tokenize(source: str) -> List[Token]:
    """Tokenize ``source`` and return the tokens including the trailing EOF."""

    return Lexer(source).tokenize()


__all__ = ["Lexer", "tokenize"]
