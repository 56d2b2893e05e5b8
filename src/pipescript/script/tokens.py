"""Token and source position types produced by the lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

KEYWORDS = frozenset(
    {
        "let",
        "fn",
        "return",
        "if",
        "else",
        "while",
        "for",
        "in",
        "break",
        "continue",
        "import",
        "true",
        "false",
    }
)


class TokenKind(Enum):
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    LPAREN = "("
    RPAREN = ")"
    LBRACE = "{"
    RBRACE = "}"
    LBRACKET = "["
    RBRACKET = "]"
    DOT = "."
    COMMA = ","
    COLON = ":"
    ASSIGN = "="
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    AND = "&&"
    OR = "||"
    NOT = "!"
    EOF = "end of file"


@dataclass(frozen=True)
class Position:
    """Location of a token or node in the script source."""

    offset: int
    line: int
    column: int
    length: int = 0

    def span_to(self, other: "Position") -> "Position":
        end = max(self.offset + self.length, other.offset + other.length)
        return Position(self.offset, self.line, self.column, end - self.offset)

    def source_line(self, source: str) -> str:
        lines = source.splitlines()
        if 0 < self.line <= len(lines):
            return lines[self.line - 1]
        return ""


NO_POSITION = Position(0, 0, 0, 0)

TokenValue = Union[str, int, float, None]


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: TokenValue
    position: Position

    def is_keyword(self, name: str) -> bool:
        return self.kind is TokenKind.KEYWORD and self.value == name

    def describe(self) -> str:
        if self.kind is TokenKind.EOF:
            return "end of file"
        if self.kind is TokenKind.STRING:
            return f"\"{self.value}\""
        if self.value is not None:
            return f"\"{self.value}\""
        return f"\"{self.kind.value}\""


__all__ = ["KEYWORDS", "NO_POSITION", "Position", "Token", "TokenKind", "TokenValue"]
