"""Lexing, parsing and static inspection of pipeline scripts."""

from . import ast
from .lexer import Lexer, tokenize
from .outline import PipelineOutline, outline
from .parser import Parser, parse, parse_expression
from .tokens import KEYWORDS, NO_POSITION, Position, Token, TokenKind

__all__ = [
    "KEYWORDS",
    "Lexer",
    "NO_POSITION",
    "Parser",
    "PipelineOutline",
    "Position",
    "Token",
    "TokenKind",
    "ast",
    "outline",
    "parse",
    "parse_expression",
    "tokenize",
]
