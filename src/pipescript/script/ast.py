"""Syntax tree nodes produced by the parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Union

from .tokens import NO_POSITION, Position


# Expressions -----------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    value: Union[str, int, float, bool]
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Variable:
    name: str
    position: Position = NO_POSITION


@dataclass(frozen=True)
class ArrayLiteral:
    items: Sequence["Expr"]
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Unary:
    operator: str
    operand: "Expr"
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Binary:
    operator: str
    left: "Expr"
    right: "Expr"
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Index:
    target: "Expr"
    index: "Expr"
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Call:
    """A call ``callee(args)``; a trailing block is appended to ``args``."""

    callee: "Expr"
    args: Sequence["Expr"]
    position: Position = NO_POSITION

    @property
    def name(self) -> Optional[str]:
        if isinstance(self.callee, Variable):
            return self.callee.name
        return None


@dataclass(frozen=True)
class Block:
    """A ``{ ... }`` block used as a value, i.e. a closure without parameters."""

    body: Sequence["Stmt"]
    position: Position = NO_POSITION


Expr = Union[Literal, Variable, ArrayLiteral, Unary, Binary, Index, Call, Block]


# Statements ------------------------------------------------------------------


@dataclass(frozen=True)
class ExprStmt:
    expr: Expr
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Let:
    name: str
    value: Expr
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Assign:
    name: str
    value: Expr
    position: Position = NO_POSITION


@dataclass(frozen=True)
class IndexAssign:
    target: Expr
    index: Expr
    value: Expr
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Parameter:
    name: str
    declared_type: Optional[str] = None


@dataclass(frozen=True)
class FnDef:
    name: str
    params: Sequence[Parameter]
    body: Sequence["Stmt"]
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Return:
    value: Optional[Expr]
    position: Position = NO_POSITION


@dataclass(frozen=True)
class IfBranch:
    condition: Expr
    body: Sequence["Stmt"]


@dataclass(frozen=True)
class If:
    branches: Sequence[IfBranch]
    else_body: Optional[Sequence["Stmt"]] = None
    position: Position = NO_POSITION


@dataclass(frozen=True)
class While:
    condition: Expr
    body: Sequence["Stmt"]
    position: Position = NO_POSITION


@dataclass(frozen=True)
class ForIn:
    name: str
    iterable: Expr
    body: Sequence["Stmt"]
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Break:
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Continue:
    position: Position = NO_POSITION


@dataclass(frozen=True)
class Import:
    module: str
    position: Position = NO_POSITION


Stmt = Union[
    ExprStmt,
    Let,
    Assign,
    IndexAssign,
    FnDef,
    Return,
    If,
    While,
    ForIn,
    Break,
    Continue,
    Import,
]


@dataclass(frozen=True)
class Script:
    """A parsed script: top level statements plus hoisted function definitions."""

    body: Sequence[Stmt]
    functions: Dict[str, FnDef] = field(default_factory=dict)
    source: str = ""


__all__ = [
    "ArrayLiteral",
    "Assign",
    "Binary",
    "Block",
    "Break",
    "Call",
    "Continue",
    "Expr",
    "ExprStmt",
    "FnDef",
    "ForIn",
    "If",
    "IfBranch",
    "Import",
    "Index",
    "IndexAssign",
    "Let",
    "Literal",
    "Parameter",
    "Return",
    "Script",
    "Stmt",
    "Unary",
    "Variable",
    "While",
]
