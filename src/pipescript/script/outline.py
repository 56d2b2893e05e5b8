"""Static view of the pipelines declared in a script, without running it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from . import ast

TASK_KINDS = ("step", "parallel")


@dataclass(frozen=True)
class PipelineOutline:
    """A pipeline name and the ``(kind, name)`` entries of its tasks."""

    name: str
    tasks: Sequence[Tuple[str, str]] = field(default_factory=tuple)

    @property
    def task_names(self) -> List[str]:
        return [name for _, name in self.tasks]


def _string_arg(call: ast.Call) -> Optional[str]:
    if not call.args:
        return None
    first = call.args[0]
    if isinstance(first, ast.Literal) and isinstance(first.value, str):
        return first.value
    return None


def _block_arg(call: ast.Call) -> Optional[ast.Block]:
    if call.args and isinstance(call.args[-1], ast.Block):
        return call.args[-1]
    return None


def _calls(statements: Iterable[ast.Stmt]) -> Iterable[ast.Call]:
    for statement in statements:
        if isinstance(statement, ast.ExprStmt) and isinstance(statement.expr, ast.Call):
            yield statement.expr


def _collect_tasks(statements: Iterable[ast.Stmt]) -> List[Tuple[str, str]]:
    tasks: List[Tuple[str, str]] = []
    for statement in statements:
        if isinstance(statement, ast.If):
            for branch in statement.branches:
                tasks.extend(_collect_tasks(branch.body))
            if statement.else_body:
                tasks.extend(_collect_tasks(statement.else_body))
            continue
        if not (isinstance(statement, ast.ExprStmt) and isinstance(statement.expr, ast.Call)):
            continue
        call = statement.expr
        name = _string_arg(call)
        if call.name in TASK_KINDS and name is not None:
            tasks.append((call.name, name))
    return tasks


def outline(script: ast.Script) -> List[PipelineOutline]:
    """Return the top-level ``pipeline("name") { ... }`` declarations of ``script``."""

    outlines: List[PipelineOutline] = []
    for call in _calls(script.body):
        name = _string_arg(call)
        block = _block_arg(call)
        if call.name != "pipeline" or name is None:
            continue
        tasks = _collect_tasks(block.body) if block is not None else []
        outlines.append(PipelineOutline(name, tuple(tasks)))
    return outlines


__all__ = ["PipelineOutline", "TASK_KINDS", "outline"]
