"""Exception hierarchy shared by the lexer, parser, interpreter and runner."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from pipescript.script.tokens import Position, Token


class PipescriptError(RuntimeError):
    """Base class for every error raised by pipescript."""

    def __init__(self, message: str, position: Optional["Position"] = None) -> None:
        super().__init__(message)
        self.message = message
        self.position = position

    def with_position(self, position: Optional["Position"]) -> "PipescriptError":
        if self.position is None and position is not None:
            self.position = position
        return self

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} (line {self.position.line}, column {self.position.column})"


class ConfigError(PipescriptError):
    """Raised when the settings file is invalid."""


class TemplateError(PipescriptError):
    """Raised when a template or layout file is missing or unusable."""


class LexError(PipescriptError):
    """Raised on characters the lexer does not understand."""


class ParseError(PipescriptError):
    """Raised when the token stream does not form a valid script."""


class UnexpectedToken(ParseError):
    def __init__(self, token: "Token", expected: str | None = None) -> None:
        message = f"parse failed, due to an unexpected token {token.describe()}"
        if expected:
            message += f", expected {expected}"
        super().__init__(message, token.position)
        self.token = token


class UnusedKeyword(ParseError):
    def __init__(self, keyword: str, position: Optional["Position"] = None) -> None:
        super().__init__(
            f"parse failed, due to a reserved and unimplemented keyword \"{keyword}\"",
            position,
        )
        self.keyword = keyword


class EvalError(PipescriptError):
    """Raised while evaluating a parsed script."""


class FunctionUndefined(EvalError):
    def __init__(self, name: str, position: Optional["Position"] = None) -> None:
        super().__init__(f"eval failed, function {name} undefined", position)
        self.name = name

    @property
    def hint(self) -> str | None:
        if self.name in {"pipeline", "step", "parallel"}:
            return "You can try to add 'import pipe' to use pipeline."
        if self.name in {"layout", "template", "folder", "set"}:
            return "You can try to add 'import layout' to use layouts."
        if self.name in {"max", "min", "randomInt"}:
            return "You can try to add 'import math' to use math functions."
        return None


class VariableUndefined(EvalError):
    def __init__(self, name: str, position: Optional["Position"] = None) -> None:
        super().__init__(f"eval failed, variable \"{name}\" undefined", position)
        self.name = name


class ExpectedType(EvalError):
    def __init__(self, expected: str, position: Optional["Position"] = None) -> None:
        super().__init__(f"eval failed, expected type \"{expected}\"", position)
        self.expected = expected


class UnexpectedType(EvalError):
    def __init__(self, actual: str, position: Optional["Position"] = None) -> None:
        super().__init__(f"eval failed, unexpected type \"{actual}\"", position)
        self.actual = actual


class UnknownModule(EvalError):
    def __init__(self, name: str, position: Optional["Position"] = None) -> None:
        super().__init__(f"unknown module \"{name}\"", position)
        self.name = name


class UndefinedOperation(EvalError):
    def __init__(self, operation: str, position: Optional["Position"] = None) -> None:
        super().__init__(f"undefined operation \"{operation}\"", position)
        self.operation = operation


class TaskError(PipescriptError):
    """Raised when a pipeline action fails at run time."""


class CommandFailed(TaskError):
    def __init__(
        self,
        command: str,
        exit_code: int | None,
        position: Optional["Position"] = None,
    ) -> None:
        if exit_code is None:
            message = f"command could not be started: {command}"
        else:
            message = f"command exited with code {exit_code}: {command}"
        super().__init__(message, position)
        self.command = command
        self.exit_code = exit_code


class WorkspaceNotFound(TaskError):
    def __init__(self, path: str, position: Optional["Position"] = None) -> None:
        super().__init__(f"path \"{path}\" does not exist", position)
        self.path = path


class ActionFailed(TaskError):
    """Raised when copy, move or replace cannot complete."""


class TaskFailed(TaskError):
    def __init__(self, pipeline: str, tasks: Sequence[str]) -> None:
        names = ", ".join(tasks)
        super().__init__(f"pipeline \"{pipeline}\" failed: {names}")
        self.pipeline = pipeline
        self.tasks = tuple(tasks)


__all__ = [
    "ActionFailed",
    "CommandFailed",
    "ConfigError",
    "EvalError",
    "ExpectedType",
    "FunctionUndefined",
    "LexError",
    "ParseError",
    "PipescriptError",
    "TaskError",
    "TaskFailed",
    "TemplateError",
    "UndefinedOperation",
    "UnexpectedToken",
    "UnexpectedType",
    "UnknownModule",
    "UnusedKeyword",
    "VariableUndefined",
    "WorkspaceNotFound",
]
