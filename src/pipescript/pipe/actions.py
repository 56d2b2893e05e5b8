"""Pipeline actions: ``cmd``, ``env``, ``workspace``, ``copy``, ``move``, ``replace``."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List

from pipescript.builtins.arguments import argument, string_arg
from pipescript.errors import ActionFailed, CommandFailed, WorkspaceNotFound
from pipescript.interpreter.values import NativeCallable, display
from pipescript.runner import ShellRunner

if TYPE_CHECKING:
    from pipescript.interpreter import Interpreter
    from pipescript.script.tokens import Position

LOGGER = logging.getLogger(__name__)

_GROUP_REFERENCE = re.compile(r"\$(\$|\d+|\{(\w+)\})")


def _cmd(interpreter: Interpreter, args: List[Any], position: Position) -> int:
    command = string_arg(args, 0)
    runtime = interpreter.runtime
    runtime.flush()
    runtime.emit(f"$ {command}")
    runner = ShellRunner(runtime.shell)
    task = runtime.current_task

    def on_line(stream: str, text: str) -> None:
        if task is not None:
            task.record(stream, text)
        runtime.sink.write(text, task=task.name if task is not None else None, stream=stream)

    result = runner.run(
        command,
        runtime.active_workspace(),
        env=runtime.active_env(),
        on_line=on_line,
    )
    if result.return_code is None or not result.success:
        raise CommandFailed(command, result.return_code, position)
    return result.return_code


def _env(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    key = string_arg(args, 0)
    interpreter.runtime.active_env()[key] = display(argument(args, 1))


def _workspace(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    raw = string_arg(args, 0)
    runtime = interpreter.runtime
    path = runtime.resolve(raw)
    if not path.is_dir():
        raise WorkspaceNotFound(raw, position)
    task = runtime.current_task
    if task is not None:
        task.workspace = path
    else:
        runtime.workspace = path
    LOGGER.debug("Workspace set to %s", path)


def copy_path(source: Path, target: Path) -> Path:
    """Copy a file or a directory tree, creating parent directories."""

    if target.is_dir() and not source.is_dir():
        target = target / source.name
    target.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir():
        shutil.copytree(source, target, dirs_exist_ok=True)
    else:
        shutil.copy2(source, target)
    return target


def _resolve_source(interpreter: Interpreter, raw: str, action: str, position: Position) -> Path:
    source = interpreter.runtime.resolve_in_workspace(raw)
    if not source.exists():
        raise ActionFailed(f"{action} failed, source \"{raw}\" does not exist", position)
    return source


def _copy(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    source = _resolve_source(interpreter, string_arg(args, 0), "copy", position)
    target = interpreter.runtime.resolve_in_workspace(string_arg(args, 1))
    try:
        copy_path(source, target)
    except OSError as exc:
        raise ActionFailed(f"copy failed: {exc}", position) from exc


def _move(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    source = _resolve_source(interpreter, string_arg(args, 0), "move", position)
    target = interpreter.runtime.resolve_in_workspace(string_arg(args, 1))
    try:
        copy_path(source, target)
    except OSError as exc:
        raise ActionFailed(f"move failed: {exc}", position) from exc
    try:
        if source.is_dir():
            shutil.rmtree(source)
        else:
            source.unlink()
    except OSError as exc:
        raise ActionFailed(f"move failed, could not remove \"{source}\": {exc}", position) from exc


def translate_replacement(replacement: str) -> str:
    """Accept ``$1``, ``${name}`` and ``$$`` next to Python's own ``\\1`` syntax."""

    def substitute(match: "re.Match[str]") -> str:
        token = match.group(1)
        if token == "$":
            return "$"
        return f"\\g<{match.group(2) or token}>"

    return _GROUP_REFERENCE.sub(substitute, replacement)


def _replace(interpreter: Interpreter, args: List[Any], position: Position) -> int:
    raw = string_arg(args, 0)
    path = _resolve_source(interpreter, raw, "replace", position)
    try:
        pattern = re.compile(string_arg(args, 1))
    except re.error as exc:
        raise ActionFailed(f"replace failed, invalid pattern: {exc}", position) from exc
    replacement = translate_replacement(string_arg(args, 2))
    try:
        content = path.read_text(encoding="utf-8")
        updated, count = pattern.subn(replacement, content)
        path.write_text(updated, encoding="utf-8")
    except (OSError, UnicodeDecodeError, re.error) as exc:
        raise ActionFailed(f"replace failed for \"{raw}\": {exc}", position) from exc
    LOGGER.debug("Replaced %d matches in %s", count, path)
    return count


ACTIONS: Dict[str, NativeCallable] = {
    "cmd": _cmd,
    "env": _env,
    "workspace": _workspace,
    "copy": _copy,
    "move": _move,
    "replace": _replace,
}

__all__ = ["ACTIONS", "copy_path", "translate_replacement"]
