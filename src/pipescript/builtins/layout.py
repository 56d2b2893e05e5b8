"""The ``layout`` module used to scaffold projects from template files."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List

from pipescript.errors import ActionFailed, ExpectedType, TemplateError, VariableUndefined
from pipescript.interpreter.module import Module
from pipescript.interpreter.values import display, map_key

from .arguments import argument, closure_arg, string_arg

if TYPE_CHECKING:
    from pipescript.interpreter import Interpreter
    from pipescript.script.tokens import Position

LOGGER = logging.getLogger(__name__)

MODULE = Module("layout", "project scaffolding from layout templates")

PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def render_template(content: str, values: Dict[str, Any]) -> str:
    """Substitute every ``${key}`` in ``content``; unknown keys raise ``VariableUndefined``."""

    def substitute(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key not in values:
            raise VariableUndefined(key)
        return display(values[key])

    return PLACEHOLDER.sub(substitute, content)


def layout_directory(home: Path, name: str) -> Path:
    return home / "layout" / name


@MODULE.function()
def _layout(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    name = string_arg(args, 0)
    body = closure_arg(args, 1)
    runtime = interpreter.runtime
    runtime.write(f"using layout {name}\n")
    with runtime.bound(layout=name):
        interpreter.call_closure(body, bindings={"layoutName": name})
    runtime.write("╰─▶successfully finished.\n")


@MODULE.function()
def _folder(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    raw = string_arg(args, 0)
    runtime = interpreter.runtime
    runtime.write(f"╰─▶creating folder {raw}.\n")
    try:
        runtime.resolve(raw).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ActionFailed(f"could not create folder \"{raw}\": {exc}", position) from exc


@MODULE.function()
def _template(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    target = string_arg(args, 0)
    file_name = string_arg(args, 1)
    body = closure_arg(args, 2, required=False)
    runtime = interpreter.runtime
    runtime.write(f"╰─▶using template {file_name} to generate {target}.\n")

    layout_name = runtime.current_layout
    if layout_name is None:
        raise TemplateError(f"template \"{file_name}\" used outside of a layout", position)
    if runtime.home is None:
        raise TemplateError("no home directory configured for layouts", position)

    values: Dict[str, Any] = {}
    if body is not None:
        interpreter.call_closure(body, bindings={"ctx": values})

    source = layout_directory(runtime.home, layout_name) / file_name
    try:
        content = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TemplateError(f"template \"{source}\" could not be read: {exc}", position) from exc

    rendered = render_template(content, values)
    destination = runtime.resolve(target)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(rendered, encoding="utf-8")
    except OSError as exc:
        raise TemplateError(f"could not write \"{target}\": {exc}", position) from exc
    LOGGER.debug("Rendered %s into %s", source, destination)


@MODULE.function("set")
def _set(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    target = argument(args, 0)
    if not isinstance(target, dict):
        raise ExpectedType("map", position)
    target[map_key(argument(args, 1), position)] = argument(args, 2)


__all__ = ["MODULE", "PLACEHOLDER", "layout_directory", "render_template"]
