"""Runtime values and the conversions the interpreter applies to them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from pipescript.errors import UnexpectedType
from pipescript.script import ast
from pipescript.script.tokens import Position

if TYPE_CHECKING:
    from .evaluator import Interpreter
    from .scope import Scope

NativeCallable = Callable[["Interpreter", List[Any], Position], Any]


@dataclass(frozen=True)
class Closure:
    """A ``{ ... }`` block bound to the scope it was written in."""

    block: ast.Block
    scope: "Scope"


@dataclass(frozen=True)
class ScriptFunction:
    definition: ast.FnDef

    @property
    def name(self) -> str:
        return self.definition.name


@dataclass(frozen=True)
class NativeFunction:
    """A function implemented in Python and exposed through a module."""

    name: str
    func: NativeCallable
    module: str = "std"

    def __call__(self, interpreter: "Interpreter", args: List[Any], position: Position) -> Any:
        return self.func(interpreter, args, position)


CALLABLE_TYPES = (Closure, ScriptFunction, NativeFunction)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def type_name(value: Any) -> str:
    if value is None:
        return "unit"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "map"
    if isinstance(value, CALLABLE_TYPES):
        return "fn"
    return type(value).__name__


def display(value: Any) -> str:
    """Render ``value`` the way ``print`` and string concatenation show it."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, list):
        return "[" + ", ".join(display(item) for item in value) + "]"
    if isinstance(value, dict):
        pairs = ", ".join(f"{display(key)}: {display(item)}" for key, item in value.items())
        return "{" + pairs + "}"
    if isinstance(value, Closure):
        return "<closure>"
    if isinstance(value, (ScriptFunction, NativeFunction)):
        return f"<fn {value.name}>"
    return str(value)


def truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0
    if isinstance(value, (str, list, dict)):
        return len(value) > 0
    return True


def map_key(value: Any, position: Optional[Position] = None) -> Any:
    """Return ``value`` if it can key a map; lists, maps and other unhashable values cannot."""

    try:
        hash(value)
    except TypeError:
        raise UnexpectedType(type_name(value), position) from None
    return value


def values_equal(left: Any, right: Any) -> bool:
    if is_number(left) and is_number(right):
        return left == right
    if type_name(left) != type_name(right):
        return False
    return left == right


__all__ = [
    "CALLABLE_TYPES",
    "Closure",
    "NativeCallable",
    "NativeFunction",
    "ScriptFunction",
    "display",
    "is_number",
    "map_key",
    "truthy",
    "type_name",
    "values_equal",
]
