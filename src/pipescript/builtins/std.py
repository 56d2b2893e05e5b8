"""The ``std`` module, available to every script without an import."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List

from pipescript.errors import ExpectedType, UndefinedOperation, UnexpectedType
from pipescript.interpreter.module import Module
from pipescript.interpreter.values import CALLABLE_TYPES, display, map_key, type_name
from pipescript.pipe import actions

from .arguments import argument, int_arg, optional_string_arg

if TYPE_CHECKING:
    from pipescript.interpreter import Interpreter
    from pipescript.script.tokens import Position

MODULE = Module("std", "printing, collections, input and pipeline actions")


def clone_value(value: Any) -> Any:
    """Deep copy lists and maps; every other value is immutable or shared."""

    if isinstance(value, list):
        return [clone_value(item) for item in value]
    if isinstance(value, dict):
        return {key: clone_value(item) for key, item in value.items()}
    return value


@MODULE.function()
def _print(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    interpreter.runtime.write("".join(display(arg) for arg in args))


@MODULE.function()
def _println(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    interpreter.runtime.write("".join(display(arg) for arg in args) + "\n")


@MODULE.function("str")
def _to_string(interpreter: Interpreter, args: List[Any], position: Position) -> str:
    return "".join(display(arg) for arg in args)


@MODULE.function()
def _len(interpreter: Interpreter, args: List[Any], position: Position) -> int:
    value = argument(args, 0)
    if isinstance(value, (str, list, dict)):
        return len(value)
    raise UnexpectedType(type_name(value), position)


@MODULE.function("type")
def _type(interpreter: Interpreter, args: List[Any], position: Position) -> str:
    return type_name(argument(args, 0, None))


@MODULE.function()
def _clone(interpreter: Interpreter, args: List[Any], position: Position) -> Any:
    return clone_value(argument(args, 0, None))


@MODULE.function()
def _append(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    target = argument(args, 0)
    if not isinstance(target, list):
        raise ExpectedType("array", position)
    target.extend(args[1:])


@MODULE.function()
def _remove(interpreter: Interpreter, args: List[Any], position: Position) -> Any:
    target = argument(args, 0)
    if isinstance(target, list):
        index = int_arg(args, 1)
        if not 0 <= index < len(target):
            raise UndefinedOperation(f"index {index} out of range for length {len(target)}", position)
        return target.pop(index)
    if isinstance(target, dict):
        return target.pop(map_key(argument(args, 1), position), None)
    raise UnexpectedType(type_name(target), position)


@MODULE.function()
def _call(interpreter: Interpreter, args: List[Any], position: Position) -> Any:
    target = argument(args, 0)
    if not isinstance(target, CALLABLE_TYPES):
        raise ExpectedType("fn", position)
    return interpreter.call_value(target, list(args[1:]), position)


@MODULE.function("readLine")
def _read_line(interpreter: Interpreter, args: List[Any], position: Position) -> Any:
    return interpreter.runtime.read_line(optional_string_arg(args, 0))


@MODULE.function("readString")
def _read_string(interpreter: Interpreter, args: List[Any], position: Position) -> Any:
    return interpreter.runtime.read_word(optional_string_arg(args, 0))


@MODULE.function("readInt")
def _read_int(interpreter: Interpreter, args: List[Any], position: Position) -> Any:
    word = interpreter.runtime.read_word(optional_string_arg(args, 0))
    if word is None:
        return None
    try:
        return int(word)
    except ValueError as exc:
        raise ExpectedType("int", position) from exc


@MODULE.function("readFloat")
def _read_float(interpreter: Interpreter, args: List[Any], position: Position) -> Any:
    word = interpreter.runtime.read_word(optional_string_arg(args, 0))
    if word is None:
        return None
    try:
        return float(word)
    except ValueError as exc:
        raise ExpectedType("float", position) from exc


for _name, _func in actions.ACTIONS.items():
    MODULE.add(_name, _func)


__all__ = ["MODULE", "clone_value"]
