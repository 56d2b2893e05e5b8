"""Argument checks shared by native functions."""

from __future__ import annotations

from typing import Any, List, Optional

from pipescript.errors import ExpectedType
from pipescript.interpreter.values import Closure, is_number

_REQUIRED = object()


def argument(args: List[Any], index: int, default: Any = _REQUIRED) -> Any:
    if index < len(args):
        return args[index]
    if default is _REQUIRED:
        raise ExpectedType("value")
    return default


def string_arg(args: List[Any], index: int, default: Any = _REQUIRED) -> str:
    value = argument(args, index, default)
    if not isinstance(value, str):
        raise ExpectedType("string")
    return value


def optional_string_arg(args: List[Any], index: int) -> Optional[str]:
    value = argument(args, index, None)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ExpectedType("string")
    return value


def number_arg(args: List[Any], index: int, default: Any = _REQUIRED) -> float:
    value = argument(args, index, default)
    if not is_number(value):
        raise ExpectedType("number")
    return value


def int_arg(args: List[Any], index: int, default: Any = _REQUIRED) -> int:
    value = argument(args, index, default)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ExpectedType("int")
    return value


def closure_arg(args: List[Any], index: int, required: bool = True) -> Optional[Closure]:
    value = argument(args, index, None)
    if value is None and not required:
        return None
    if not isinstance(value, Closure):
        raise ExpectedType("fn")
    return value


__all__ = [
    "argument",
    "closure_arg",
    "int_arg",
    "number_arg",
    "optional_string_arg",
    "string_arg",
]
