"""The ``math`` module."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Any, List

from pipescript.errors import ExpectedType, UndefinedOperation
from pipescript.interpreter.module import Module

from .arguments import int_arg, number_arg

if TYPE_CHECKING:
    from pipescript.interpreter import Interpreter
    from pipescript.script.tokens import Position

MODULE = Module("math", "numeric helpers")

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


def _numbers(args: List[Any], position: Position) -> List[float]:
    if not args:
        raise ExpectedType("number", position)
    return [float(number_arg(args, index)) for index in range(len(args))]


@MODULE.function()
def _max(interpreter: Interpreter, args: List[Any], position: Position) -> float:
    return max(_numbers(args, position))


@MODULE.function()
def _min(interpreter: Interpreter, args: List[Any], position: Position) -> float:
    return min(_numbers(args, position))


@MODULE.function("randomInt")
def _random_int(interpreter: Interpreter, args: List[Any], position: Position) -> int:
    """``randomInt()``, ``randomInt(b)`` for 0..=b, ``randomInt(a, b)`` for a..=b."""

    if not args:
        return random.randint(_I64_MIN, _I64_MAX)
    if len(args) == 1:
        low, high = 0, int_arg(args, 0)
    else:
        low, high = int_arg(args, 0), int_arg(args, 1)
    if low > high:
        raise UndefinedOperation(f"randomInt({low}, {high})", position)
    return random.randint(low, high)


__all__ = ["MODULE"]
