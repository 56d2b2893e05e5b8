"""The ``pipe`` module: ``pipeline``, ``step`` and ``parallel``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List

from pipescript.builtins.arguments import closure_arg, string_arg
from pipescript.errors import TaskFailed, UndefinedOperation
from pipescript.interpreter.module import Module

from .tasks import PipelineFrame, run_task, skip_task

if TYPE_CHECKING:
    from pipescript.interpreter import Interpreter
    from pipescript.script.tokens import Position

LOGGER = logging.getLogger(__name__)

MODULE = Module("pipe", "pipelines, steps and parallel tasks")


@MODULE.function()
def _pipeline(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    name = string_arg(args, 0)
    body = closure_arg(args, 1)
    runtime = interpreter.runtime
    if not runtime.selection.includes_pipeline(name):
        LOGGER.debug("Skipping pipeline %s, selection is %s", name, runtime.selection)
        return

    LOGGER.info("Starting pipeline %s", name)
    frame = PipelineFrame(name, runtime)
    try:
        with runtime.bound(pipeline=frame):
            interpreter.call_closure(body)
    finally:
        failed = frame.join()

    if failed:
        raise TaskFailed(name, [task.name for task in failed])
    LOGGER.info("Pipeline %s completed successfully", name)


def _start_task(interpreter: Interpreter, args: List[Any], position: Position, kind: str) -> None:
    name = string_arg(args, 0)
    body = closure_arg(args, 1)
    runtime = interpreter.runtime
    frame = runtime.current_pipeline
    if not isinstance(frame, PipelineFrame):
        raise UndefinedOperation(f"{kind} outside of a pipeline", position)

    if not runtime.selection.includes_task(name):
        skip_task(runtime, name, kind, frame.name)
        return

    task = runtime.new_task(name, kind, frame.name)
    if kind == "parallel":
        frame.submit(task, lambda: run_task(interpreter, task, body, frame))
    else:
        run_task(interpreter, task, body, frame)


@MODULE.function()
def _step(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    _start_task(interpreter, args, position, "step")


@MODULE.function()
def _parallel(interpreter: Interpreter, args: List[Any], position: Position) -> None:
    _start_task(interpreter, args, position, "parallel")


__all__ = ["MODULE", "PipelineFrame", "run_task"]
