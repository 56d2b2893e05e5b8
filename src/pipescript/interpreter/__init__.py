"""Evaluation of parsed scripts."""

from .evaluator import Interpreter, binary_operation
from .module import Module, ModuleRegistry, default_registry
from .runtime import ALL, EchoSink, MemorySink, OutputSink, Runtime, Selection, TaskContext
from .scope import Scope
from .values import Closure, NativeFunction, ScriptFunction, display, truthy, type_name

__all__ = [
    "ALL",
    "Closure",
    "EchoSink",
    "Interpreter",
    "MemorySink",
    "Module",
    "ModuleRegistry",
    "NativeFunction",
    "OutputSink",
    "Runtime",
    "Scope",
    "ScriptFunction",
    "Selection",
    "TaskContext",
    "binary_operation",
    "default_registry",
    "display",
    "truthy",
    "type_name",
]
