"""Tree-walking evaluator for parsed scripts."""

from __future__ import annotations

import logging
import math
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from pipescript.errors import (
    FunctionUndefined,
    PipescriptError,
    UndefinedOperation,
    UnexpectedType,
    UnknownModule,
    VariableUndefined,
)
from pipescript.script import ast
from pipescript.script.tokens import NO_POSITION, Position

from .module import ModuleRegistry, default_registry
from .runtime import Runtime
from .scope import Scope
from .values import (
    CALLABLE_TYPES,
    Closure,
    NativeFunction,
    ScriptFunction,
    display,
    is_number,
    map_key,
    truthy,
    type_name,
    values_equal,
)

LOGGER = logging.getLogger(__name__)

# Nested function and closure calls allowed per thread.
MAX_CALL_DEPTH = 40


class _Signal(Exception):
    """Non-error control flow unwinding through the evaluator."""

    def __init__(self, position: Position) -> None:
        super().__init__()
        self.position = position


class _BreakSignal(_Signal):
    pass


class _ContinueSignal(_Signal):
    pass


class _ReturnSignal(_Signal):
    def __init__(self, value: Any, position: Position) -> None:
        super().__init__(position)
        self.value = value


def _truncating_div(left: int, right: int) -> int:
    quotient = abs(left) // abs(right)
    return quotient if (left >= 0) == (right >= 0) else -quotient


class Interpreter:
    """Evaluate a :class:`~pipescript.script.ast.Script` against native modules."""

    def __init__(
        self,
        runtime: Optional[Runtime] = None,
        registry: Optional[ModuleRegistry] = None,
    ) -> None:
        self.runtime = runtime or Runtime()
        self.registry = registry or default_registry()
        self.natives: Dict[str, NativeFunction] = {}
        self.imported: List[str] = []
        self.functions: Dict[str, ast.FnDef] = {}
        self.globals = Scope()
        self.source = ""
        self._natives_lock = threading.Lock()
        self._calls = threading.local()
        self.import_module("std")

        self._statements: Dict[type, Callable[[Any, Scope], Any]] = {
            ast.ExprStmt: self._exec_expr_stmt,
            ast.Let: self._exec_let,
            ast.Assign: self._exec_assign,
            ast.IndexAssign: self._exec_index_assign,
            ast.Return: self._exec_return,
            ast.If: self._exec_if,
            ast.While: self._exec_while,
            ast.ForIn: self._exec_for,
            ast.Break: self._exec_break,
            ast.Continue: self._exec_continue,
            ast.Import: self._exec_import,
        }
        self._expressions: Dict[type, Callable[[Any, Scope], Any]] = {
            ast.Literal: lambda node, scope: node.value,
            ast.Variable: self._eval_variable,
            ast.ArrayLiteral: self._eval_array,
            ast.Unary: self._eval_unary,
            ast.Binary: self._eval_binary,
            ast.Index: self._eval_index,
            ast.Call: self._eval_call,
            ast.Block: lambda node, scope: Closure(node, scope),
        }

    # Modules ------------------------------------------------------------

    def import_module(self, name: str, position: Optional[Position] = None) -> None:
        module = self.registry.get(name)
        if module is None:
            raise UnknownModule(name, position)
        with self._natives_lock:
            if name in self.imported:
                return
            self.natives.update(module.functions)
            self.imported.append(name)
        LOGGER.debug("Imported module %s", name)

    # Entry points -------------------------------------------------------

    def execute(self, script: ast.Script) -> Any:
        """Run ``script`` in the global scope and return the last expression value."""

        self.functions.update(script.functions)
        self.source = script.source
        try:
            return self.exec_block(script.body, self.globals)
        except _ReturnSignal as signal:
            return signal.value
        except (_BreakSignal, _ContinueSignal) as signal:
            raise UndefinedOperation(_signal_name(signal), signal.position) from None
        except RecursionError:
            raise UndefinedOperation("stack overflow") from None

    def exec_block(self, statements: Sequence[ast.Stmt], scope: Scope) -> Any:
        result = None
        for statement in statements:
            result = self.exec_stmt(statement, scope)
        return result

    def exec_stmt(self, statement: ast.Stmt, scope: Scope) -> Any:
        handler = self._statements[type(statement)]
        try:
            return handler(statement, scope)
        except PipescriptError as exc:
            exc.with_position(statement.position)
            raise

    def evaluate(self, expr: ast.Expr, scope: Scope) -> Any:
        handler = self._expressions[type(expr)]
        try:
            return handler(expr, scope)
        except PipescriptError as exc:
            exc.with_position(expr.position)
            raise

    # Calls --------------------------------------------------------------

    def resolve_function(self, name: str, scope: Scope, position: Position = NO_POSITION) -> Any:
        value = scope.find(name, None)
        if isinstance(value, CALLABLE_TYPES):
            return value
        if name in self.functions:
            return ScriptFunction(self.functions[name])
        native = self.natives.get(name)
        if native is not None:
            return native
        raise FunctionUndefined(name, position)

    def call_value(self, callee: Any, args: List[Any], position: Position = NO_POSITION) -> Any:
        if isinstance(callee, Closure):
            return self.call_closure(callee, args)
        if isinstance(callee, ScriptFunction):
            return self.call_function(callee.definition, args, position)
        if isinstance(callee, NativeFunction):
            try:
                return callee(self, args, position)
            except PipescriptError as exc:
                exc.with_position(position)
                raise
        raise UnexpectedType(type_name(callee), position)

    def call_closure(
        self,
        closure: Closure,
        args: Sequence[Any] = (),
        bindings: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Run ``closure`` in a child of its captured scope.

        A single argument is bound as ``it``; several are bound as a list.
        """

        scope = closure.scope.child(bindings)
        if len(args) == 1:
            scope.define("it", args[0])
        elif args:
            scope.define("it", list(args))
        return self._run_body(closure.block.body, scope)

    def call_function(self, definition: ast.FnDef, args: Sequence[Any], position: Position = NO_POSITION) -> Any:
        if len(args) > len(definition.params):
            LOGGER.debug(
                "Function %s called with %d arguments, ignoring %d extra",
                definition.name,
                len(args),
                len(args) - len(definition.params),
            )
        scope = self.globals.child()
        for index, param in enumerate(definition.params):
            scope.define(param.name, args[index] if index < len(args) else None)
        return self._run_body(definition.body, scope, position)

    @contextmanager
    def _call_frame(self, position: Position) -> Iterator[None]:
        depth = getattr(self._calls, "depth", 0)
        if depth >= MAX_CALL_DEPTH:
            raise UndefinedOperation("stack overflow", position)
        self._calls.depth = depth + 1
        try:
            yield
        finally:
            self._calls.depth = depth

    def _run_body(self, body: Sequence[ast.Stmt], scope: Scope, position: Position = NO_POSITION) -> Any:
        try:
            with self._call_frame(position):
                return self.exec_block(body, scope)
        except _ReturnSignal as signal:
            return signal.value
        except (_BreakSignal, _ContinueSignal) as signal:
            raise UndefinedOperation(_signal_name(signal), signal.position) from None

    # Statements ---------------------------------------------------------

    def _exec_expr_stmt(self, statement: ast.ExprStmt, scope: Scope) -> Any:
        return self.evaluate(statement.expr, scope)

    def _exec_let(self, statement: ast.Let, scope: Scope) -> None:
        scope.define(statement.name, self.evaluate(statement.value, scope))

    def _exec_assign(self, statement: ast.Assign, scope: Scope) -> None:
        scope.assign(statement.name, self.evaluate(statement.value, scope))

    def _exec_index_assign(self, statement: ast.IndexAssign, scope: Scope) -> None:
        target = self.evaluate(statement.target, scope)
        index = self.evaluate(statement.index, scope)
        value = self.evaluate(statement.value, scope)
        if isinstance(target, list):
            target[self._list_index(target, index, statement.position)] = value
        elif isinstance(target, dict):
            target[map_key(index, statement.position)] = value
        else:
            raise UnexpectedType(type_name(target), statement.position)

    def _exec_return(self, statement: ast.Return, scope: Scope) -> None:
        value = self.evaluate(statement.value, scope) if statement.value is not None else None
        raise _ReturnSignal(value, statement.position)

    def _exec_if(self, statement: ast.If, scope: Scope) -> Any:
        for branch in statement.branches:
            if truthy(self.evaluate(branch.condition, scope)):
                return self.exec_block(branch.body, scope.child())
        if statement.else_body is not None:
            return self.exec_block(statement.else_body, scope.child())
        return None

    def _exec_while(self, statement: ast.While, scope: Scope) -> None:
        while truthy(self.evaluate(statement.condition, scope)):
            try:
                self.exec_block(statement.body, scope.child())
            except _BreakSignal:
                break
            except _ContinueSignal:
                continue

    def _exec_for(self, statement: ast.ForIn, scope: Scope) -> None:
        iterable = self.evaluate(statement.iterable, scope)
        if isinstance(iterable, (list, str)):
            items = list(iterable)
        elif isinstance(iterable, dict):
            items = list(iterable.keys())
        else:
            raise UnexpectedType(type_name(iterable), statement.position)

        for item in items:
            try:
                self.exec_block(statement.body, scope.child({statement.name: item}))
            except _BreakSignal:
                break
            except _ContinueSignal:
                continue

    def _exec_break(self, statement: ast.Break, scope: Scope) -> None:
        raise _BreakSignal(statement.position)

    def _exec_continue(self, statement: ast.Continue, scope: Scope) -> None:
        raise _ContinueSignal(statement.position)

    def _exec_import(self, statement: ast.Import, scope: Scope) -> None:
        self.import_module(statement.module, statement.position)

    # Expressions --------------------------------------------------------

    def _eval_variable(self, expr: ast.Variable, scope: Scope) -> Any:
        value = scope.find(expr.name, _UNSET)
        if value is not _UNSET:
            return value
        if expr.name in self.functions:
            return ScriptFunction(self.functions[expr.name])
        if expr.name in self.natives:
            return self.natives[expr.name]
        raise VariableUndefined(expr.name, expr.position)

    def _eval_array(self, expr: ast.ArrayLiteral, scope: Scope) -> List[Any]:
        return [self.evaluate(item, scope) for item in expr.items]

    def _eval_unary(self, expr: ast.Unary, scope: Scope) -> Any:
        operand = self.evaluate(expr.operand, scope)
        if expr.operator == "!":
            return not truthy(operand)
        if is_number(operand):
            return -operand
        raise UnexpectedType(type_name(operand), expr.position)

    def _eval_binary(self, expr: ast.Binary, scope: Scope) -> Any:
        if expr.operator == "&&":
            left = self.evaluate(expr.left, scope)
            return truthy(left) and truthy(self.evaluate(expr.right, scope))
        if expr.operator == "||":
            left = self.evaluate(expr.left, scope)
            return truthy(left) or truthy(self.evaluate(expr.right, scope))

        left = self.evaluate(expr.left, scope)
        right = self.evaluate(expr.right, scope)
        return binary_operation(expr.operator, left, right, expr.position)

    def _eval_index(self, expr: ast.Index, scope: Scope) -> Any:
        target = self.evaluate(expr.target, scope)
        index = self.evaluate(expr.index, scope)
        if isinstance(target, (list, str)):
            return target[self._list_index(target, index, expr.position)]
        if isinstance(target, dict):
            return target.get(map_key(index, expr.position))
        raise UnexpectedType(type_name(target), expr.position)

    def _eval_call(self, expr: ast.Call, scope: Scope) -> Any:
        if expr.name is not None:
            callee = self.resolve_function(expr.name, scope, expr.position)
        else:
            callee = self.evaluate(expr.callee, scope)
        args = [self.evaluate(arg, scope) for arg in expr.args]
        return self.call_value(callee, args, expr.position)

    def _list_index(self, target: Sequence[Any], index: Any, position: Position) -> int:
        if not isinstance(index, int) or isinstance(index, bool):
            raise UnexpectedType(type_name(index), position)
        if not 0 <= index < len(target):
            raise UndefinedOperation(f"index {index} out of range for length {len(target)}", position)
        return index


_UNSET = object()


def _signal_name(signal: _Signal) -> str:
    return "break" if isinstance(signal, _BreakSignal) else "continue"


def _arithmetic(operator: str, left: Any, right: Any, position: Position) -> Any:
    if operator == "+":
        return left + right
    if operator == "-":
        return left - right
    if operator == "*":
        return left * right
    if right == 0:
        raise UndefinedOperation(f"{display(left)} {operator} 0", position)
    both_ints = isinstance(left, int) and isinstance(right, int)
    if operator == "/":
        return _truncating_div(left, right) if both_ints else left / right
    if both_ints:
        return left - right * _truncating_div(left, right)
    return math.fmod(left, right)


def binary_operation(operator: str, left: Any, right: Any, position: Position = NO_POSITION) -> Any:
    """Apply a non short-circuiting binary operator to two values."""

    if operator == "==":
        return values_equal(left, right)
    if operator == "!=":
        return not values_equal(left, right)

    if operator == "+":
        if isinstance(left, str) or isinstance(right, str):
            return display(left) + display(right)
        if isinstance(left, list) and isinstance(right, list):
            return left + right

    if is_number(left) and is_number(right):
        if operator in ("<", "<=", ">", ">="):
            return _compare(operator, left, right)
        return _arithmetic(operator, left, right, position)

    if isinstance(left, str) and isinstance(right, str) and operator in ("<", "<=", ">", ">="):
        return _compare(operator, left, right)

    offender = right if is_number(left) else left
    raise UnexpectedType(type_name(offender), position)


def _compare(operator: str, left: Any, right: Any) -> bool:
    if operator == "<":
        return left < right
    if operator == "<=":
        return left <= right
    if operator == ">":
        return left > right
    return left >= right


__all__ = ["Interpreter", "binary_operation"]
