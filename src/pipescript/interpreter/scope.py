"""Lexical scopes holding script variables."""

from __future__ import annotations

import threading
from typing import Any, Dict, Optional

from pipescript.errors import VariableUndefined

_MISSING = object()


class Scope:
    """A name to value map chained to an optional parent.

    Parallel tasks evaluate closures from worker threads while sharing the
    scopes they were declared in, so every access goes through a lock.
    """

    def __init__(self, parent: Optional["Scope"] = None, values: Optional[Dict[str, Any]] = None) -> None:
        self.parent = parent
        self._values: Dict[str, Any] = dict(values or {})
        self._lock = threading.RLock()

    def child(self, values: Optional[Dict[str, Any]] = None) -> "Scope":
        return Scope(self, values)

    def define(self, name: str, value: Any) -> None:
        with self._lock:
            self._values[name] = value

    def find(self, name: str, default: Any = _MISSING) -> Any:
        scope: Optional[Scope] = self
        while scope is not None:
            with scope._lock:
                if name in scope._values:
                    return scope._values[name]
            scope = scope.parent
        return default

    def contains(self, name: str) -> bool:
        return self.find(name) is not _MISSING

    def lookup(self, name: str) -> Any:
        value = self.find(name)
        if value is _MISSING:
            raise VariableUndefined(name)
        return value

    def assign(self, name: str, value: Any) -> None:
        scope: Optional[Scope] = self
        while scope is not None:
            with scope._lock:
                if name in scope._values:
                    scope._values[name] = value
                    return
            scope = scope.parent
        raise VariableUndefined(name)


__all__ = ["Scope"]
