"""Native modules that scripts pull in with ``import``."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Optional

from .values import NativeCallable, NativeFunction


class Module:
    """A named collection of native functions."""

    def __init__(self, name: str, description: str = "") -> None:
        self.name = name
        self.description = description
        self.functions: Dict[str, NativeFunction] = {}

    def add(self, name: str, func: NativeCallable) -> NativeFunction:
        native = NativeFunction(name, func, self.name)
        self.functions[name] = native
        return native

    def function(self, name: Optional[str] = None) -> Callable[[NativeCallable], NativeCallable]:
        """Decorator registering ``func`` under ``name`` (defaults to its own name)."""

        def decorator(func: NativeCallable) -> NativeCallable:
            self.add(name or func.__name__.lstrip("_"), func)
            return func

        return decorator

    def __contains__(self, name: object) -> bool:
        return name in self.functions

    def __repr__(self) -> str:
        return f"Module({self.name!r}, functions={sorted(self.functions)!r})"


class ModuleRegistry:
    def __init__(self, modules: Iterable[Module] = ()) -> None:
        self._modules: Dict[str, Module] = {}
        for module in modules:
            self.register(module)

    def register(self, module: Module) -> None:
        self._modules[module.name] = module

    def get(self, name: str) -> Optional[Module]:
        return self._modules.get(name)


def default_registry() -> ModuleRegistry:
    """Registry holding ``std``, ``math``, ``pipe`` and ``layout``."""

    from pipescript.builtins import layout, mathlib, std
    from pipescript import pipe

    return ModuleRegistry([std.MODULE, mathlib.MODULE, pipe.MODULE, layout.MODULE])


__all__ = ["Module", "ModuleRegistry", "default_registry"]
