from __future__ import annotations

import random

import pytest

from pipescript.engine import PipelineEngine
from pipescript.errors import ExpectedType, FunctionUndefined, UndefinedOperation
from pipescript.interpreter import MemorySink


@pytest.fixture()
def engine() -> PipelineEngine:
    return PipelineEngine(output=MemorySink(), modules=("math",))


def test_max_and_min_return_floats(engine: PipelineEngine) -> None:
    assert engine.eval("max(3, 7.5, 1)") == 7.5
    assert engine.eval("min(3, 7, 1)") == 1.0
    assert engine.eval("type(max(1, 2))") == "float"


def test_max_requires_numbers(engine: PipelineEngine) -> None:
    with pytest.raises(ExpectedType):
        engine.eval("max()")
    with pytest.raises(ExpectedType):
        engine.eval('max(1, "2")')


def test_random_int_ranges(engine: PipelineEngine) -> None:
    for _ in range(20):
        assert 0 <= engine.eval("randomInt(3)") <= 3
        assert 5 <= engine.eval("randomInt(5, 6)") <= 6
    assert isinstance(engine.eval("randomInt()"), int)


def test_random_int_uses_inclusive_bounds(engine: PipelineEngine, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[int, int]] = []

    def fake_randint(low: int, high: int) -> int:
        calls.append((low, high))
        return high

    monkeypatch.setattr(random, "randint", fake_randint)

    assert engine.eval("randomInt(10)") == 10
    assert calls == [(0, 10)]


def test_random_int_rejects_reversed_bounds(engine: PipelineEngine) -> None:
    with pytest.raises(UndefinedOperation):
        engine.eval("randomInt(5, 1)")


def test_math_requires_import() -> None:
    plain = PipelineEngine(output=MemorySink(), modules=())

    with pytest.raises(FunctionUndefined) as excinfo:
        plain.eval("max(1, 2)")

    assert "import math" in excinfo.value.hint
