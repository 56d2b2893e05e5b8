"""Unit tests for the engine that compiles and runs scripts."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from pipescript.engine import PipelineEngine, Selection
from pipescript.errors import (
    FunctionUndefined,
    ParseError,
    UndefinedOperation,
    UnexpectedToken,
    VariableUndefined,
)
from pipescript.interpreter import MemorySink
from pipescript.storage import HistoryStore


@pytest.fixture()
def sink() -> MemorySink:
    return MemorySink()


def test_eval_returns_last_value(tmp_path: Path, sink: MemorySink) -> None:
    engine = PipelineEngine(base_dir=tmp_path, output=sink)

    assert engine.eval("let a = 20\nlet b = 22\na + b") == 42


def test_eval_flushes_partial_output(tmp_path: Path, sink: MemorySink) -> None:
    engine = PipelineEngine(base_dir=tmp_path, output=sink)

    engine.eval('print("a")\nprintln("b")\nprint("tail")')

    assert sink.text == "ab\ntail\n"


def test_eval_propagates_errors(tmp_path: Path, sink: MemorySink) -> None:
    engine = PipelineEngine(base_dir=tmp_path, output=sink)

    with pytest.raises(VariableUndefined):
        engine.eval("missing + 1")


def test_pipe_is_imported_by_default(tmp_path: Path, sink: MemorySink) -> None:
    engine = PipelineEngine(base_dir=tmp_path, output=sink)

    result = engine.run_source('pipeline("empty") {}')

    assert result.ok
    assert result.tasks == ()


def test_without_default_modules_pipeline_is_undefined(tmp_path: Path, sink: MemorySink) -> None:
    engine = PipelineEngine(base_dir=tmp_path, output=sink, modules=())

    with pytest.raises(FunctionUndefined):
        engine.eval('pipeline("empty") {}')


def test_reads_from_input_stream(tmp_path: Path, sink: MemorySink) -> None:
    engine = PipelineEngine(
        base_dir=tmp_path,
        output=sink,
        input_stream=io.StringIO("Ada\n3 4.5\n"),
    )

    value = engine.eval(
        """
        let name = readLine("name? ")
        let count = readInt()
        let ratio = readFloat()
        println(name + " " + str(count * ratio))
        readLine()
        """
    )

    assert value is None
    assert sink.text == "name? \nAda 13.5\n"


def test_run_source_reports_syntax_errors(tmp_path: Path, sink: MemorySink) -> None:
    engine = PipelineEngine(base_dir=tmp_path, output=sink)

    result = engine.run_source("let = 3")

    assert not result.ok
    assert isinstance(result.error, UnexpectedToken)
    assert result.error.position is not None
    assert result.source == "let = 3"
    assert result.tasks == ()


def test_run_reports_runtime_errors(tmp_path: Path, sink: MemorySink) -> None:
    engine = PipelineEngine(base_dir=tmp_path, output=sink)

    result = engine.run_source("println(1)\nnope()")

    assert result.status == "failure"
    assert isinstance(result.error, FunctionUndefined)
    assert result.error.position.line == 2
    assert sink.text == "1\n"


def test_run_file_records_history(tmp_path: Path, sink: MemorySink) -> None:
    script = tmp_path / "pipeline.kts"
    script.write_text('pipeline("dev") {}\n', encoding="utf-8")
    history = HistoryStore(tmp_path / "history.db")
    engine = PipelineEngine(base_dir=tmp_path, output=sink, history=history)

    result = engine.run_file(script, Selection.parse("dev"))

    assert result.ok
    assert result.run_id is not None
    record = history.get_run(result.run_id)
    assert record is not None
    assert record.script_path == str(script)
    assert record.selection == "dev.all"
    assert record.status == "success"


def test_failed_run_is_recorded(tmp_path: Path, sink: MemorySink) -> None:
    history = HistoryStore(tmp_path / "history.db")
    engine = PipelineEngine(base_dir=tmp_path, output=sink, history=history)

    result = engine.run_source("1 / 0")

    assert not result.ok
    record = history.get_run(result.run_id)
    assert record is not None
    assert record.status == "failure"


def test_deep_recursion_fails_the_run(tmp_path: Path, sink: MemorySink) -> None:
    engine = PipelineEngine(base_dir=tmp_path, output=sink)
    source = "fn count(n) {\n    if n == 0 {\n        return 0\n    }\n    return 1 + count(n - 1)\n}\ncount(200)\n"

    result = engine.run_source(source)

    assert not result.ok
    assert isinstance(result.error, UndefinedOperation)
    assert "stack overflow" in str(result.error)


def test_deeply_nested_source_fails_the_run(tmp_path: Path, sink: MemorySink) -> None:
    engine = PipelineEngine(base_dir=tmp_path, output=sink)

    result = engine.run_source("(" * 3000 + "1" + ")" * 3000)

    assert not result.ok
    assert isinstance(result.error, ParseError)
