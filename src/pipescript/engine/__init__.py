"""Entry point tying the parser, interpreter and run history together."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, List, Optional, Sequence

from pipescript.errors import PipescriptError
from pipescript.interpreter import (
    Interpreter,
    ModuleRegistry,
    OutputSink,
    Runtime,
    Selection,
    default_registry,
)
from pipescript.script import ast, parse
from pipescript.storage import HistoryStore

LOGGER = logging.getLogger(__name__)

DEFAULT_MODULES = ("pipe",)


@dataclass(frozen=True)
class TaskResult:
    """Outcome of one ``step`` or ``parallel`` block."""

    name: str
    kind: str
    status: str
    output: str = ""
    error: Optional[str] = None
    pipeline: Optional[str] = None


@dataclass(frozen=True)
class RunResult:
    """Outcome of running a script."""

    status: str
    tasks: Sequence[TaskResult] = field(default_factory=tuple)
    error: Optional[PipescriptError] = None
    run_id: Optional[int] = None
    source: str = ""
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @property
    def failed_tasks(self) -> List[TaskResult]:
        return [task for task in self.tasks if task.status == "failure"]


class PipelineEngine:
    """Compile and run pipeline scripts."""

    def __init__(
        self,
        base_dir: str | Path | None = None,
        output: Optional[OutputSink] = None,
        input_stream: Optional[IO[str]] = None,
        modules: Sequence[str] = DEFAULT_MODULES,
        history: Optional[HistoryStore] = None,
        home: str | Path | None = None,
        shell: Optional[Sequence[str]] = None,
        registry: Optional[ModuleRegistry] = None,
    ) -> None:
        self.base_dir = Path(base_dir or Path.cwd())
        self.output = output
        self.input_stream = input_stream
        self.modules = tuple(modules)
        self.history = history
        self.home = home
        self.shell = shell
        self.registry = registry or default_registry()

    def compile(self, source: str) -> ast.Script:
        return parse(source)

    def new_interpreter(self, selection: Optional[Selection] = None, run_id: Optional[int] = None) -> Interpreter:
        runtime = Runtime(
            base_dir=self.base_dir,
            selection=selection,
            sink=self.output,
            input_stream=self.input_stream,
            home=self.home,
            shell=self.shell,
            history=self.history,
            run_id=run_id,
        )
        interpreter = Interpreter(runtime, self.registry)
        for module in self.modules:
            interpreter.import_module(module)
        return interpreter

    def eval(self, source: str, selection: Optional[Selection] = None) -> Any:
        """Run ``source`` and return the value of its last statement; errors propagate."""

        interpreter = self.new_interpreter(selection)
        try:
            return interpreter.execute(self.compile(source))
        finally:
            interpreter.runtime.flush()

    def run(
        self,
        script: ast.Script,
        selection: Optional[Selection] = None,
        script_path: str = "<string>",
    ) -> RunResult:
        """Execute ``script`` and report per task results instead of raising."""

        selection = selection or Selection()
        run_id = None
        if self.history is not None:
            run_id = self.history.create_run(script_path, str(selection))
        LOGGER.info("Running %s (selection %s)", script_path, selection)

        interpreter = self.new_interpreter(selection, run_id)
        runtime = interpreter.runtime
        error: Optional[PipescriptError] = None
        value = None
        try:
            value = interpreter.execute(script)
        except PipescriptError as exc:
            error = exc
            LOGGER.info("Run of %s failed: %s", script_path, exc)
        except KeyboardInterrupt:
            if self.history is not None and run_id is not None:
                self.history.update_run_status(run_id, "failure")
            raise
        finally:
            runtime.flush()

        tasks = tuple(
            TaskResult(
                name=task.name,
                kind=task.kind,
                status=task.status,
                output=task.output,
                error=str(task.error) if task.error is not None else None,
                pipeline=task.pipeline,
            )
            for task in runtime.tasks
        )
        failed = error is not None or any(task.status == "failure" for task in tasks)
        status = "failure" if failed else "success"
        if self.history is not None and run_id is not None:
            self.history.update_run_status(run_id, status)
        LOGGER.info("Run of %s finished with status %s", script_path, status)
        return RunResult(
            status=status,
            tasks=tasks,
            error=error,
            run_id=run_id,
            source=script.source,
            value=value,
        )

    def run_source(
        self,
        source: str,
        selection: Optional[Selection] = None,
        script_path: str = "<string>",
    ) -> RunResult:
        """Compile and run ``source``; syntax errors become a failed result."""

        try:
            script = self.compile(source)
        except PipescriptError as exc:
            LOGGER.info("Could not compile %s: %s", script_path, exc)
            return RunResult(status="failure", error=exc, source=source)
        return self.run(script, selection, script_path)

    def run_file(self, path: str | Path, selection: Optional[Selection] = None) -> RunResult:
        script_path = Path(path)
        return self.run_source(script_path.read_text(encoding="utf-8"), selection, str(script_path))


__all__ = [
    "DEFAULT_MODULES",
    "PipelineEngine",
    "RunResult",
    "Selection",
    "TaskResult",
]
