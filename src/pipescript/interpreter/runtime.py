"""Per-run state shared by native functions: selection, output, tasks."""

from __future__ import annotations

import sys
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Deque, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

import click

if TYPE_CHECKING:
    from pipescript.storage import HistoryStore

ALL = "all"

@dataclass(frozen=True)
class Selection:
    """Which pipeline and task of a script a run executes."""

    pipeline: str = ALL
    task: str = ALL

    @classmethod
    def parse(cls, path: Optional[str]) -> "Selection":
        """Parse ``"pipeline.task"``; missing parts select everything."""

        if not path:
            return cls()
        pipeline, _, task = path.strip().partition(".")
        return cls(pipeline or ALL, task or ALL)

    def includes_pipeline(self, name: str) -> bool:
        return self.pipeline in (ALL, name)

    def includes_task(self, name: str) -> bool:
        return self.task in (ALL, name)

    def __str__(self) -> str:
        return f"{self.pipeline}.{self.task}"


class OutputSink(Protocol):
    def write(self, text: str, *, task: Optional[str] = None, stream: str = "out") -> None:
        """Deliver one line of user facing output."""


class EchoSink:
    """Writes output with ``click.echo``, prefixing task lines with the task name."""

    def __init__(self, color: Optional[bool] = None) -> None:
        self._color = color
        self._lock = threading.Lock()

    def write(self, text: str, *, task: Optional[str] = None, stream: str = "out") -> None:
        if task:
            text = click.style(f"[{task}] ", fg="cyan") + text
        with self._lock:
            click.echo(text, err=stream == "err", color=self._color)


class MemorySink:
    """Collects output in memory."""

    def __init__(self) -> None:
        self.lines: List[Tuple[Optional[str], str, str]] = []
        self._lock = threading.Lock()

    def write(self, text: str, *, task: Optional[str] = None, stream: str = "out") -> None:
        with self._lock:
            self.lines.append((task, stream, text))

    @property
    def text(self) -> str:
        return "".join(f"{line}\n" for _, _, line in self.lines)


@dataclass
class TaskContext:
    """A running ``step`` or ``parallel`` block."""

    name: str
    kind: str
    workspace: Path
    env: Dict[str, str] = field(default_factory=dict)
    pipeline: Optional[str] = None
    status: str = "pending"
    error: Optional[BaseException] = None
    lines: List[Tuple[str, str]] = field(default_factory=list)
    record_id: Optional[int] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, stream: str, text: str) -> None:
        with self._lock:
            self.lines.append((stream, text))

    @property
    def output(self) -> str:
        with self._lock:
            return "".join(f"{text}\n" for _, text in self.lines)


class Runtime:
    """State for one script run.

    The current task, pipeline and layout are thread local: parallel tasks
    run on worker threads and each sees its own task context.
    """

    def __init__(
        self,
        base_dir: str | Path | None = None,
        selection: Optional[Selection] = None,
        sink: Optional[OutputSink] = None,
        input_stream: Optional[IO[str]] = None,
        home: str | Path | None = None,
        shell: Optional[Sequence[str]] = None,
        history: Optional["HistoryStore"] = None,
        run_id: Optional[int] = None,
    ) -> None:
        self.base_dir = Path(base_dir or Path.cwd()).resolve()
        self.selection = selection or Selection()
        self.sink: OutputSink = sink or EchoSink()
        self.input_stream = input_stream if input_stream is not None else sys.stdin
        self.home = Path(home).expanduser() if home is not None else None
        self.shell = list(shell) if shell else None
        self.history = history
        self.run_id = run_id
        self.workspace = self.base_dir
        self.env: Dict[str, str] = {}
        self.tasks: List[TaskContext] = []
        self._pending_words: Deque[str] = deque()
        self._buffers: Dict[int, str] = {}
        self._local = threading.local()
        self._lock = threading.Lock()

    # Thread local context -----------------------------------------------

    @property
    def current_task(self) -> Optional[TaskContext]:
        return getattr(self._local, "task", None)

    @property
    def current_pipeline(self) -> Any:
        return getattr(self._local, "pipeline", None)

    @property
    def current_layout(self) -> Optional[str]:
        return getattr(self._local, "layout", None)

    @contextmanager
    def bound(self, **values: Any) -> Iterator[None]:
        """Temporarily set ``task``, ``pipeline`` or ``layout`` for this thread."""

        previous = {name: getattr(self._local, name, None) for name in values}
        for name, value in values.items():
            setattr(self._local, name, value)
        try:
            yield
        finally:
            for name, value in previous.items():
                setattr(self._local, name, value)

    # Tasks --------------------------------------------------------------

    def new_task(self, name: str, kind: str, pipeline: Optional[str] = None) -> TaskContext:
        task = TaskContext(
            name=name,
            kind=kind,
            workspace=self.workspace,
            env=dict(self.env),
            pipeline=pipeline,
        )
        with self._lock:
            self.tasks.append(task)
        return task

    def active_workspace(self) -> Path:
        task = self.current_task
        return task.workspace if task is not None else self.workspace

    def active_env(self) -> Dict[str, str]:
        task = self.current_task
        return task.env if task is not None else self.env

    def resolve(self, path: str | Path) -> Path:
        """Resolve ``path`` against the run's base directory."""

        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.base_dir / candidate
        return candidate

    def resolve_in_workspace(self, path: str | Path) -> Path:
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.active_workspace() / candidate
        return candidate

    # Input and output ---------------------------------------------------

    def write(self, text: str) -> None:
        """Buffer ``text`` and emit every completed line."""

        key = id(self.current_task)
        with self._lock:
            pending = self._buffers.pop(key, "") + text
            *lines, rest = pending.split("\n")
            if rest:
                self._buffers[key] = rest
        for line in lines:
            self.emit(line)

    def flush(self) -> None:
        key = id(self.current_task)
        with self._lock:
            rest = self._buffers.pop(key, "")
        if rest:
            self.emit(rest)

    def emit(self, text: str, stream: str = "out") -> None:
        task = self.current_task
        if task is not None:
            task.record(stream, text)
        self.sink.write(text, task=task.name if task is not None else None, stream=stream)

    def read_line(self, prompt: Optional[str] = None) -> Optional[str]:
        if prompt:
            self.write(prompt)
            self.flush()
        self._pending_words.clear()
        line = self.input_stream.readline()
        if not line:
            return None
        return line.rstrip("\r\n")

    def read_word(self, prompt: Optional[str] = None) -> Optional[str]:
        if prompt:
            self.write(prompt)
            self.flush()
        while not self._pending_words:
            line = self.input_stream.readline()
            if not line:
                return None
            self._pending_words.extend(line.split())
        return self._pending_words.popleft()


__all__ = [
    "ALL",
    "EchoSink",
    "MemorySink",
    "OutputSink",
    "Runtime",
    "Selection",
    "TaskContext",
]
