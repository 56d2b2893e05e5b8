"""Task execution for ``step`` and ``parallel`` blocks."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple

from pipescript.common.formatting import utc_now
from pipescript.interpreter.runtime import Runtime, TaskContext

if TYPE_CHECKING:
    from pipescript.interpreter import Interpreter
    from pipescript.interpreter.values import Closure

LOGGER = logging.getLogger(__name__)


class PipelineFrame:
    """A selected pipeline whose body is running.

    Parallel tasks are submitted to a thread pool owned by the frame and are
    joined when the pipeline body ends.
    """

    def __init__(self, name: str, runtime: Runtime, max_workers: Optional[int] = None) -> None:
        self.name = name
        self.runtime = runtime
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: List[Tuple[TaskContext, Future]] = []
        self._lock = threading.Lock()

    def submit(self, task: TaskContext, work: Callable[[], None]) -> Future:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix=f"pipeline-{self.name}",
                )
            future = self._executor.submit(work)
            self._pending.append((task, future))
        LOGGER.debug("Started parallel task %s in pipeline %s", task.name, self.name)
        return future

    def join(self) -> List[TaskContext]:
        """Wait for every submitted task and return the ones that failed."""

        failed: List[TaskContext] = []
        index = 0
        try:
            while True:
                with self._lock:
                    batch = self._pending[index:]
                    index = len(self._pending)
                if not batch:
                    break
                wait([future for _, future in batch])
                for task, future in batch:
                    if future.exception() is not None:
                        failed.append(task)
        except KeyboardInterrupt:
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
            raise
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        return failed


def skip_task(runtime: Runtime, name: str, kind: str, pipeline: Optional[str]) -> TaskContext:
    task = runtime.new_task(name, kind, pipeline)
    task.status = "skipped"
    if runtime.history is not None and runtime.run_id is not None:
        task.record_id = runtime.history.create_task(
            runtime.run_id, name, kind, status="skipped"
        )
    LOGGER.debug("Skipping %s %s, selection is %s", kind, name, runtime.selection)
    return task


def run_task(
    interpreter: "Interpreter",
    task: TaskContext,
    body: "Closure",
    frame: Optional[PipelineFrame] = None,
) -> None:
    """Run ``body`` as ``task`` on the calling thread and record the outcome."""

    runtime = interpreter.runtime
    history = runtime.history
    if history is not None and runtime.run_id is not None:
        task.record_id = history.create_task(
            runtime.run_id, task.name, task.kind, status="running", start_time=utc_now()
        )
    task.status = "running"
    LOGGER.info("Running %s %s (pipeline %s)", task.kind, task.name, task.pipeline)

    bindings = {"task": task}
    if frame is not None:
        bindings["pipeline"] = frame
    try:
        with runtime.bound(**bindings):
            try:
                interpreter.call_closure(body)
            finally:
                runtime.flush()
    except Exception as exc:
        task.status = "failure"
        task.error = exc
        task.record("err", str(exc))
        LOGGER.info("Task %s failed: %s", task.name, exc)
        raise
    else:
        task.status = "success"
    finally:
        if history is not None and task.record_id is not None:
            history.set_task_log(task.record_id, task.output)
            history.update_task_status(task.record_id, task.status)


__all__ = ["PipelineFrame", "run_task", "skip_task"]
