"""Run pipelines declared in Kotlin-script style ``pipeline.kts`` files."""

from pipescript.engine import PipelineEngine, RunResult, Selection, TaskResult
from pipescript.errors import PipescriptError

__version__ = "0.1.0"

__all__ = [
    "PipelineEngine",
    "PipescriptError",
    "RunResult",
    "Selection",
    "TaskResult",
    "__version__",
]
