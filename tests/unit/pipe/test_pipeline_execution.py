from __future__ import annotations

import os
import textwrap
from pathlib import Path

import pytest

from pipescript.engine import PipelineEngine, RunResult, Selection
from pipescript.errors import CommandFailed, TaskFailed, UndefinedOperation, WorkspaceNotFound
from pipescript.interpreter import MemorySink
from pipescript.storage import HistoryStore

pytestmark = pytest.mark.skipif(os.name == "nt", reason="scripts use POSIX shell commands")

TWO_PIPELINES = """
pipeline("dev") {
    step("go") {
        cmd("echo hello")
    }
    parallel("echo") {
        cmd("echo from parallel")
    }
}

pipeline("prod") {
    step("deploy") {
        cmd("echo deploying")
    }
}
"""


def run(tmp_path: Path, source: str, path: str | None = None, **kwargs: object) -> RunResult:
    engine = PipelineEngine(base_dir=tmp_path, output=MemorySink(), **kwargs)
    return engine.run_source(textwrap.dedent(source), Selection.parse(path))


def statuses(result: RunResult) -> dict[str, str]:
    return {task.name: task.status for task in result.tasks}


def test_runs_every_pipeline_by_default(tmp_path: Path) -> None:
    result = run(tmp_path, TWO_PIPELINES)

    assert result.ok, result.error
    assert statuses(result) == {"go": "success", "echo": "success", "deploy": "success"}
    go = next(task for task in result.tasks if task.name == "go")
    assert go.output == "$ echo hello\nhello\n"
    assert go.kind == "step"
    assert go.pipeline == "dev"


def test_selects_a_single_pipeline(tmp_path: Path) -> None:
    result = run(tmp_path, TWO_PIPELINES, "dev")

    assert result.ok
    assert [task.name for task in result.tasks] == ["go", "echo"]


def test_selects_a_single_task(tmp_path: Path) -> None:
    result = run(tmp_path, TWO_PIPELINES, "dev.go")

    assert result.ok
    assert statuses(result) == {"go": "success", "echo": "skipped"}


def test_parallel_tasks_run_alongside_later_steps(tmp_path: Path) -> None:
    result = run(
        tmp_path,
        """
        pipeline("sync") {
            parallel("waiter") {
                cmd("for i in $(seq 1 200); do [ -f ready ] && exit 0; sleep 0.05; done; exit 1")
            }
            step("signal") {
                cmd("touch ready")
            }
        }
        """,
    )

    assert result.ok, result.error
    assert statuses(result) == {"waiter": "success", "signal": "success"}


def test_failed_parallel_task_fails_pipeline_after_join(tmp_path: Path) -> None:
    result = run(
        tmp_path,
        """
        pipeline("dev") {
            parallel("bad") { cmd("exit 3") }
            parallel("good") { cmd("echo fine") }
            step("after") { cmd("echo still runs") }
        }
        """,
    )

    assert not result.ok
    assert isinstance(result.error, TaskFailed)
    assert result.error.tasks == ("bad",)
    assert statuses(result) == {"bad": "failure", "good": "success", "after": "success"}
    bad = result.failed_tasks[0]
    assert bad.error.startswith("command exited with code 3: exit 3")


def test_failed_step_stops_the_pipeline(tmp_path: Path) -> None:
    result = run(
        tmp_path,
        """
        pipeline("dev") {
            step("first") { cmd("exit 1") }
            step("second") { cmd("echo never") }
        }
        """,
    )

    assert isinstance(result.error, CommandFailed)
    assert result.error.exit_code == 1
    assert result.error.position.line == 3
    assert statuses(result) == {"first": "failure"}


def test_failed_step_still_joins_started_parallel_tasks(tmp_path: Path) -> None:
    result = run(
        tmp_path,
        """
        pipeline("dev") {
            parallel("slow") { cmd("sleep 0.2; touch done") }
            step("bad") { cmd("exit 1") }
        }
        """,
    )

    assert isinstance(result.error, CommandFailed)
    assert (tmp_path / "done").exists()
    assert statuses(result) == {"slow": "success", "bad": "failure"}


def test_step_outside_pipeline_is_rejected(tmp_path: Path) -> None:
    result = run(tmp_path, 'step("lonely") { }')

    assert isinstance(result.error, UndefinedOperation)
    assert result.tasks == ()


def test_missing_workspace_reports_position(tmp_path: Path) -> None:
    result = run(
        tmp_path,
        """
        pipeline("dev") {
            step("go") {
                workspace("./missing")
            }
        }
        """,
    )

    assert isinstance(result.error, WorkspaceNotFound)
    assert result.error.path == "./missing"
    assert result.error.position.line == 4
    assert 'workspace("./missing")' in result.error.position.source_line(result.source)


def test_workspace_and_env_apply_to_commands(tmp_path: Path) -> None:
    (tmp_path / "sub").mkdir()

    result = run(
        tmp_path,
        """
        pipeline("dev") {
            step("write") {
                workspace("./sub")
                env("GREETING", "hi")
                cmd("echo $GREETING > out.txt")
            }
            step("isolated") {
                cmd("echo \\"[$GREETING]\\" > isolated.txt")
            }
        }
        """,
    )

    assert result.ok, result.error
    assert (tmp_path / "sub" / "out.txt").read_text() == "hi\n"
    assert (tmp_path / "isolated.txt").read_text() == "[]\n"


def test_run_level_env_is_inherited_by_tasks(tmp_path: Path) -> None:
    result = run(
        tmp_path,
        """
        env("STAGE", "ci")
        pipeline("dev") {
            step("show") { cmd("echo stage=$STAGE") }
        }
        """,
    )

    assert result.tasks[0].output.splitlines()[-1] == "stage=ci"


def test_runs_are_recorded_in_history(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path / "history.db")

    result = run(tmp_path, TWO_PIPELINES, "dev.go", history=store)

    assert result.run_id is not None
    run_record = store.get_run(result.run_id)
    assert run_record is not None
    assert run_record.status == "success"
    assert run_record.selection == "dev.go"
    assert run_record.end_time is not None
    tasks = store.get_tasks_for_run(result.run_id)
    assert [(task.name, task.kind, task.status) for task in tasks] == [
        ("go", "step", "success"),
        ("echo", "parallel", "skipped"),
    ]
    assert tasks[0].log == "$ echo hello\nhello\n"
