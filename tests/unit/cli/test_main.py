from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from pipescript.cli.main import cli
from pipescript.engine import PipelineEngine

SCRIPT = """\
pipeline("dev") {
    step("build") {
        println("hi")
    }
    parallel("check") {
        println("checked")
    }
}

pipeline("prod") {
    step("deploy") {
        println("shipping")
    }
}
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("PIPESCRIPT_HOME", "PIPESCRIPT_SCRIPT", "PIPESCRIPT_SHELL", "PIPESCRIPT_HISTORY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


def invoke(runner: CliRunner, home: Path, *args: str):
    return runner.invoke(cli, ["--home", str(home), *args])


def test_run_executes_script(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    with runner.isolated_filesystem(temp_dir=tmp_path):
        Path("pipeline.kts").write_text(SCRIPT, encoding="utf-8")

        result = invoke(runner, home, "run")

    assert result.exit_code == 0, result.output
    assert "[build] hi" in result.output
    assert "[deploy] shipping" in result.output
    assert "step build" in result.output
    assert "parallel check" in result.output
    assert (home / "history.db").exists()


def test_run_selected_task(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    with runner.isolated_filesystem(temp_dir=tmp_path):
        Path("pipeline.kts").write_text(SCRIPT, encoding="utf-8")

        result = invoke(runner, home, "run", "dev.build", "--no-history")

    assert result.exit_code == 0, result.output
    assert "[build] hi" in result.output
    assert "checked" not in result.output
    assert "shipping" not in result.output
    assert "Skipped" in result.output
    assert not (home / "history.db").exists()


def test_run_with_explicit_file(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    script = tmp_path / "ci.kts"
    script.write_text('println("from file")\n', encoding="utf-8")

    result = invoke(runner, home, "run", "--file", str(script))

    assert result.exit_code == 0, result.output
    assert "from file" in result.output


def test_run_missing_script(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    with runner.isolated_filesystem(temp_dir=tmp_path):
        result = invoke(runner, home, "run")

    assert result.exit_code == 1
    assert "pipeline.kts not found" in result.output


def test_run_reports_script_error(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    with runner.isolated_filesystem(temp_dir=tmp_path):
        Path("pipeline.kts").write_text('println("start")\nnope()\n', encoding="utf-8")

        result = invoke(runner, home, "run")

    assert result.exit_code == 1
    assert "start" in result.output
    assert "2|1   nope()" in result.output
    assert "[Error]:" in result.output


def test_run_reports_failed_task(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    script = 'pipeline("dev") {\n    step("broken") {\n        nope()\n    }\n}\n'
    with runner.isolated_filesystem(temp_dir=tmp_path):
        Path("pipeline.kts").write_text(script, encoding="utf-8")

        result = invoke(runner, home, "run")

    assert result.exit_code == 1
    assert "Failure" in result.output
    assert "step broken" in result.output


def test_run_interrupted_exits_with_130(
    runner: CliRunner, home: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def interrupt(self, path, selection=None):
        raise KeyboardInterrupt

    monkeypatch.setattr(PipelineEngine, "run_file", interrupt)
    with runner.isolated_filesystem(temp_dir=tmp_path):
        Path("pipeline.kts").write_text(SCRIPT, encoding="utf-8")

        result = invoke(runner, home, "run", "--no-history")

    assert result.exit_code == 130
    assert "Interrupted." in result.output


def test_file_option_overrides_configured_script(
    runner: CliRunner, home: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("PIPESCRIPT_SCRIPT", "missing.kts")
    script = tmp_path / "ci.kts"
    script.write_text('println("chosen")\n', encoding="utf-8")

    result = invoke(runner, home, "run", "--file", str(script), "--no-history")

    assert result.exit_code == 0, result.output
    assert "chosen" in result.output


def test_list_shows_pipelines_and_tasks(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    with runner.isolated_filesystem(temp_dir=tmp_path):
        Path("pipeline.kts").write_text(SCRIPT, encoding="utf-8")

        result = invoke(runner, home, "list")

    assert result.exit_code == 0, result.output
    assert result.output == (
        "dev\n"
        "   ╰─▶build\n"
        "   ╰─▶check\n"
        "prod\n"
        "   ╰─▶deploy\n"
    )


def test_list_without_pipelines(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    with runner.isolated_filesystem(temp_dir=tmp_path):
        Path("pipeline.kts").write_text('println("nothing")\n', encoding="utf-8")

        result = invoke(runner, home, "list")

    assert result.exit_code == 0
    assert result.output == "No pipelines declared.\n"


def test_template_add_list_remove(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    with runner.isolated_filesystem(temp_dir=tmp_path):
        Path("pipeline.kts").write_text(SCRIPT, encoding="utf-8")

        empty = invoke(runner, home, "template")
        added = invoke(runner, home, "template", "--add", "ci")
        listed = invoke(runner, home, "template")
        removed = invoke(runner, home, "template", "--remove", "ci")
        missing = invoke(runner, home, "template", "--remove", "ci")

    assert empty.output == "No templates saved yet.\n"
    assert added.output == "Successfully added to template ci.kts!\n"
    assert listed.output == "ci\n"
    assert removed.output == "ci.kts has been successfully removed.\n"
    assert missing.exit_code == 1
    assert "not found" in missing.output


def test_init_from_template(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    (home / "rust.kts").write_text(SCRIPT, encoding="utf-8")

    with runner.isolated_filesystem(temp_dir=tmp_path):
        created = invoke(runner, home, "init", "--template", "rust")
        content = Path("pipeline.kts").read_text(encoding="utf-8")
        refused = invoke(runner, home, "init", "-t", "rust")
        forced = invoke(runner, home, "init", "-t", "rust", "--force")
        unknown = invoke(runner, home, "init", "-t", "go", "--force")

    assert created.exit_code == 0, created.output
    assert content == SCRIPT
    assert refused.exit_code == 1
    assert "already exists" in refused.output
    assert forced.exit_code == 0
    assert unknown.exit_code == 1
    assert "template \"go\" not found" in unknown.output


def test_layout_generates_structure(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    layout_dir = home / "layout" / "web"
    layout_dir.mkdir(parents=True)
    (layout_dir / "layout.kts").write_text(
        'layout("web") {\n'
        '    folder("docs")\n'
        '    template("README.md", "readme.tpl") {\n'
        '        set(ctx, "name", layoutName)\n'
        "    }\n"
        "}\n",
        encoding="utf-8",
    )
    (layout_dir / "readme.tpl").write_text("# ${name}\n", encoding="utf-8")

    with runner.isolated_filesystem(temp_dir=tmp_path):
        result = invoke(runner, home, "layout", "web")
        docs_created = Path("docs").is_dir()
        readme = Path("README.md").read_text(encoding="utf-8")

    assert result.exit_code == 0, result.output
    assert "using layout web" in result.output
    assert "╰─▶successfully finished." in result.output
    assert docs_created
    assert readme == "# web\n"


def test_layout_missing(runner: CliRunner, home: Path) -> None:
    result = invoke(runner, home, "layout", "api")

    assert result.exit_code == 1
    assert "layout \"api\" not found" in result.output


def test_history_and_logs(runner: CliRunner, home: Path, tmp_path: Path) -> None:
    empty = invoke(runner, home, "history")

    with runner.isolated_filesystem(temp_dir=tmp_path):
        Path("pipeline.kts").write_text(SCRIPT, encoding="utf-8")
        invoke(runner, home, "run", "dev")

    history = invoke(runner, home, "history")
    all_logs = invoke(runner, home, "logs", "1")
    build_log = invoke(runner, home, "logs", "1", "build")
    missing_task = invoke(runner, home, "logs", "1", "deploy")
    missing_run = invoke(runner, home, "logs", "7")

    assert empty.output == "No runs recorded yet.\n"
    assert "#1 [pipeline.kts dev.all] status: SUCCESS" in history.output
    assert '--- Log for run 1, step "build" (success) ---' in all_logs.output
    assert '--- Log for run 1, parallel "check" (success) ---' in all_logs.output
    assert build_log.output == '--- Log for run 1, step "build" (success) ---\nhi\n'
    assert missing_task.exit_code == 1
    assert "Task name not found in run." in missing_task.output
    assert missing_run.exit_code == 1
    assert "Run 7 not found." in missing_run.output


def test_invalid_config_is_reported(runner: CliRunner, home: Path) -> None:
    (home / "config.yml").write_text("colour: blue\n", encoding="utf-8")

    result = invoke(runner, home, "template")

    assert result.exit_code == 1
    assert "Unknown settings" in result.output
