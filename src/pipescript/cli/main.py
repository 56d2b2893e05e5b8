"""Command line interface for running pipeline scripts."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Optional

import click

from pipescript.common import (
    format_duration,
    format_timestamp,
    humanize_status,
    source_excerpt,
    status_color,
)
from pipescript.config import HOME_ENV_VAR, Settings, load_settings
from pipescript.engine import PipelineEngine, RunResult, Selection
from pipescript.errors import ConfigError, PipescriptError, TemplateError
from pipescript.script import outline, parse
from pipescript.storage import HistoryStore
from pipescript.storage.sqlite import RunRecord
from pipescript.templates import TemplateStore

LOGGER = logging.getLogger(__name__)

INTERRUPTED_EXIT_CODE = 130


class ScriptFailed(click.ClickException):
    """Report a script error with the offending source line."""

    def __init__(self, error: PipescriptError, source: str = "") -> None:
        super().__init__(str(error))
        self.error = error
        self.source = source

    def show(self, file: Optional[IO[str]] = None) -> None:
        excerpt = source_excerpt(self.source, self.error.position)
        if excerpt:
            click.secho(excerpt, fg="red", err=True)
        click.secho(f"[Error]: {self.error}", fg="red", err=True)
        hint = getattr(self.error, "hint", None)
        if hint:
            click.secho(f"[Error]: {hint}", fg="red", err=True)


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)


def _script_path(settings: Settings, script_file: Optional[Path]) -> Path:
    """Resolve the script to use; ``--file`` takes precedence over configuration."""

    if script_file is not None:
        settings = settings.with_overrides(script=str(script_file))
    path = Path(settings.script)
    if not path.is_file():
        raise click.ClickException(f"{path} not found")
    return path


def _open_history(settings: Settings) -> HistoryStore:
    return HistoryStore(settings.history_path)


def _format_run_summary(run: RunRecord) -> str:
    status = click.style(run.status.upper(), fg=status_color(run.status))
    started = format_timestamp(run.start_time)
    duration = format_duration(run.start_time, run.end_time)
    return f"#{run.id} [{run.script_path} {run.selection}] status: {status} (started {started}, took {duration})"


def _report(result: RunResult) -> None:
    for task in result.tasks:
        color = status_color(task.status)
        click.echo(
            click.style(f"{humanize_status(task.status):<8}", fg=color)
            + f" {task.kind} {task.name}"
        )
    for task in result.failed_tasks:
        if task.error:
            click.secho(f"[Error]: {task.name}: {task.error}", fg="red", err=True)
    if result.error is not None:
        raise ScriptFailed(result.error, result.source)
    if not result.ok:
        raise click.ClickException("run failed")


@click.group()
@click.option(
    "--home",
    envvar=HOME_ENV_VAR,
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding templates, layouts, config.yml and run history.",
)
@click.option("-v", "--verbose", count=True, help="Increase logging verbosity.")
@click.pass_context
def cli(ctx: click.Context, home: Optional[Path], verbose: int) -> None:
    """Run pipelines declared in a pipeline.kts script."""

    _configure_logging(verbose)
    try:
        ctx.obj = load_settings(home)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command("run")
@click.argument("path", required=False)
@click.option(
    "--file",
    "script_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Script to run instead of the configured pipeline.kts.",
)
@click.option("--no-history", is_flag=True, help="Do not record the run in the history.")
@click.pass_context
def run_command(
    ctx: click.Context,
    path: Optional[str],
    script_file: Optional[Path],
    no_history: bool,
) -> None:
    """Run PATH, written as PIPELINE or PIPELINE.TASK (default: everything)."""

    settings: Settings = ctx.obj
    script_path = _script_path(settings, script_file)
    history = _open_history(settings) if settings.history and not no_history else None
    engine = PipelineEngine(
        base_dir=script_path.resolve().parent,
        history=history,
        home=settings.home,
        shell=settings.shell,
    )
    try:
        result = engine.run_file(script_path, Selection.parse(path))
    except KeyboardInterrupt:
        click.secho("Interrupted.", fg="red", err=True)
        ctx.exit(INTERRUPTED_EXIT_CODE)
    _report(result)


@cli.command("list")
@click.option(
    "--file",
    "script_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Script to inspect instead of the configured pipeline.kts.",
)
@click.pass_obj
def list_pipelines(settings: Settings, script_file: Optional[Path]) -> None:
    """List the pipelines and tasks a script declares."""

    script_path = _script_path(settings, script_file)
    source = script_path.read_text(encoding="utf-8")
    try:
        pipelines = outline(parse(source))
    except PipescriptError as exc:
        raise ScriptFailed(exc, source) from exc

    if not pipelines:
        click.echo("No pipelines declared.")
        return
    for pipeline in pipelines:
        click.echo(pipeline.name)
        for _, task_name in pipeline.tasks:
            click.echo(f"   ╰─▶{task_name}")


@cli.command("init")
@click.option("--template", "-t", "template", required=True, help="Template to copy.")
@click.option("--force", is_flag=True, help="Overwrite an existing script.")
@click.pass_obj
def init_command(settings: Settings, template: str, force: bool) -> None:
    """Create pipeline.kts from a saved template."""

    destination = Path(settings.script)
    if destination.exists() and not force:
        raise click.ClickException(f"{destination} already exists, use --force to overwrite it")
    try:
        TemplateStore(settings.home).init(template, destination)
    except TemplateError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Initialized {destination} from template {template}.")


@cli.command("template")
@click.option("--add", "add", default=None, help="Save pipeline.kts as a template.")
@click.option("--remove", "remove", default=None, help="Delete a saved template.")
@click.pass_obj
def template_command(settings: Settings, add: Optional[str], remove: Optional[str]) -> None:
    """Manage saved templates; lists them when no option is given."""

    store = TemplateStore(settings.home)
    try:
        if add:
            store.add(add, settings.script)
            click.echo(f"Successfully added to template {add}.kts!")
            return
        if remove:
            store.remove(remove)
            click.echo(f"{remove}.kts has been successfully removed.")
            return
    except TemplateError as exc:
        raise click.ClickException(str(exc)) from exc

    names = store.list()
    if not names:
        click.echo("No templates saved yet.")
        return
    for name in names:
        click.echo(name)


@cli.command("layout")
@click.argument("name")
@click.pass_context
def layout_command(ctx: click.Context, name: str) -> None:
    """Generate a project structure from the layout NAME."""

    settings: Settings = ctx.obj
    try:
        script_path = TemplateStore(settings.home).layout_script(name)
    except TemplateError as exc:
        raise click.ClickException(str(exc)) from exc

    engine = PipelineEngine(
        base_dir=Path.cwd(),
        modules=("layout",),
        home=settings.home,
        shell=settings.shell,
    )
    try:
        result = engine.run_file(script_path)
    except KeyboardInterrupt:
        click.secho("Interrupted.", fg="red", err=True)
        ctx.exit(INTERRUPTED_EXIT_CODE)
    if result.error is not None:
        raise ScriptFailed(result.error, result.source)


@cli.command("history")
@click.option("--limit", default=10, show_default=True, type=click.IntRange(min=1))
@click.pass_obj
def history_command(settings: Settings, limit: int) -> None:
    """List recent runs."""

    runs = _open_history(settings).get_recent_runs(limit)
    if not runs:
        click.echo("No runs recorded yet.")
        return
    for run in runs:
        click.echo(_format_run_summary(run))


@cli.command("logs")
@click.argument("run_id", type=int)
@click.argument("task_name", required=False)
@click.pass_obj
def show_logs(settings: Settings, run_id: int, task_name: Optional[str]) -> None:
    """Show the output of a recorded run or of one of its tasks."""

    store = _open_history(settings)
    if store.get_run(run_id) is None:
        raise click.ClickException(f"Run {run_id} not found.")

    tasks = store.get_tasks_for_run(run_id)
    if task_name is not None:
        tasks = [task for task in tasks if task.name == task_name]
        if not tasks:
            raise click.ClickException("Task name not found in run.")
    if not tasks:
        raise click.ClickException("Run does not contain any tasks.")

    for task in tasks:
        click.echo(f"--- Log for run {run_id}, {task.kind} \"{task.name}\" ({task.status}) ---")
        log_text = task.log or ""
        click.echo(log_text, nl=False)
        if log_text and not log_text.endswith("\n"):
            click.echo()


def main() -> None:
    cli(prog_name="pipescript")


__all__ = ["ScriptFailed", "cli", "main"]
