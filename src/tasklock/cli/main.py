"""
Command line interface for tasklock.
"""

import getpass
import logging
from typing import NoReturn, Optional

import typer
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..config import get_config, reload_config
from ..engine import Engine, build_engine
from ..exceptions import TaskLockError
from ..gap_validator import NO_ACTIVE_TASK_MESSAGE
from ..lock_controller import LockState
from ..scope_parser import ScopeFormat, parse_scopes

app = typer.Typer(name="tasklock", help="Single-task lock and scope governance")
console = Console()

logger = logging.getLogger(__name__)


def _default_actor() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "cli"


def _engine() -> Engine:
    return build_engine(get_config())


def _fail(error: Exception) -> NoReturn:
    console.print(f"[red]Error: {escape(str(error))}[/red]")
    raise typer.Exit(1)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override SDD_LOG_LEVEL"),
):
    """Lock one task at a time and check that changes stay inside its scope."""
    settings = reload_config()
    level = (log_level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def start(
    task_id: str = typer.Argument(..., help="Task ID, e.g. Task-1"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Task title"),
    scope: Optional[list[str]] = typer.Option(
        None, "--scope", "-s", help="Allowed scope glob (repeatable); read from the tasks file when omitted"
    ),
    actor: Optional[str] = typer.Option(None, "--actor", help="Who starts the task"),
):
    """Lock a task and record its allowed scopes."""
    actor = actor or _default_actor()
    try:
        engine = _engine()
        if scope:
            scopes = [s for value in scope for s in parse_scopes(value, ScopeFormat.LENIENT)]
            lock = engine.controller.start(task_id, title or task_id, scopes, actor)
        else:
            lock = engine.controller.start_from_tasks(task_id, actor, engine.tasks_file)
    except TaskLockError as e:
        _fail(e)

    console.print(Panel(
        f"[green]✓ Task started[/green]\n\n"
        f"Task: {escape(lock.active_task_id)} ({escape(lock.active_task_title)})\n"
        f"Allowed scopes: {escape(', '.join(lock.allowed_scopes))}\n"
        f"Started by: {escape(lock.started_by)}",
        title="Task Locked",
        border_style="green",
    ))


@app.command()
def end(
    task_id: str = typer.Argument(..., help="Task ID of the active task"),
    actor: Optional[str] = typer.Option(None, "--actor", help="Who ends the task"),
):
    """Release the lock of the active task."""
    actor = actor or _default_actor()
    try:
        lock = _engine().controller.end(task_id, actor)
    except TaskLockError as e:
        _fail(e)

    console.print(
        f"[green]✓ Task {escape(lock.active_task_id)} ended "
        f"after {lock.validation_attempts} validation(s)[/green]"
    )


@app.command("force-unlock")
def force_unlock(
    force: bool = typer.Option(False, "--force", help="Actually remove the lock; otherwise only diagnose"),
    actor: Optional[str] = typer.Option(None, "--actor", help="Operator performing the unlock"),
):
    """Diagnose the state directory and optionally clear it."""
    actor = actor or _default_actor()
    try:
        controller = _engine().controller
        console.print(escape(controller.diagnose().render()))
        if not force:
            console.print("\n[yellow][DRY-RUN] Nothing was removed. Re-run with --force to clear the lock.[/yellow]")
            console.print("Forcing an unlock while another process is running can corrupt its state.")
            return
        result = controller.force_unlock(actor)
    except TaskLockError as e:
        _fail(e)

    previous = result.previous_task_id or ("corrupted record" if result.was_corrupt else "none")
    console.print(f"\n[green]✓ Lock forcibly cleared (previous task: {escape(previous)})[/green]")


@app.command()
def validate(
    deep: bool = typer.Option(False, "--deep", help="Also compare the lock with the task declaration"),
    fail_on_violation: bool = typer.Option(
        False, "--fail-on-violation", help="Exit with status 2 when files are out of scope"
    ),
):
    """Report changed files against the active task's scopes."""
    try:
        report = _engine().validator.evaluate(deep=deep)
    except TaskLockError as e:
        _fail(e)

    if report is None:
        console.print(f"[yellow]{escape(NO_ACTIVE_TASK_MESSAGE)}[/yellow]")
        return

    console.print(escape(report.render()))
    if fail_on_violation and not report.is_clean:
        raise typer.Exit(2)


@app.command()
def status():
    """Show the active task lock."""
    try:
        engine = _engine()
        lock = engine.controller.current_lock()
    except TaskLockError as e:
        _fail(e)

    table = Table(title="Task Lock")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("State", (LockState.LOCKED if lock else LockState.UNLOCKED).value)
    table.add_row("State file", str(engine.store.state_path))
    if lock:
        table.add_row("Task", lock.active_task_id)
        table.add_row("Title", lock.active_task_title)
        table.add_row("Allowed scopes", "\n".join(lock.allowed_scopes))
        table.add_row("Started at", lock.started_at.isoformat())
        table.add_row("Started by", lock.started_by)
        table.add_row("Validation attempts", str(lock.validation_attempts))
    console.print(table)


@app.command()
def restore(
    actor: Optional[str] = typer.Option(None, "--actor", help="Operator performing the restore"),
):
    """Restore the lock record from the newest backup generation."""
    actor = actor or _default_actor()
    try:
        result = _engine().store.restore_from_backup(actor)
    except TaskLockError as e:
        _fail(e)

    if not result.restored:
        console.print("[yellow]No backup generation found; nothing restored.[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Restored lock record from {escape(str(result.from_backup))}[/green]")


@app.command()
def tasks():
    """List the task declarations of the tasks file."""
    try:
        declared = _engine().tasks_file.tasks()
    except TaskLockError as e:
        _fail(e)

    table = Table(title="Declared Tasks")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Scopes", style="magenta")
    table.add_column("Done", style="green")
    for task in declared:
        table.add_row(task.id, task.title, "\n".join(task.scopes) or "-", "x" if task.done else "")
    console.print(table)


@app.command()
def serve(
    port: int = typer.Option(8000, help="Port to run the service on"),
    host: str = typer.Option("127.0.0.1", help="Host to bind the service to"),
):
    """Serve the lock API for the current worktree."""
    from ..api.main import create_app

    console.print(f"Starting tasklock API at http://{host}:{port}")
    console.print("Press Ctrl+C to stop the service")
    uvicorn.run(create_app(get_config()), host=host, port=port)


if __name__ == "__main__":
    app()
