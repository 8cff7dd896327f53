"""Click command group and all CLI commands for BubbleTasks.

Commands stay thin: they delegate to TaskBoard / TaskClient for the work
and only handle arguments and output.
"""

import sys
from pathlib import Path
from typing import NoReturn

import click
from bubbletasks_models import Task, TaskScope, TaskStatus
from rich.table import Table

from bubbletasks.board import TaskBoard
from bubbletasks.cli.timer_view import watch_active_task
from bubbletasks.cli.utils import (
    CONFIG_FILE,
    _get_cli_version,
    console,
    load_config,
    resolve_api_url,
    save_config,
)
from bubbletasks.client import TaskAPIError, TaskClient
from bubbletasks.countdown import format_time

STATUS_STYLES = {
    TaskStatus.ACTIVE: "green",
    TaskStatus.UPCOMING: "blue",
    TaskStatus.PAUSED: "yellow",
    TaskStatus.COMPLETED: "magenta",
    TaskStatus.CANCELLED: "dim",
}


def _fail(message: str) -> NoReturn:
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


def _get_board(ctx: click.Context) -> TaskBoard:
    return TaskBoard(TaskClient(ctx.obj["api_url"]))


def _load_board(ctx: click.Context) -> TaskBoard:
    board = _get_board(ctx)
    board.fetch_tasks()
    if board.error:
        _fail(board.error)
    return board


def _print_task(prefix: str, task: Task) -> None:
    style = STATUS_STYLES.get(task.status, "white")
    console.print(
        f"{prefix} [bold]{task.title}[/bold] "
        f"([{style}]{task.status.value}[/{style}], {task.est_minutes} min) [dim]{task.id}[/dim]"
    )


def _tasks_table(tasks: list[Task]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Minutes", justify="right")
    table.add_column("Remaining", justify="right")

    for task in tasks:
        style = STATUS_STYLES.get(task.status, "white")
        remaining = (
            format_time(task.remaining_seconds) if task.remaining_seconds is not None else "-"
        )
        table.add_row(
            task.id,
            task.title,
            f"[{style}]{task.status.value}[/{style}]",
            str(task.est_minutes),
            remaining,
        )
    return table


@click.group()
@click.version_option(version=_get_cli_version())
@click.option(
    "--api-url",
    envvar="BUBBLETASKS_API_URL",
    default=None,
    help="API base URL (default: from config, else http://localhost:3001/api)",
)
@click.pass_context
def main(ctx: click.Context, api_url: str | None):
    """BubbleTasks - one task at a time, with a timer."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = resolve_api_url(api_url)


@main.command()
@click.option("--host", default=None, help="Host to bind (default: settings)")
@click.option("--port", type=int, default=None, help="Port to listen on (default: settings)")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write logs to this file instead of stdout",
)
def serve(host: str | None, port: int | None, log_file: Path | None):
    """Run the API server."""
    from bubbletasks.api_server import start_api_server

    start_api_server(host=host, port=port, log_file=log_file)


@main.command("list")
@click.option(
    "--scope",
    type=click.Choice([s.value for s in TaskScope]),
    default=TaskScope.ACTIVE.value,
    show_default=True,
)
@click.pass_context
def list_cmd(ctx: click.Context, scope: str):
    """List tasks."""
    board = _get_board(ctx)
    if scope == TaskScope.ARCHIVED.value:
        board.fetch_archived_tasks()
        tasks = board.archived_tasks
    elif scope == TaskScope.ACTIVE.value:
        board.fetch_tasks()
        tasks = board.tasks
    else:
        try:
            tasks = board.client.list_tasks(TaskScope.ALL)
        except TaskAPIError as e:
            _fail(e.message)
    if board.error:
        _fail(board.error)

    if not tasks:
        console.print("[dim]No tasks.[/dim]")
        return
    console.print(_tasks_table(tasks))


@main.command()
@click.argument("title")
@click.option("-m", "--minutes", type=click.IntRange(min=1), default=None, help="Estimate")
@click.option(
    "--image",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Icon image to upload",
)
@click.pass_context
def add(ctx: click.Context, title: str, minutes: int | None, image: Path | None):
    """Create a task. It starts right away if nothing else is active."""
    board = _get_board(ctx)
    try:
        image_url = board.client.upload_image(image) if image else None
        task = board.add_task(title, minutes, image_url)
    except TaskAPIError as e:
        _fail(e.message)
    _print_task("[green]✓[/green] Added", task)


@main.command()
@click.argument("task_id")
@click.option("--title", default=None)
@click.option("-m", "--minutes", type=click.IntRange(min=1), default=None)
@click.option("--status", type=click.Choice([s.value for s in TaskStatus]), default=None)
@click.pass_context
def update(
    ctx: click.Context,
    task_id: str,
    title: str | None,
    minutes: int | None,
    status: str | None,
):
    """Change a task's title, estimate or status."""
    updates: dict = {}
    if title is not None:
        updates["title"] = title
    if minutes is not None:
        updates["est_minutes"] = minutes
    if status is not None:
        updates["status"] = TaskStatus(status)
    if not updates:
        _fail("Nothing to update. Pass --title, --minutes or --status.")

    board = _get_board(ctx)
    try:
        task = board.update_task(task_id, **updates)
    except TaskAPIError as e:
        _fail(e.message)
    _print_task("[green]✓[/green] Updated", task)


def _finish(ctx: click.Context, task_id: str | None, cancel: bool) -> None:
    board = _load_board(ctx)
    active = board.active_task()
    if task_id is None:
        if active is None:
            _fail("No active task.")
        task_id = active.id

    try:
        if cancel:
            activated = board.cancel_and_activate_next(task_id)
        else:
            activated = board.complete_and_activate_next(task_id)
    except TaskAPIError as e:
        _fail(e.message)

    console.print(f"[green]✓[/green] {'Cancelled' if cancel else 'Completed'} {task_id}")
    if activated is not None:
        _print_task("[green]▶[/green] Now active:", activated)
    elif active is not None and active.id == task_id:
        console.print("[dim]No upcoming tasks.[/dim]")


@main.command()
@click.argument("task_id", required=False)
@click.pass_context
def done(ctx: click.Context, task_id: str | None):
    """Complete a task (default: the active one) and start the next."""
    _finish(ctx, task_id, cancel=False)


@main.command()
@click.argument("task_id", required=False)
@click.pass_context
def cancel(ctx: click.Context, task_id: str | None):
    """Cancel a task (default: the active one) and start the next."""
    _finish(ctx, task_id, cancel=True)


@main.command()
@click.argument("task_id")
@click.pass_context
def delete(ctx: click.Context, task_id: str):
    """Delete a task."""
    board = _get_board(ctx)
    try:
        board.delete_task(task_id)
    except TaskAPIError as e:
        _fail(e.message)
    console.print(f"[green]✓[/green] Deleted {task_id}")


@main.command()
@click.option("--refresh", type=float, default=1.0, show_default=True, help="Seconds per frame")
@click.pass_context
def watch(ctx: click.Context, refresh: float):
    """Show a live countdown for the active task."""
    board = _get_board(ctx)
    try:
        completed = watch_active_task(board, console, refresh_seconds=refresh)
    except TaskAPIError as e:
        _fail(e.message)
    if completed:
        console.print(f"[green]✓[/green] Completed {completed} task(s)")


@main.command()
@click.pass_context
def health(ctx: click.Context):
    """Check that the API server is reachable."""
    if TaskClient(ctx.obj["api_url"]).check_health():
        console.print(f"[green]✓[/green] API is up at {ctx.obj['api_url']}")
    else:
        _fail(f"API is not reachable at {ctx.obj['api_url']}")


@main.group()
def config():
    """Manage CLI configuration."""
    pass


@config.command("set-url")
@click.argument("url")
def config_set_url(url: str):
    """Save the API URL used by the CLI."""
    data = load_config()
    data["api_url"] = url.rstrip("/")
    save_config(data)
    console.print(f"[green]✓[/green] API URL saved to {CONFIG_FILE}")


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context):
    """Show the effective API URL."""
    console.print(f"API URL: {ctx.obj['api_url']}")
    console.print(f"Config file: {CONFIG_FILE}")
