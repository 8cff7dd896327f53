"""Live terminal view of the Active task's countdown.

Renders the timer with rich, reports remaining time back to the server
through the board, and completes the task (promoting the next one) when the
countdown reaches zero.
"""

import logging
import time
from collections.abc import Callable

from bubbletasks_models import Task
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from bubbletasks.board import TaskBoard
from bubbletasks.client import TaskAPIError
from bubbletasks.countdown import Countdown, Urgency, format_time, urgency_for

logger = logging.getLogger(__name__)

URGENCY_COLORS = {
    Urgency.NORMAL: "green",
    Urgency.WARNING: "yellow",
    Urgency.URGENT: "red",
}


def render_timer(task: Task, countdown: Countdown, now: float | None = None) -> Panel:
    """Build the panel for one frame of the countdown."""
    remaining = countdown.remaining_seconds(now)
    color = URGENCY_COLORS[urgency_for(remaining)]

    if countdown.is_finished:
        clock_text = Text("Done!", style="bold green")
        state = "finished"
    else:
        clock_text = Text(format_time(remaining), style=f"bold {color}")
        state = "running" if countdown.is_running else "paused"

    grid = Table.grid(padding=(0, 2))
    grid.add_column()
    grid.add_column(justify="right")
    grid.add_row(Text(task.title, style="bold"), clock_text)

    bar = ProgressBar(
        total=100,
        completed=countdown.progress_percent(now),
        complete_style=color,
        finished_style="green",
    )
    return Panel(
        Group(grid, bar),
        title=f"{task.status.value} • {task.est_minutes} minutes",
        subtitle=state,
        border_style=color,
    )


def _tick_reporter(board: TaskBoard, task_id: str) -> Callable[[int], None]:
    """Send remaining seconds to the server; a lost report is only logged."""

    def report(remaining_seconds: int) -> None:
        try:
            board.update_task(task_id, remaining_seconds=remaining_seconds)
        except TaskAPIError as e:
            logger.warning(f"Could not sync timer for {task_id}: {e}")

    return report


def watch_active_task(
    board: TaskBoard,
    console: Console,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
    refresh_seconds: float = 1.0,
    max_polls: int | None = None,
) -> int:
    """Count down the Active task, then each task promoted after it.

    Args:
        board: Board to fetch from and report to
        console: Console to render on
        clock: Wall clock (epoch seconds)
        sleep: Sleep function between frames
        refresh_seconds: Delay between frames
        max_polls: Stop after this many frames (None runs until the queue is empty)

    Returns:
        Number of tasks completed while watching

    Raises:
        TaskAPIError: If the task list cannot be fetched or a completion fails
    """
    board.fetch_tasks()
    if board.error:
        raise TaskAPIError(board.error)

    task = board.active_task()
    if task is None:
        console.print("[dim]No active task.[/dim]")
        return 0

    completed = 0
    polls = 0
    with Live(console=console, auto_refresh=False) as live:
        while task is not None:
            countdown = Countdown.from_task(
                task, on_tick=_tick_reporter(board, task.id), clock=clock
            )
            countdown.start()

            while True:
                countdown.poll()
                live.update(render_timer(task, countdown), refresh=True)
                if countdown.is_finished:
                    break
                polls += 1
                if max_polls is not None and polls >= max_polls:
                    return completed
                sleep(refresh_seconds)

            task = board.complete_and_activate_next(task.id)
            completed += 1

    return completed
