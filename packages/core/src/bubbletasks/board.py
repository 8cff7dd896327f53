"""Client-side state container for the task list.

TaskBoard mirrors the server's tasks, owns the mutation methods, and tracks
loading / mutating / error flags for whatever view holds a reference to it.
Every mutation goes to the server first and then replaces the local record
with the server's copy.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from bubbletasks_models import Task, TaskScope, TaskStatus

from bubbletasks.client import TaskAPIError, TaskClient
from bubbletasks.lifecycle import (
    find_next_upcoming,
    sort_active_tasks,
    sort_archived_tasks,
    utc_now,
)

logger = logging.getLogger(__name__)


def _error_message(error: Exception, fallback: str) -> str:
    if isinstance(error, TaskAPIError):
        return error.message
    return str(error) or fallback


def _without(tasks: list[Task], task_id: str) -> list[Task]:
    return [task for task in tasks if task.id != task_id]


class TaskBoard:
    """Local mirror of the task list, backed by a TaskClient."""

    def __init__(self, client: TaskClient, clock: Callable[[], datetime] = utc_now):
        self.client = client
        self._clock = clock

        self.tasks: list[Task] = []
        self.archived_tasks: list[Task] = []
        self.is_loading = False
        self.is_loading_archive = False
        self.is_mutating = False
        self.error: str | None = None

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch_tasks(self) -> None:
        """Reload active tasks. Failures are recorded in ``error``, not raised."""
        self.is_loading = True
        self.error = None
        try:
            self.tasks = sort_active_tasks(self.client.list_tasks(TaskScope.ACTIVE))
        except TaskAPIError as e:
            self.error = _error_message(e, "Failed to fetch tasks")
        finally:
            self.is_loading = False

    def fetch_archived_tasks(self) -> None:
        """Reload archived tasks. Failures are recorded in ``error``, not raised."""
        self.is_loading_archive = True
        self.error = None
        try:
            self.archived_tasks = sort_archived_tasks(
                self.client.list_tasks(TaskScope.ARCHIVED)
            )
        except TaskAPIError as e:
            self.error = _error_message(e, "Failed to fetch archived tasks")
        finally:
            self.is_loading_archive = False

    # ------------------------------------------------------------------
    # Local bookkeeping
    # ------------------------------------------------------------------

    def _apply(self, task: Task) -> None:
        """Replace the local copy of ``task`` and file it by archive state."""
        archived = _without(self.archived_tasks, task.id)
        if task.is_archived:
            self.tasks = _without(self.tasks, task.id)
            self.archived_tasks = sort_archived_tasks([task, *archived])
            return

        self.tasks = sort_active_tasks([*_without(self.tasks, task.id), task])
        self.archived_tasks = archived

    def _begin_mutation(self) -> None:
        self.is_mutating = True
        self.error = None

    def _fail_mutation(self, error: Exception, fallback: str) -> None:
        self.error = _error_message(error, fallback)
        logger.warning(f"{fallback}: {self.error}")

    # ------------------------------------------------------------------
    # Mutations (record the error, then re-raise for the caller)
    # ------------------------------------------------------------------

    def add_task(
        self, title: str, est_minutes: int | None = None, image_data_url: str | None = None
    ) -> Task:
        self._begin_mutation()
        try:
            task = self.client.create_task(title, est_minutes, image_data_url)
            self._apply(task)
            return task
        except TaskAPIError as e:
            self._fail_mutation(e, "Failed to create task")
            raise
        finally:
            self.is_mutating = False

    def update_task(self, task_id: str, **updates) -> Task:
        self._begin_mutation()
        try:
            task = self.client.update_task(task_id, **updates)
            self._apply(task)
            return task
        except TaskAPIError as e:
            self._fail_mutation(e, "Failed to update task")
            raise
        finally:
            self.is_mutating = False

    def delete_task(self, task_id: str) -> None:
        self._begin_mutation()
        try:
            self.client.delete_task(task_id)
            self.tasks = _without(self.tasks, task_id)
            self.archived_tasks = _without(self.archived_tasks, task_id)
        except TaskAPIError as e:
            self._fail_mutation(e, "Failed to delete task")
            raise
        finally:
            self.is_mutating = False

    def complete_and_activate_next(self, task_id: str) -> Task | None:
        """Complete a task and promote the oldest Upcoming one.

        Returns the newly activated task, or None when nothing was waiting.
        Finishing a task that is not Active promotes nothing.
        The two updates are separate calls: if the second fails the board
        keeps the completed task and ends up with no Active task.
        """
        return self._finish_and_activate_next(
            task_id,
            {"status": TaskStatus.COMPLETED, "remaining_seconds": 0},
            "Failed to complete task",
        )

    def cancel_and_activate_next(self, task_id: str) -> Task | None:
        """Cancel a task and promote the oldest Upcoming one."""
        return self._finish_and_activate_next(
            task_id,
            {"status": TaskStatus.CANCELLED},
            "Failed to cancel task",
        )

    def _finish_and_activate_next(self, task_id: str, updates: dict, fallback: str) -> Task | None:
        self._begin_mutation()
        try:
            candidates = self.sorted_tasks()
            was_active = any(
                t.id == task_id and t.status == TaskStatus.ACTIVE for t in candidates
            )
            finished = self.client.update_task(task_id, **updates)
            self._apply(finished)

            if not was_active:
                logger.info(f"Task {task_id} finished while not active; nothing promoted")
                return None

            next_task = find_next_upcoming(candidates, exclude_id=task_id)
            if next_task is None:
                logger.info(f"Task {task_id} finished; no upcoming tasks")
                return None

            activated = self.client.update_task(
                next_task.id,
                status=TaskStatus.ACTIVE,
                remaining_seconds=next_task.full_duration_seconds,
                timer_started_at=self._clock(),
            )
            self._apply(activated)
            logger.info(f"Task {task_id} finished; activated {activated.id}")
            return activated
        except TaskAPIError as e:
            self._fail_mutation(e, fallback)
            raise
        finally:
            self.is_mutating = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def sorted_tasks(self) -> list[Task]:
        return sort_active_tasks(self.tasks)

    def active_task(self) -> Task | None:
        for task in self.tasks:
            if task.status == TaskStatus.ACTIVE:
                return task
        return None

    def clear_error(self) -> None:
        self.error = None
