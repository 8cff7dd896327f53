"""Task lifecycle rules.

The service owns every rule the store itself does not know about:

1. A new task starts Active only when no other task is Active
2. At most one task is Active at any time
3. ``is_archived`` follows the status; ``archived_at`` marks the transition
4. Listing filters by scope and orders the result for display
5. A task created without an image reuses the last image of a task with
   the same template key
"""

import logging
import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from bubbletasks_models import (
    Task,
    TaskCreate,
    TaskScope,
    TaskStatus,
    TaskUpdate,
    to_template_key,
)

from bubbletasks.store import TaskNotFoundError, TaskRepository

logger = logging.getLogger(__name__)


class TaskConflictError(Exception):
    """The requested change would break the single-Active-task rule."""


def utc_now() -> datetime:
    return datetime.now(UTC)


def sort_active_tasks(tasks: list[Task]) -> list[Task]:
    """Oldest first, then by title."""
    return sorted(tasks, key=lambda t: (t.created_at, t.title))


def sort_archived_tasks(tasks: list[Task]) -> list[Task]:
    """Most recently archived first, then by title."""
    by_title = sorted(tasks, key=lambda t: t.title)
    return sorted(by_title, key=lambda t: t.archived_at or t.updated_at, reverse=True)


def find_next_upcoming(tasks: list[Task], exclude_id: str | None = None) -> Task | None:
    """Return the oldest Upcoming task, skipping ``exclude_id``."""
    for task in sort_active_tasks(tasks):
        if task.status == TaskStatus.UPCOMING and task.id != exclude_id:
            return task
    return None


def apply_archive_state(task: Task, now: datetime) -> Task:
    """Return ``task`` with is_archived/archived_at matching its status."""
    archived = task.status.is_archived
    if archived and not task.is_archived:
        return task.model_copy(update={"is_archived": True, "archived_at": now})
    if not archived and (task.is_archived or task.archived_at is not None):
        return task.model_copy(update={"is_archived": False, "archived_at": None})
    return task


class TaskService:
    """Create, update, delete and list tasks through a repository.

    Calls may arrive from several server threads; each read-check-write
    sequence runs under one lock so the single-Active rule holds.
    """

    def __init__(
        self,
        repository: TaskRepository,
        default_est_minutes: int = 25,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.default_est_minutes = default_est_minutes
        self._clock = clock
        self._lock = threading.Lock()

    def _active_task(self, exclude_id: str | None = None) -> Task | None:
        for task in self.repository.list_all():
            if task.status == TaskStatus.ACTIVE and task.id != exclude_id:
                return task
        return None

    def _template_image(self, template_key: str) -> str | None:
        """Image of the most recently updated task sharing ``template_key``."""
        if not template_key:
            return None
        matches = [
            task
            for task in self.repository.list_all()
            if task.template_key == template_key and task.image_data_url
        ]
        if not matches:
            return None
        return max(matches, key=lambda t: t.updated_at).image_data_url

    def get_task(self, task_id: str) -> Task:
        task = self.repository.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks(self, scope: TaskScope = TaskScope.ALL) -> list[Task]:
        with self._lock:
            tasks = [task for task in self.repository.list_all() if scope.matches(task)]
        if scope == TaskScope.ARCHIVED:
            return sort_archived_tasks(tasks)
        return sort_active_tasks(tasks)

    def create_task(self, payload: TaskCreate) -> Task:
        est_minutes = payload.est_minutes or self.default_est_minutes
        template_key = to_template_key(payload.title)

        with self._lock:
            now = self._clock()
            is_first = self._active_task() is None
            image_data_url = payload.image_data_url
            if image_data_url is None:
                image_data_url = self._template_image(template_key)

            task = Task(
                id=uuid.uuid4().hex,
                title=payload.title,
                est_minutes=est_minutes,
                status=TaskStatus.ACTIVE if is_first else TaskStatus.UPCOMING,
                image_data_url=image_data_url,
                template_key=template_key,
                remaining_seconds=est_minutes * 60 if is_first else None,
                timer_started_at=now if is_first else None,
                created_at=now,
                updated_at=now,
            )
            self.repository.insert(task)

        logger.info(f"Created task {task.id} ({task.status.value}): {task.title}")
        return task

    def update_task(self, task_id: str, payload: TaskUpdate) -> Task:
        changes = payload.changes()

        with self._lock:
            task = self.get_task(task_id)
            if changes.get("status") == TaskStatus.ACTIVE:
                current = self._active_task(exclude_id=task_id)
                if current is not None:
                    raise TaskConflictError(
                        f"Task {current.id} is already active; "
                        "finish it before activating another"
                    )

            now = self._clock()
            updated = task.model_copy(update={**changes, "updated_at": now})
            updated = apply_archive_state(updated, now)
            self.repository.update(updated)

        if "status" in changes and changes["status"] != task.status:
            logger.info(f"Task {task_id} status: {task.status.value} -> {updated.status.value}")
        else:
            logger.debug(f"Updated task {task_id}: {sorted(changes)}")
        return updated

    def delete_task(self, task_id: str) -> Task:
        with self._lock:
            task = self.repository.delete(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        logger.info(f"Deleted task {task_id}")
        return task
