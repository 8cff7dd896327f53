"""Task storage layer.

Defines the TaskRepository protocol and a factory that builds the
backend selected in settings. Handlers only ever see the protocol.
"""

import logging
from typing import Protocol, runtime_checkable

from bubbletasks_models import Task

from bubbletasks.config import Settings, get_settings

logger = logging.getLogger(__name__)


class TaskStoreError(Exception):
    """Task storage failure."""


class TaskNotFoundError(TaskStoreError):
    """No task with the given id."""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


@runtime_checkable
class TaskRepository(Protocol):
    """Interface every task store implements."""

    def get(self, task_id: str) -> Task | None:
        """Return the task or None."""
        ...

    def list_all(self) -> list[Task]:
        """Return all tasks in insertion order."""
        ...

    def insert(self, task: Task) -> Task:
        """Add a new task and return it."""
        ...

    def update(self, task: Task) -> Task:
        """Replace an existing task. Raises TaskNotFoundError if absent."""
        ...

    def delete(self, task_id: str) -> Task | None:
        """Remove a task and return it, or None if absent."""
        ...


def create_repository(settings: Settings | None = None) -> TaskRepository:
    """Build the repository configured by ``storage_backend``.

    Raises:
        ValueError: If the backend name is unknown
    """
    from bubbletasks.store.json_file import JSONFileTaskRepository
    from bubbletasks.store.memory import InMemoryTaskRepository
    from bubbletasks.store.sql import SQLTaskRepository

    settings = settings or get_settings()
    backend = settings.storage_backend

    if backend == "memory":
        repository: TaskRepository = InMemoryTaskRepository()
    elif backend == "json":
        repository = JSONFileTaskRepository(settings.get_tasks_file())
    elif backend == "sql":
        repository = SQLTaskRepository(settings.get_database_url())
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info(f"Using {backend} task store")
    return repository


__all__ = [
    "TaskNotFoundError",
    "TaskRepository",
    "TaskStoreError",
    "create_repository",
]
