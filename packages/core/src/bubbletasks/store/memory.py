"""In-process task store."""

from bubbletasks_models import Task

from bubbletasks.store import TaskNotFoundError


class InMemoryTaskRepository:
    """Dict-backed repository. Contents are lost when the process exits."""

    def __init__(self, tasks: list[Task] | None = None):
        self._tasks: dict[str, Task] = {task.id: task for task in tasks or []}

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def list_all(self) -> list[Task]:
        return list(self._tasks.values())

    def insert(self, task: Task) -> Task:
        self._tasks[task.id] = task
        return task

    def update(self, task: Task) -> Task:
        if task.id not in self._tasks:
            raise TaskNotFoundError(task.id)
        self._tasks[task.id] = task
        return task

    def delete(self, task_id: str) -> Task | None:
        return self._tasks.pop(task_id, None)
