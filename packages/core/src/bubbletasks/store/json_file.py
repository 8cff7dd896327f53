"""JSON file task store.

Tasks live in a single JSON array of camelCase records. The whole file is
loaded once and rewritten after every mutation through a temporary file
that replaces the original.
"""

import json
import logging
from pathlib import Path

from bubbletasks_models import Task
from pydantic import ValidationError

from bubbletasks.store import TaskNotFoundError, TaskStoreError

logger = logging.getLogger(__name__)


class JSONFileTaskRepository:
    """Repository persisted to a JSON file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._tasks: list[Task] = self._load()

    def _load(self) -> list[Task]:
        if not self.path.exists():
            logger.info(f"No task file at {self.path}, starting fresh")
            return []

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise TaskStoreError(f"Task file {self.path} is not valid JSON: {e}") from e

        if not isinstance(data, list):
            raise TaskStoreError(f"Task file {self.path} must contain a JSON array")

        try:
            tasks = [Task.model_validate(item) for item in data]
        except ValidationError as e:
            raise TaskStoreError(f"Task file {self.path} has invalid records: {e}") from e

        logger.info(f"Loaded {len(tasks)} tasks from {self.path}")
        return tasks

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        records = [task.model_dump(mode="json", by_alias=True) for task in self._tasks]
        # A failed write leaves the previous file intact
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2)
        tmp_path.replace(self.path)
        logger.debug(f"Saved {len(records)} tasks to {self.path}")

    def _index(self, task_id: str) -> int | None:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i
        return None

    def get(self, task_id: str) -> Task | None:
        index = self._index(task_id)
        return None if index is None else self._tasks[index]

    def list_all(self) -> list[Task]:
        return list(self._tasks)

    def insert(self, task: Task) -> Task:
        self._tasks.append(task)
        self._save()
        return task

    def update(self, task: Task) -> Task:
        index = self._index(task.id)
        if index is None:
            raise TaskNotFoundError(task.id)
        self._tasks[index] = task
        self._save()
        return task

    def delete(self, task_id: str) -> Task | None:
        index = self._index(task_id)
        if index is None:
            return None
        task = self._tasks.pop(index)
        self._save()
        return task
