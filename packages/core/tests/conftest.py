"""Shared fixtures: a deterministic clock and a client backed by a real TaskService."""

from datetime import UTC, datetime, timedelta

import pytest
from bubbletasks_models import TaskCreate, TaskScope, TaskUpdate

from bubbletasks.client import TaskAPIError
from bubbletasks.lifecycle import TaskConflictError, TaskService
from bubbletasks.store import TaskNotFoundError
from bubbletasks.store.memory import InMemoryTaskRepository


class SteppingClock:
    """Returns a timestamp one second later on every call."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 1, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class ServiceBackedClient:
    """Stands in for TaskClient, routing calls straight into a TaskService."""

    def __init__(self, service: TaskService):
        self.service = service
        self.update_calls: list[tuple[str, dict]] = []
        self.fail_updates_for: set[str] = set()
        self.fail_lists = False

    def list_tasks(self, scope=TaskScope.ALL):
        if self.fail_lists:
            raise TaskAPIError("Failed to fetch tasks", status_code=500)
        return self.service.list_tasks(TaskScope(scope))

    def create_task(self, title, est_minutes=None, image_data_url=None):
        try:
            payload = TaskCreate(title=title, est_minutes=est_minutes, image_data_url=image_data_url)
        except ValueError as e:
            raise TaskAPIError(str(e), status_code=400) from e
        return self.service.create_task(payload)

    def update_task(self, task_id, **updates):
        self.update_calls.append((task_id, updates))
        if task_id in self.fail_updates_for:
            raise TaskAPIError("Internal server error", status_code=500)
        try:
            return self.service.update_task(task_id, TaskUpdate(**updates))
        except TaskNotFoundError as e:
            raise TaskAPIError("Task not found", status_code=404) from e
        except TaskConflictError as e:
            raise TaskAPIError(str(e), status_code=409) from e

    def delete_task(self, task_id):
        try:
            return self.service.delete_task(task_id)
        except TaskNotFoundError as e:
            raise TaskAPIError("Task not found", status_code=404) from e

    def upload_image(self, path):
        return f"http://localhost:3001/uploads/{path.name}"

    def check_health(self):
        return True


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def service(clock):
    return TaskService(InMemoryTaskRepository(), default_est_minutes=25, clock=clock)


@pytest.fixture
def fake_client(service):
    return ServiceBackedClient(service)
