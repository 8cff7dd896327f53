"""HTTP client for the BubbleTasks REST API."""

import logging
import mimetypes
from pathlib import Path
from typing import Any

import requests
from bubbletasks_models import Task, TaskScope, TaskStatus
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3001/api"


class TaskAPIError(Exception):
    """API call failed or returned {success: false}."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _serialize_update(updates: dict[str, Any]) -> dict[str, Any]:
    """Convert snake_case update fields into the camelCase request body."""
    body = {}
    for name, value in updates.items():
        key = to_camel(name)
        if isinstance(value, TaskStatus):
            value = value.value
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        body[key] = value
    return body


class TaskClient:
    """Thin wrapper around the task endpoints.

    Every method returns parsed models and raises TaskAPIError with the
    server's message on failure.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 10,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, fallback_error: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{fallback_error}: {e}")
            raise TaskAPIError(f"{fallback_error}: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            raise TaskAPIError(
                f"{fallback_error}: unexpected response ({resp.status_code})",
                status_code=resp.status_code,
            ) from None

        if not isinstance(data, dict) or not data.get("success"):
            message = data.get("error") if isinstance(data, dict) else None
            raise TaskAPIError(message or fallback_error, status_code=resp.status_code)
        return data

    def list_tasks(self, scope: TaskScope | str = TaskScope.ALL) -> list[Task]:
        scope = TaskScope(scope)
        data = self._request(
            "GET", "/tasks", "Failed to fetch tasks", params={"scope": scope.value}
        )
        return [Task.model_validate(item) for item in data.get("tasks", [])]

    def create_task(
        self,
        title: str,
        est_minutes: int | None = None,
        image_data_url: str | None = None,
    ) -> Task:
        body: dict[str, Any] = {"title": title}
        if est_minutes is not None:
            body["estMinutes"] = est_minutes
        if image_data_url is not None:
            body["imageDataUrl"] = image_data_url
        data = self._request("POST", "/tasks", "Failed to create task", json=body)
        return Task.model_validate(data["task"])

    def update_task(self, task_id: str, **updates: Any) -> Task:
        """Update a task.

        Args:
            task_id: Task to update
            **updates: snake_case Task fields, e.g. status=TaskStatus.COMPLETED
        """
        data = self._request(
            "PUT", f"/tasks/{task_id}", "Failed to update task", json=_serialize_update(updates)
        )
        return Task.model_validate(data["task"])

    def delete_task(self, task_id: str) -> Task:
        data = self._request("DELETE", f"/tasks/{task_id}", "Failed to delete task")
        return Task.model_validate(data["task"])

    def upload_image(self, path: Path | str) -> str:
        """Upload an image file and return the URL it is served from."""
        path = Path(path)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        with open(path, "rb") as f:
            data = self._request(
                "POST",
                "/upload",
                "Failed to upload image",
                files={"image": (path.name, f, content_type)},
            )
        return data["imageUrl"]

    def check_health(self) -> bool:
        try:
            return bool(self._request("GET", "/health", "Health check failed").get("success"))
        except TaskAPIError as e:
            logger.warning(f"Server health check failed: {e}")
            return False
