"""Shared Pydantic models for BubbleTasks."""

from bubbletasks_models.api import (
    Envelope,
    ErrorEnvelope,
    HealthEnvelope,
    TaskEnvelope,
    TaskListEnvelope,
    UploadEnvelope,
)
from bubbletasks_models.task import (
    Task,
    TaskCreate,
    TaskScope,
    TaskStatus,
    TaskUpdate,
    to_template_key,
)

__version__ = "0.1.0"

__all__ = [
    # Task
    "Task",
    "TaskStatus",
    "TaskScope",
    "TaskCreate",
    "TaskUpdate",
    "to_template_key",
    # Envelopes
    "Envelope",
    "TaskEnvelope",
    "TaskListEnvelope",
    "UploadEnvelope",
    "HealthEnvelope",
    "ErrorEnvelope",
]
