"""Response envelopes for the REST API.

Every response carries ``success``; failures carry ``error`` instead of data.
"""

from datetime import datetime

from pydantic import Field

from bubbletasks_models.task import CamelModel, Task


class Envelope(CamelModel):
    success: bool = True


class TaskEnvelope(Envelope):
    task: Task


class TaskListEnvelope(Envelope):
    tasks: list[Task] = Field(default_factory=list)


class UploadEnvelope(Envelope):
    image_url: str = Field(..., description="URL the uploaded image is served from")
    filename: str


class HealthEnvelope(Envelope):
    message: str
    timestamp: datetime
    version: str


class ErrorEnvelope(Envelope):
    success: bool = False
    error: str
