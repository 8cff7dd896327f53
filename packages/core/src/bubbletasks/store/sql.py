"""SQL task store.

One ``tasks`` table accessed through SQLAlchemy Core. All values travel as
bound parameters. Timestamps are stored as ISO-8601 strings so that the
UTC offset survives backends without timezone-aware columns (SQLite).
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from bubbletasks_models import Task
from sqlalchemy import (
    Boolean,
    Column,
    Engine,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from bubbletasks.store import TaskNotFoundError, TaskStoreError

logger = logging.getLogger(__name__)

metadata = MetaData()

tasks_table = Table(
    "tasks",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("title", Text, nullable=False),
    Column("est_minutes", Integer, nullable=False),
    Column("status", String(16), nullable=False),
    Column("image_data_url", Text, nullable=True),
    Column("template_key", Text, nullable=False, default=""),
    Column("remaining_seconds", Integer, nullable=True),
    Column("timer_started_at", String(40), nullable=True),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
    Column("is_archived", Boolean, nullable=False, default=False),
    Column("archived_at", String(40), nullable=True),
)

_TIMESTAMP_COLUMNS = ("timer_started_at", "created_at", "updated_at", "archived_at")


def _task_to_row(task: Task) -> dict[str, Any]:
    """Convert Task to a row dict keyed by column name."""
    row = task.model_dump()
    row["status"] = task.status.value
    for name in _TIMESTAMP_COLUMNS:
        value: datetime | None = row[name]
        row[name] = value.isoformat() if value is not None else None
    return row


def _row_to_task(row: Any) -> Task:
    """Convert a result row back into a Task."""
    return Task.model_validate(dict(row._mapping))


def _ensure_sqlite_dir(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


class SQLTaskRepository:
    """Repository persisted to a single SQL table."""

    def __init__(self, database_url: str | None = None, engine: Engine | None = None):
        if engine is None:
            if not database_url:
                raise TaskStoreError("No database URL configured")
            _ensure_sqlite_dir(database_url)
            engine = create_engine(database_url)
        self.engine = engine
        metadata.create_all(self.engine)
        logger.info(f"SQL task store ready ({self.engine.url.get_backend_name()})")

    def get(self, task_id: str) -> Task | None:
        stmt = select(tasks_table).where(tasks_table.c.id == task_id)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).first()
        except SQLAlchemyError as e:
            raise TaskStoreError(f"Failed to read task {task_id}: {e}") from e
        return _row_to_task(row) if row is not None else None

    def list_all(self) -> list[Task]:
        stmt = select(tasks_table).order_by(tasks_table.c.created_at, tasks_table.c.id)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as e:
            raise TaskStoreError(f"Failed to list tasks: {e}") from e
        return [_row_to_task(row) for row in rows]

    def insert(self, task: Task) -> Task:
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(tasks_table).values(**_task_to_row(task)))
        except SQLAlchemyError as e:
            raise TaskStoreError(f"Failed to insert task {task.id}: {e}") from e
        logger.debug(f"Inserted task {task.id}")
        return task

    def update(self, task: Task) -> Task:
        row = _task_to_row(task)
        task_id = row.pop("id")
        stmt = update(tasks_table).where(tasks_table.c.id == task_id).values(**row)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as e:
            raise TaskStoreError(f"Failed to update task {task_id}: {e}") from e
        if result.rowcount == 0:
            raise TaskNotFoundError(task_id)
        logger.debug(f"Updated task {task_id}")
        return task

    def delete(self, task_id: str) -> Task | None:
        existing = self.get(task_id)
        if existing is None:
            return None
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(tasks_table).where(tasks_table.c.id == task_id))
        except SQLAlchemyError as e:
            raise TaskStoreError(f"Failed to delete task {task_id}: {e}") from e
        logger.debug(f"Deleted task {task_id}")
        return existing
