from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from taskflow.models.schemas import Task

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_DELAY_MS = 5000

logger = logging.getLogger(__name__)


class TaskValidationError(ValueError):
    pass


class TaskNotFoundError(LookupError):
    def __init__(self, task_id: str) -> None:
        super().__init__("Task not found")
        self.task_id = task_id


def validate_task_payload(title: Any, description: Any) -> str | None:
    if not isinstance(title, str) or not title.strip():
        return "Title is required"

    if len(title.strip()) > MAX_TITLE_LENGTH:
        return f"Title must be {MAX_TITLE_LENGTH} characters or less"

    if isinstance(description, str) and len(description) > MAX_DESCRIPTION_LENGTH:
        return f"Description must be {MAX_DESCRIPTION_LENGTH} characters or less"

    return None


def parse_delay_ms(value: Any) -> int:
    """Clamp the `delay_ms` latency hook to [0, MAX_DELAY_MS]; junk means no delay."""

    if value is None:
        return 0
    try:
        delay = float(value)
    except (TypeError, ValueError):
        return 0
    if delay != delay or delay <= 0:
        return 0
    return int(min(delay, MAX_DELAY_MS))


def _clean_description(description: Any) -> str:
    return description.strip() if isinstance(description, str) else ""


class TaskStore:
    """Process-local task list (resets on restart)."""

    def __init__(self) -> None:
        self._tasks: list[Task] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def _index_of(self, task_id: str) -> int:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        raise TaskNotFoundError(task_id)

    def create(self, title: Any, description: Any = None) -> Task:
        error = validate_task_payload(title, description)
        if error:
            raise TaskValidationError(error)

        now = datetime.now(timezone.utc)
        task = Task(
            id=str(uuid.uuid4()),
            title=title.strip(),
            description=_clean_description(description),
            completed=False,
            created_at=now,
            updated_at=now,
        )
        self._tasks.append(task)
        logger.debug("task.created", extra={"task_id": task.id})
        return task

    def list_newest_first(self) -> list[Task]:
        return sorted(self._tasks, key=lambda task: task.created_at, reverse=True)

    def set_completed(self, task_id: str, completed: Any) -> Task:
        index = self._index_of(task_id)
        if not isinstance(completed, bool):
            raise TaskValidationError("Completed status must be a boolean")

        task = self._tasks[index].model_copy(
            update={"completed": completed, "updated_at": datetime.now(timezone.utc)}
        )
        self._tasks[index] = task
        return task

    def update(self, task_id: str, title: Any, description: Any = None) -> Task:
        index = self._index_of(task_id)
        error = validate_task_payload(title, description)
        if error:
            raise TaskValidationError(error)

        task = self._tasks[index].model_copy(
            update={
                "title": title.strip(),
                "description": _clean_description(description),
                "updated_at": datetime.now(timezone.utc),
            }
        )
        self._tasks[index] = task
        return task

    def delete(self, task_id: str) -> Task:
        return self._tasks.pop(self._index_of(task_id))
