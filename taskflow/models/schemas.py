from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Task(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str = ""
    completed: bool = False
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


# Request bodies stay loosely typed so the service can answer with its own
# validation messages instead of pydantic's.
class TaskCreate(BaseModel):
    title: Any = None
    description: Any = None


class TaskUpdate(BaseModel):
    title: Any = None
    description: Any = None


class TaskStatusUpdate(BaseModel):
    completed: Any = None


class TaskDeletedResponse(BaseModel):
    message: str
    task: Task


class HealthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "healthy"
    timestamp: datetime
    tasks_count: int = Field(alias="tasksCount")


class SystemOverviewResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service: str
    timestamp: datetime
    tasks_count: int = Field(alias="tasksCount")
    upstream_health: dict[str, Any] = Field(alias="upstreamHealth")
