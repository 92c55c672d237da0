from __future__ import annotations

import asyncio

from fastapi import APIRouter, Body, Depends, HTTPException

from taskflow.api.deps import get_app_settings, get_metrics, get_task_store
from taskflow.config import Settings
from taskflow.models.schemas import Task, TaskCreate, TaskDeletedResponse, TaskStatusUpdate, TaskUpdate
from taskflow.observability.metrics import MetricsRegistry
from taskflow.services.task_service import (
    TaskNotFoundError,
    TaskStore,
    TaskValidationError,
    parse_delay_ms,
)

router = APIRouter(prefix="/api", tags=["tasks"])


@router.post("/tasks", response_model=Task, status_code=201)
async def create_task(
    payload: TaskCreate = Body(default_factory=TaskCreate),
    store: TaskStore = Depends(get_task_store),
    metrics: MetricsRegistry = Depends(get_metrics),
) -> Task:
    try:
        task = store.create(title=payload.title, description=payload.description)
    except TaskValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    metrics.set_task_count(len(store))
    return task


@router.get("/tasks", response_model=list[Task])
async def list_tasks(
    delay_ms: str | None = None,
    store: TaskStore = Depends(get_task_store),
    settings: Settings = Depends(get_app_settings),
) -> list[Task]:
    # Latency injection hook for dashboards and alert testing.
    if settings.enable_delay_injection:
        delay = parse_delay_ms(delay_ms)
        if delay > 0:
            await asyncio.sleep(delay / 1000.0)

    return store.list_newest_first()


@router.patch("/tasks/{task_id}", response_model=Task)
async def update_task_status(
    task_id: str,
    payload: TaskStatusUpdate = Body(default_factory=TaskStatusUpdate),
    store: TaskStore = Depends(get_task_store),
) -> Task:
    try:
        return store.set_completed(task_id, payload.completed)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TaskValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.put("/tasks/{task_id}", response_model=Task)
async def update_task(
    task_id: str,
    payload: TaskUpdate = Body(default_factory=TaskUpdate),
    store: TaskStore = Depends(get_task_store),
) -> Task:
    try:
        return store.update(task_id, title=payload.title, description=payload.description)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TaskValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/tasks/{task_id}", response_model=TaskDeletedResponse)
async def delete_task(
    task_id: str,
    store: TaskStore = Depends(get_task_store),
    metrics: MetricsRegistry = Depends(get_metrics),
) -> TaskDeletedResponse:
    try:
        task = store.delete(task_id)
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    metrics.set_task_count(len(store))
    return TaskDeletedResponse(message="Task deleted successfully", task=task)
