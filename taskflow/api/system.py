from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from taskflow.api.deps import get_app_settings, get_logger, get_task_store
from taskflow.config import Settings
from taskflow.models.schemas import HealthResponse, SystemOverviewResponse
from taskflow.observability.logging import StructuredLogger, extract_error_fields
from taskflow.services.health_probe import UpstreamHealthError, fetch_internal_health
from taskflow.services.task_service import TaskStore

router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse)
async def health(store: TaskStore = Depends(get_task_store)) -> HealthResponse:
    return HealthResponse(status="healthy", timestamp=datetime.now(timezone.utc), tasks_count=len(store))


@router.get("/api/system/overview", response_model=SystemOverviewResponse)
async def system_overview(
    store: TaskStore = Depends(get_task_store),
    logger: StructuredLogger = Depends(get_logger),
    settings: Settings = Depends(get_app_settings),
) -> SystemOverviewResponse:
    try:
        upstream_health = await fetch_internal_health(settings)
    except UpstreamHealthError as exc:
        # Cause goes to the log only; the client gets a generic message.
        logger.error("system_overview_failed", **extract_error_fields(exc))
        raise HTTPException(status_code=502, detail="Unable to retrieve internal health state") from exc

    return SystemOverviewResponse(
        service=settings.service_name,
        timestamp=datetime.now(timezone.utc),
        tasks_count=len(store),
        upstream_health=upstream_health,
    )
