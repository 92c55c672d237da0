from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from taskflow.api.deps import get_logger, get_metrics
from taskflow.observability.logging import StructuredLogger, extract_error_fields
from taskflow.observability.metrics import MetricsRegistry


router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def metrics(
    registry: MetricsRegistry = Depends(get_metrics),
    logger: StructuredLogger = Depends(get_logger),
) -> Response:
    try:
        content_type, payload = registry.snapshot()
    except Exception as exc:
        logger.error("metrics_collection_failed", **extract_error_fields(exc))
        return JSONResponse(status_code=500, content={"error": "Unable to collect metrics"})
    return Response(content=payload, media_type=content_type)
