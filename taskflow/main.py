from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.sdk.trace import TracerProvider

from taskflow.api.errors import register_exception_handlers
from taskflow.api.metrics import router as metrics_router
from taskflow.api.system import router as system_router
from taskflow.api.tasks import router as tasks_router
from taskflow.config import Settings, get_settings
from taskflow.observability.logging import StructuredLogger, configure_logging
from taskflow.observability.metrics import MetricsRegistry
from taskflow.observability.middleware import ObservabilityMiddleware
from taskflow.observability.tracing import instrument_app, setup_tracing, shutdown_tracing
from taskflow.services.health_probe import close_probe_client
from taskflow.services.task_service import TaskStore


def create_app(
    settings: Settings | None = None,
    *,
    metrics: MetricsRegistry | None = None,
    logger: StructuredLogger | None = None,
    tracer_provider: TracerProvider | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    metrics = metrics or MetricsRegistry()
    logger = logger or StructuredLogger(settings.service_name)

    app = FastAPI(title="TaskFlow", version="0.1.0")
    app.state.settings = settings
    app.state.metrics = metrics
    app.state.logger = logger
    app.state.tasks = TaskStore()
    metrics.set_task_count(0)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Added last so it wraps CORS too: every response is observed exactly once.
    app.add_middleware(ObservabilityMiddleware, metrics=metrics, logger=logger)

    register_exception_handlers(app)
    app.include_router(system_router)
    app.include_router(metrics_router)
    app.include_router(tasks_router)

    if not settings.otel_sdk_disabled:
        instrument_app(app, tracer_provider=tracer_provider)

    @app.on_event("startup")
    async def _startup() -> None:
        setup_tracing(settings)
        logger.info(
            "server_started",
            port=settings.port,
            health_endpoint=f"http://localhost:{settings.port}/health",
            metrics_endpoint=f"http://localhost:{settings.port}/metrics",
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        logger.info("shutdown_started")
        await close_probe_client()
        shutdown_tracing()
        logger.info("shutdown_completed")

    return app


app = create_app()
