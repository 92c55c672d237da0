from __future__ import annotations

import io
import json
from collections.abc import AsyncIterator, Callable

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from taskflow.config import get_settings
from taskflow.main import create_app
from taskflow.observability.logging import StructuredLogger
from taskflow.observability.metrics import MetricsRegistry
from taskflow.services.health_probe import set_probe_client


def read_log_records(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_SDK_DISABLED", "true")
    monkeypatch.setenv("OTEL_SERVICE_NAME", "taskflow-test")
    monkeypatch.setenv("PORT", "5000")
    get_settings.cache_clear()

    yield

    set_probe_client(None)
    get_settings.cache_clear()


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def log_records(log_stream: io.StringIO) -> Callable[[], list[dict]]:
    return lambda: read_log_records(log_stream)


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry(include_process_metrics=False)


@pytest.fixture
def app(metrics: MetricsRegistry, log_stream: io.StringIO) -> FastAPI:
    settings = get_settings()
    logger = StructuredLogger(settings.service_name, stream=log_stream, trace_context=lambda: None)
    return create_app(settings, metrics=metrics, logger=logger)


@pytest.fixture
async def api_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        # Serve the loopback health probe in-process.
        set_probe_client(client)
        yield client
