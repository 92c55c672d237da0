import io
import json
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from taskflow.observability.logging import StructuredLogger
from taskflow.observability.metrics import MetricsRegistry
from taskflow.observability.middleware import ObservabilityMiddleware, level_for_status
from taskflow.observability.tracing import TraceContext


ACTIVE = TraceContext(trace_id="0af7651916cd43dd8448eb211c80319c", span_id="b7ad6b7169203331")


async def ok_app(scope: dict[str, Any], receive: Any, send: Any) -> None:
    await send({"type": "http.response.start", "status": 200, "headers": [(b"content-type", b"text/plain")]})
    await send({"type": "http.response.body", "body": b"ok"})


async def not_found_app(scope: dict[str, Any], receive: Any, send: Any) -> None:
    await send({"type": "http.response.start", "status": 404, "headers": []})
    await send({"type": "http.response.body", "body": b""})


async def streaming_app(scope: dict[str, Any], receive: Any, send: Any) -> None:
    await send({"type": "http.response.start", "status": 200, "headers": []})
    await send({"type": "http.response.body", "body": b"a", "more_body": True})
    await send({"type": "http.response.body", "body": b"b", "more_body": True})
    await send({"type": "http.response.body", "body": b"c"})


async def failing_app(scope: dict[str, Any], receive: Any, send: Any) -> None:
    raise RuntimeError("boom")


class ExplodingMetrics(MetricsRegistry):
    def record_request(self, *args: Any, **kwargs: Any) -> None:
        raise RuntimeError("registry broken")


def _build(app: Any, *, metrics: MetricsRegistry | None = None, trace_context: Any = lambda: None):
    stream = io.StringIO()
    metrics = metrics or MetricsRegistry(include_process_metrics=False)
    logger = StructuredLogger("svc", stream=stream, trace_context=lambda: None)
    middleware = ObservabilityMiddleware(app, metrics=metrics, logger=logger, trace_context=trace_context)
    return middleware, metrics, stream


def _records(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines()]


async def _get(app: Any, path: str, **kwargs: Any):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(path, **kwargs)


@pytest.mark.parametrize(("status", "level"), [(200, "info"), (302, "info"), (400, "warn"), (499, "warn"), (500, "error"), (503, "error")])
def test_level_for_status(status: int, level: str) -> None:
    assert level_for_status(status) == level


async def test_successful_request_is_measured_and_logged() -> None:
    middleware, metrics, stream = _build(ok_app)

    resp = await _get(middleware, "/api/tasks/42", headers={"user-agent": "pytest-agent"})
    assert resp.status_code == 200
    assert resp.text == "ok"

    labels = {"method": "GET", "route": "/api/tasks/:id", "status_code": "200"}
    assert metrics.sample_value("taskflow_http_requests_total", labels) == 1
    assert metrics.sample_value("taskflow_http_errors_total", labels) == 0

    records = _records(stream)
    assert len(records) == 1
    record = records[0]
    assert record["message"] == "http_request_completed"
    assert record["level"] == "info"
    assert record["method"] == "GET"
    assert record["route"] == "/api/tasks/:id"
    assert record["status_code"] == 200
    assert record["user_agent"] == "pytest-agent"
    assert record["remote_address"] == "127.0.0.1"
    assert isinstance(record["duration_ms"], float)
    assert record["duration_ms"] >= 0
    assert round(record["duration_ms"], 2) == record["duration_ms"]


async def test_request_id_is_echoed_or_generated() -> None:
    middleware, _, stream = _build(ok_app)

    given = await _get(middleware, "/", headers={"x-request-id": "req-123"})
    generated = await _get(middleware, "/")

    assert given.headers["x-request-id"] == "req-123"
    assert generated.headers["x-request-id"]
    assert [r["request_id"] for r in _records(stream)][0] == "req-123"


async def test_client_errors_log_at_warn() -> None:
    middleware, metrics, stream = _build(not_found_app)

    resp = await _get(middleware, "/nope")
    assert resp.status_code == 404

    labels = {"method": "GET", "route": "/nope", "status_code": "404"}
    assert metrics.sample_value("taskflow_http_errors_total", labels) == 1
    assert _records(stream)[0]["level"] == "warn"


async def test_app_failure_is_recorded_as_500() -> None:
    middleware, metrics, stream = _build(failing_app)

    resp = await _get(middleware, "/explode")
    assert resp.status_code == 500

    labels = {"method": "GET", "route": "/explode", "status_code": "500"}
    assert metrics.sample_value("taskflow_http_requests_total", labels) == 1
    assert metrics.sample_value("taskflow_http_errors_total", labels) == 1
    records = _records(stream)
    assert len(records) == 1
    assert records[0]["level"] == "error"


async def test_streamed_response_completes_once() -> None:
    middleware, metrics, stream = _build(streaming_app)

    resp = await _get(middleware, "/stream")
    assert resp.text == "abc"

    labels = {"method": "GET", "route": "/stream", "status_code": "200"}
    assert metrics.sample_value("taskflow_http_requests_total", labels) == 1
    assert len(_records(stream)) == 1


async def test_duplicate_completion_signals_count_once() -> None:
    async def double_finish_app(scope: dict[str, Any], receive: Any, send: Any) -> None:
        await send({"type": "http.response.start", "status": 200, "headers": []})
        await send({"type": "http.response.body", "body": b"done"})
        # A misbehaving layer signalling completion a second time.
        await send({"type": "http.response.body", "body": b""})

    middleware, metrics, stream = _build(double_finish_app)
    await _get(middleware, "/twice")

    labels = {"method": "GET", "route": "/twice", "status_code": "200"}
    assert metrics.sample_value("taskflow_http_requests_total", labels) == 1
    assert len(_records(stream)) == 1


async def test_trace_snapshot_is_attached_to_log() -> None:
    middleware, _, stream = _build(ok_app, trace_context=lambda: ACTIVE)

    await _get(middleware, "/")

    record = _records(stream)[0]
    assert record["trace_id"] == ACTIVE.trace_id
    assert record["span_id"] == ACTIVE.span_id


async def test_unavailable_tracing_does_not_fail_request() -> None:
    def broken() -> TraceContext:
        raise RuntimeError("no tracer")

    middleware, _, stream = _build(ok_app, trace_context=broken)

    resp = await _get(middleware, "/")
    assert resp.status_code == 200
    assert "trace_id" not in _records(stream)[0]


async def test_metrics_failure_does_not_alter_response() -> None:
    middleware, _, stream = _build(ok_app, metrics=ExplodingMetrics(include_process_metrics=False))

    resp = await _get(middleware, "/")

    assert resp.status_code == 200
    assert resp.text == "ok"
    assert stream.getvalue() == ""


async def test_non_http_scopes_pass_through() -> None:
    seen: list[str] = []

    async def lifespan_app(scope: dict[str, Any], receive: Any, send: Any) -> None:
        seen.append(scope["type"])

    middleware, metrics, stream = _build(lifespan_app)
    await middleware({"type": "lifespan"}, None, None)

    assert seen == ["lifespan"]
    assert stream.getvalue() == ""
