from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Callable

from starlette.datastructures import Headers, MutableHeaders

from taskflow.observability.logging import StructuredLogger
from taskflow.observability.metrics import MetricsRegistry
from taskflow.observability.paths import normalize_path
from taskflow.observability.tracing import TraceContext, TraceContextAccessor, current_trace_context


# Failures inside the observation itself go here, never to the client.
fallback_logger = logging.getLogger(__name__)


def level_for_status(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code >= 400:
        return "warn"
    return "info"


@dataclass
class RequestObservation:
    method: str
    path: str | None
    remote_address: str | None
    user_agent: str
    request_id: str
    trace: TraceContext | None
    started_at: float = field(default_factory=perf_counter)
    status_code: int = 500
    completed: bool = False

    def complete(self) -> bool:
        """Mark the observation as finished; only the first call returns True."""

        if self.completed:
            return False
        self.completed = True
        return True

    def duration_seconds(self) -> float:
        return max(perf_counter() - self.started_at, 0.0)


class ObservabilityMiddleware:
    """Times every HTTP request, records RED metrics and logs one access line."""

    def __init__(
        self,
        app: Callable[..., Any],
        *,
        metrics: MetricsRegistry,
        logger: StructuredLogger,
        trace_context: TraceContextAccessor = current_trace_context,
    ) -> None:
        self.app = app
        self.metrics = metrics
        self.logger = logger
        self._trace_context = trace_context

    def _capture_trace(self) -> TraceContext | None:
        try:
            return self._trace_context()
        except Exception:
            fallback_logger.debug("trace_context_unavailable", exc_info=True)
            return None

    def _start(self, scope: dict[str, Any]) -> RequestObservation:
        headers = Headers(scope=scope)
        client = scope.get("client")
        return RequestObservation(
            method=scope.get("method", ""),
            path=scope.get("path"),
            remote_address=client[0] if client else None,
            user_agent=headers.get("user-agent") or "unknown",
            request_id=headers.get("x-request-id") or str(uuid.uuid4()),
            trace=self._capture_trace(),
        )

    def _finish(self, observation: RequestObservation) -> None:
        if not observation.complete():
            return

        try:
            duration_seconds = observation.duration_seconds()
            route = normalize_path(observation.path)

            # Update metrics first so they update even if logging misbehaves.
            self.metrics.record_request(
                method=observation.method,
                route=route,
                status_code=observation.status_code,
                duration_seconds=duration_seconds,
            )

            self.logger.log(
                level_for_status(observation.status_code),
                "http_request_completed",
                {
                    "method": observation.method,
                    "route": route,
                    "status_code": observation.status_code,
                    "duration_ms": round(duration_seconds * 1000.0, 2),
                    "remote_address": observation.remote_address,
                    "user_agent": observation.user_agent,
                    "request_id": observation.request_id,
                },
                trace=observation.trace,
            )
        except Exception:
            fallback_logger.exception("request_observation_failed")

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        observation = self._start(scope)

        async def send_wrapper(message: dict[str, Any]) -> None:
            if message.get("type") == "http.response.start":
                observation.status_code = int(message.get("status", 500))
                headers = MutableHeaders(scope=message)
                headers["X-Request-ID"] = observation.request_id

            await send(message)

            if message.get("type") == "http.response.body" and not message.get("more_body", False):
                self._finish(observation)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            # Covers app errors and client disconnects; a no-op after a normal finish.
            self._finish(observation)
