from __future__ import annotations

import time
from typing import Any

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    GCCollector,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)


HTTP_LABELS = ("method", "route", "status_code")
DURATION_BUCKETS = (0.01, 0.03, 0.05, 0.1, 0.2, 0.3, 0.5, 1.0, 2.0, 5.0)


def _sanitize_method(method: Any) -> str:
    if not method:
        return "UNKNOWN"
    return str(method).upper()


def _sanitize_route(route: Any) -> str:
    if not route:
        return "unknown"
    return str(route)


def _sanitize_status_code(status_code: Any) -> str:
    if status_code is None or status_code == "":
        return "0"
    return str(status_code)


def _status_as_int(status_code: Any) -> int:
    try:
        return int(status_code)
    except (TypeError, ValueError):
        return 0


def _sanitize_duration(duration_seconds: Any) -> float:
    try:
        value = float(duration_seconds)
    except (TypeError, ValueError):
        return 0.0
    if value != value or value < 0:
        return 0.0
    return value


class MetricsRegistry:
    """RED metrics for HTTP traffic plus the stored task count.

    Each instance owns its own CollectorRegistry so that separate app instances
    (and tests) never share counters. prometheus_client guards every value with
    its own lock, so concurrent increments are not lost.
    """

    def __init__(self, *, namespace: str = "taskflow", include_process_metrics: bool = True) -> None:
        self.registry = CollectorRegistry()
        self._started_at = time.time()

        self.http_requests_total = Counter(
            f"{namespace}_http_requests_total",
            "Total number of HTTP requests handled by the backend",
            labelnames=HTTP_LABELS,
            registry=self.registry,
        )
        self.http_errors_total = Counter(
            f"{namespace}_http_errors_total",
            "Total number of HTTP requests that returned 4xx or 5xx status codes",
            labelnames=HTTP_LABELS,
            registry=self.registry,
        )
        self.http_request_duration_seconds = Histogram(
            f"{namespace}_http_request_duration_seconds",
            "HTTP request duration in seconds",
            labelnames=HTTP_LABELS,
            buckets=DURATION_BUCKETS,
            registry=self.registry,
        )
        self.tasks_total = Gauge(
            f"{namespace}_tasks_total",
            "Current number of tasks stored in memory",
            registry=self.registry,
        )

        if include_process_metrics:
            ProcessCollector(namespace=namespace, registry=self.registry)
            PlatformCollector(registry=self.registry)
            GCCollector(registry=self.registry)
            uptime = Gauge(
                f"{namespace}_process_uptime_seconds",
                "Seconds since the metrics registry was created",
                registry=self.registry,
            )
            uptime.set_function(lambda: time.time() - self._started_at)

    def record_request(self, method: Any, route: Any, status_code: Any, duration_seconds: Any) -> None:
        labels = {
            "method": _sanitize_method(method),
            "route": _sanitize_route(route),
            "status_code": _sanitize_status_code(status_code),
        }

        self.http_requests_total.labels(**labels).inc()
        self.http_request_duration_seconds.labels(**labels).observe(_sanitize_duration(duration_seconds))

        if _status_as_int(status_code) >= 400:
            self.http_errors_total.labels(**labels).inc()

    def set_task_count(self, count: int) -> None:
        self.tasks_total.set(max(int(count), 0))

    def snapshot(self) -> tuple[str, bytes]:
        return CONTENT_TYPE_LATEST, generate_latest(self.registry)

    def sample_value(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Current value of one sample; series never observed read as 0."""

        value = self.registry.get_sample_value(name, labels or {})
        return 0.0 if value is None else value

    def reset(self) -> None:
        """Drop every labelled series and zero the task gauge (tests/admin only)."""

        self.http_requests_total.clear()
        self.http_errors_total.clear()
        self.http_request_duration_seconds.clear()
        self.tasks_total.set(0)
