from __future__ import annotations

from fastapi import Request

from taskflow.config import Settings
from taskflow.observability.logging import StructuredLogger
from taskflow.observability.metrics import MetricsRegistry
from taskflow.services.task_service import TaskStore


def get_metrics(request: Request) -> MetricsRegistry:
    return request.app.state.metrics


def get_logger(request: Request) -> StructuredLogger:
    return request.app.state.logger


def get_task_store(request: Request) -> TaskStore:
    return request.app.state.tasks


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
