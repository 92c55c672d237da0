from __future__ import annotations

import logging
import sys
import traceback
from typing import Any, TextIO

import structlog

from taskflow.observability.tracing import TraceContext, TraceContextAccessor, current_trace_context


LEVELS = ("info", "warn", "error")
RESERVED_FIELDS = frozenset({"timestamp", "level", "service", "message", "event", "trace_id", "span_id"})

_LEVEL_METHODS = {"info": "info", "warn": "warning", "error": "error"}
_METHOD_LEVELS = {"warning": "warn", "critical": "error", "exception": "error", "debug": "info"}
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_CONFIGURED = False
_SERVICE_NAME = "taskflow-backend"


def _add_service_name(service_name: str):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict["service"] = service_name
        return event_dict

    return processor


def _add_level(_: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict["level"] = _METHOD_LEVELS.get(method_name, method_name)
    return event_dict


def _rename_stdlib_level(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    level = event_dict.get("level")
    if isinstance(level, str):
        event_dict["level"] = _METHOD_LEVELS.get(level, level)
    return event_dict


def _add_configured_service_name(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict["service"] = _SERVICE_NAME
    return event_dict


def configure_logging(*, service_name: str, level: str = "INFO") -> None:
    """Configure stdlib logging (and uvicorn) to emit the same JSON records.

    Safe to call multiple times. Later calls only rebind the service name and
    the root level; handlers are installed once.
    """

    global _CONFIGURED, _SERVICE_NAME
    _SERVICE_NAME = service_name
    if _CONFIGURED:
        _apply_level(level)
        return

    pre_chain: list[Any] = [
        structlog.stdlib.add_log_level,
        _rename_stdlib_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        _add_configured_service_name,
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=pre_chain,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    logging.getLogger().handlers = [handler]

    # Keep uvicorn's own loggers consistent with our handler.
    for name in _UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False

    _apply_level(level)
    _CONFIGURED = True


def _apply_level(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.getLogger().setLevel(numeric)
    for name in _UVICORN_LOGGERS:
        logging.getLogger(name).setLevel(numeric)


def extract_error_fields(error: BaseException) -> dict[str, str]:
    return {
        "error_name": type(error).__name__,
        "error_message": str(error),
        "error_stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
    }


class StructuredLogger:
    """Writes one JSON line per event, tagged with the active trace if any.

    The fixed keys (timestamp, level, service, message) and the trace keys are
    owned by the logger; caller fields with those names are dropped.
    """

    def __init__(
        self,
        service_name: str,
        *,
        stream: TextIO | None = None,
        trace_context: TraceContextAccessor = current_trace_context,
    ) -> None:
        self.service_name = service_name
        self._trace_context = trace_context
        # PrintLogger serializes writes per file and flushes after every line.
        self._logger = structlog.wrap_logger(
            structlog.PrintLogger(file=stream),
            processors=[
                _add_level,
                structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
                _add_service_name(service_name),
                structlog.processors.EventRenamer("message"),
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.BoundLogger,
            context_class=dict,
        )

    def _active_trace(self) -> TraceContext | None:
        try:
            return self._trace_context()
        except Exception:
            return None

    def log(
        self,
        level: str,
        event: str,
        fields: dict[str, Any] | None = None,
        *,
        trace: TraceContext | None = None,
    ) -> None:
        payload = {key: value for key, value in (fields or {}).items() if key not in RESERVED_FIELDS}

        active = trace if trace is not None else self._active_trace()
        if active is not None:
            payload.update(active.as_log_fields())

        method = _LEVEL_METHODS.get(level, "info")
        getattr(self._logger, method)(event, **payload)

    def info(self, event: str, **fields: Any) -> None:
        self.log("info", event, fields)

    def warn(self, event: str, **fields: Any) -> None:
        self.log("warn", event, fields)

    def error(self, event: str, **fields: Any) -> None:
        self.log("error", event, fields)
