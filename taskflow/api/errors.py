from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskflow.observability.logging import extract_error_fields


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    # No endpoint in scope means the router never matched.
    if exc.status_code == 404 and "endpoint" not in request.scope:
        message = "Route not found"
    return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    _ = exc
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request.app.state.logger.error(
        "unhandled_error",
        route=request.url.path,
        method=request.method,
        **extract_error_fields(exc),
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
