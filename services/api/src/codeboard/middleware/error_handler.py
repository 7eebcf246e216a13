"""Global error handlers: every error body is JSON and carries the request ID."""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from codeboard.metrics.errors import MetricsError, StoreUnavailable

logger = structlog.get_logger()


def _error_response(request: Request, status_code: int, body: dict[str, Any]) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        body["request_id"] = request_id
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def setup_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(request, exc.status_code, {"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(request, 422, {"detail": "Validation error", "errors": exc.errors()})

    @app.exception_handler(MetricsError)
    async def metrics_exception_handler(request: Request, exc: MetricsError) -> JSONResponse:
        """Engine errors raised outside a dispatcher load. Store failures are retryable."""
        logger.warning("metrics_error", path=request.url.path, error=str(exc), kind=type(exc).__name__)
        if isinstance(exc, StoreUnavailable):
            return _error_response(
                request, 503, {"detail": exc.message, "kind": "StoreUnavailable", "retryable": True}
            )
        return _error_response(request, 500, {"detail": str(exc), "kind": type(exc).__name__})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return _error_response(request, 500, {"detail": "Internal server error"})
