"""Middleware registration."""

from fastapi import FastAPI

from codeboard.config import Settings
from codeboard.middleware.cors import setup_cors
from codeboard.middleware.error_handler import setup_error_handlers
from codeboard.middleware.logging import setup_logging
from codeboard.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers, request IDs, then CORS (outermost)."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
