"""CORS middleware configuration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from codeboard.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Dashboards are read-only: allow GET from the configured frontend origins."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["X-Viewer-Id", "X-Request-Id", "Content-Type"],
        expose_headers=["X-Request-Id"],
    )
