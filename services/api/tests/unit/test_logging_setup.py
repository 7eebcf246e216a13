"""Logging configuration."""

from __future__ import annotations

import logging

import structlog

from codeboard.middleware.logging import setup_logging


def _processor(name: str):
    return next(p for p in structlog.get_config()["processors"] if getattr(p, "__name__", "") == name)


def test_events_carry_service_context(settings):
    setup_logging(settings.model_copy(update={"app_version": "9.9.9", "environment": "staging"}))

    add_context = _processor("add_service_context")
    event = add_context(None, "info", {"event": "tier_aggregated"})

    assert event["service"] == "codeboard-api"
    assert event["version"] == "9.9.9"
    assert event["environment"] == "staging"


def test_event_fields_win_over_service_context(settings):
    setup_logging(settings)
    event = _processor("add_service_context")(None, "info", {"event": "x", "service": "standings-worker"})
    assert event["service"] == "standings-worker"


def test_json_renderer_selected(settings):
    setup_logging(settings.model_copy(update={"log_format": "json"}))
    assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)


def test_sql_echo_is_quieted(settings):
    setup_logging(settings.model_copy(update={"log_level": "DEBUG"}))
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
