"""structlog setup for the API process."""

import logging

import structlog

from codeboard.config import Settings

# Libraries that are chatty at INFO: one line per SQL statement / Redis command.
_QUIET_LOGGERS = ("sqlalchemy.engine", "asyncio", "arq.jobs")


def setup_logging(settings: Settings) -> None:
    """JSON lines in production, coloured console output when ``log_format`` is not ``json``.

    Every event carries the service name, version and environment so that
    lines from the API and the standings worker can be told apart.
    """
    service_context = {
        "service": "codeboard-api",
        "version": settings.app_version,
        "environment": settings.environment,
    }

    def add_service_context(
        _logger: structlog.types.WrappedLogger, _method: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        for key, value in service_context.items():
            event_dict.setdefault(key, value)
        return event_dict

    if settings.log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service_context,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s")
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
