"""structlog setup shared by the API server and the CLI."""

import logging

import structlog


def configure_logging(level: str = "info", json_logs: bool = False) -> None:
    """Configure structlog once at startup.

    merge_contextvars picks up the request_id bound by RequestIdMiddleware.
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        cache_logger_on_first_use=False,
    )
