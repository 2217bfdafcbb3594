"""
Logging configuration for the ETL workers.
"""
import logging
import sys

import structlog

from tcg_catalog.core.config import settings


def setup_logging():
    """
    Configure structured logging for the application.
    """
    log_level = logging.DEBUG if settings.api_debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            # Use console renderer in debug mode, JSON otherwise
            structlog.dev.ConsoleRenderer()
            if settings.api_debug
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def bind_job_context(job_id: int, game_code: str, job_type: str) -> None:
    """
    Bind ETL job identifiers to every log line emitted by this task.

    Uses structlog contextvars, so concurrent card workers spawned from the
    same task inherit the binding.
    """
    structlog.contextvars.bind_contextvars(
        job_id=job_id,
        game_code=game_code,
        job_type=job_type,
    )


def clear_job_context() -> None:
    structlog.contextvars.clear_contextvars()
