"""
Structured logging setup for the usage sync service.
Provides JSON-formatted logs with consistent fields for the sync worker and API.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.contextvars.merge_contextvars,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def bind_sync_context(**fields: Any) -> None:
    """Bind fields (work_name, trigger, run_attempt) for the current sync run."""
    structlog.contextvars.bind_contextvars(**fields)


def clear_sync_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_sync_outcome(status: str, duration_ms: float, total_screen_time_ms: int | None = None):
    """Log the outcome of one run sequence with consistent fields."""
    logger = get_logger("sync")

    log_data = {
        "status": status,
        "duration_ms": duration_ms,
        "event_type": "usage_sync_run",
    }

    if total_screen_time_ms is not None:
        log_data["total_screen_time_ms"] = total_screen_time_ms

    if status == "failed":
        logger.error("Usage sync run failed", **log_data)
    elif status in ("permission_missing", "not_authenticated", "upload_rejected"):
        logger.warning("Usage sync run stopped", **log_data)
    else:
        logger.info("Usage sync run completed", **log_data)
