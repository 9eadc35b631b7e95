"""
Structured logging setup for the Codeforces progress sync service.
Provides JSON-formatted logs with consistent fields for production monitoring.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output for production.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
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
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_sync_run(report: dict[str, Any]) -> None:
    """Log a finished sync run with consistent fields."""
    logger = get_logger("sync")

    log_data = {
        "event_type": "sync_run",
        "success": report.get("success", False),
        "duration_seconds": report.get("duration"),
    }

    if report.get("success"):
        log_data.update(
            total=report.get("total", 0),
            successful=report.get("successful", 0),
            failed=report.get("failed", 0),
            inactive=len(report.get("inactive_students", [])),
        )
        email_results = report.get("email_results")
        if email_results:
            log_data.update(
                emails_sent=email_results.get("sent", 0),
                emails_failed=email_results.get("failed", 0),
                emails_skipped=email_results.get("skipped", 0),
            )
        logger.info("Sync run completed", **log_data)
    else:
        logger.warning("Sync run did not complete", message=report.get("message"), **log_data)
