"""
Structured logging for the Realite engine.

Every entry is a JSON object with level, logger name, ISO timestamp and the
service name. Values bound with `bind_log_context` (request id, job name,
user id) are merged into all entries logged from the same task until
`clear_log_context` is called.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory

SERVICE_NAME = "realite-engine"

# Third-party loggers that only log at WARNING and above
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "psycopg.pool")


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service_name,
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
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _add_service_name(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_log_context(**values: Any) -> None:
    """Attach values to every entry logged from the current task."""
    structlog.contextvars.bind_contextvars(**values)


def clear_log_context() -> None:
    structlog.contextvars.clear_contextvars()


def log_request(method: str, path: str, status_code: int, duration_ms: float) -> None:
    """One entry per HTTP request; 4xx/5xx are logged as warnings."""
    logger = get_logger("http")
    fields = {"method": method, "path": path, "status_code": status_code, "duration_ms": duration_ms}

    if status_code >= 400:
        logger.warning("HTTP request failed", **fields)
    else:
        logger.info("HTTP request completed", **fields)
