"""
Structured logging configuration using structlog.

Standardized log format:
{
    "ts": "2026-10-19T04:30:00.123456Z",
    "level": "info",
    "service": "adanalytics",
    "correlation_id": "uuid-v4",
    "event": "query.completed",
    "module": "app.analytics.service",
    "function": "get_revenue_analysis",
    "line": 42,
    ...additional context...
}
"""
import structlog
import logging
from typing import Any

SERVICE_NAME = "adanalytics"


def add_service_name(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Add service name to all log entries."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def add_module_info(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Add module, function, and line number to log entries."""
    # Get call site info
    frame = structlog._frames._find_first_app_frame_and_name()[0]
    if frame:
        event_dict["module"] = frame.f_globals.get("__name__", "unknown")
        event_dict["function"] = frame.f_code.co_name
        event_dict["line"] = frame.f_lineno
    return event_dict


def setup_logging(json_output: bool = True, service_name: str = SERVICE_NAME, level: str = "INFO"):
    """
    Configure structured logging with standardized fields.

    Args:
        json_output: If True, output JSON logs. If False, use console format.
        service_name: Name of the service (for multi-service deployments).
        level: Minimum level name; DEBUG also emits per-event store logs.
    """
    global SERVICE_NAME
    SERVICE_NAME = service_name
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    # Shared processors
    shared_processors = [
        # Add contextvars (includes correlation_id and query params from middleware)
        structlog.contextvars.merge_contextvars,
        # Add service name
        add_service_name,
        # Add timestamp as 'ts'
        structlog.processors.TimeStamper(fmt="iso", key="ts"),
        # Add log level as 'level'
        structlog.processors.add_log_level,
        # Add module/function/line info
        add_module_info,
        # Add stack info for exceptions
        structlog.processors.StackInfoRenderer(),
        # Format exceptions
        structlog.processors.format_exc_info,
    ]

    if json_output:
        # JSON output for production
        processors = shared_processors + [structlog.processors.JSONRenderer()]
    else:
        # Console output for development
        processors = shared_processors + [structlog.dev.ConsoleRenderer()]

    # Configure structlog
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging to use structlog
    logging.basicConfig(
        format="%(message)s",
        level=log_level,
    )

    # Silence uvicorn's default logging to avoid duplicate logs
    logging.getLogger("uvicorn.error").handlers = []
    logging.getLogger("uvicorn.access").handlers = []


def get_logger():
    """Get a configured structlog logger."""
    return structlog.get_logger()
