"""
Structured logging configuration with request correlation.

structlog is layered over the standard library so that uvicorn and
SQLAlchemy records share one output stream. Request and caller ids are
carried in context variables and stamped onto every event.
"""

import logging
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

from garment_orders.core.config import get_settings

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
caller_id_ctx: ContextVar[Optional[str]] = ContextVar("caller_id", default=None)

SLOW_OPERATION_MS = 500


def add_correlation_ids(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Stamp the current request id and caller id onto the event."""
    request_id = request_id_ctx.get()
    if request_id:
        event_dict["request_id"] = request_id
    caller_id = caller_id_ctx.get()
    if caller_id:
        event_dict["caller_id"] = caller_id
    return event_dict


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def add_logger_name(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict["logger"] = getattr(logger, "name", "")
    return event_dict


def configure_logging() -> None:
    """
    Configure structlog and stdlib logging from application settings.

    Development gets a coloured console renderer; every other environment
    emits one JSON object per line.
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_timestamp,
        structlog.stdlib.add_log_level,
        add_logger_name,
        add_correlation_ids,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.db_echo else logging.WARNING
    )
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the request id for this context, generating one if absent."""
    if request_id is None:
        request_id = str(uuid4())
    request_id_ctx.set(request_id)
    return request_id


def get_request_id() -> str:
    return request_id_ctx.get()


def set_caller_id(caller_id: Optional[str]) -> None:
    caller_id_ctx.set(caller_id)


def clear_context() -> None:
    """Reset correlation ids at the end of a request."""
    request_id_ctx.set("")
    caller_id_ctx.set(None)


class PerformanceLogger:
    """
    Context manager that logs how long a block took.

    Blocks slower than SLOW_OPERATION_MS are logged at warning level;
    blocks that raise are logged as failures with the exception type.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None:
            return

        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)

        if exc_type is not None:
            self.logger.warning(
                "Operation failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error_type=exc_type.__name__,
                **self.context,
            )
            return

        log_method = (
            self.logger.warning
            if duration_ms > SLOW_OPERATION_MS
            else self.logger.debug
        )
        log_method(
            "Operation completed",
            operation=self.operation,
            duration_ms=duration_ms,
            **self.context,
        )


def log_performance(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    **context: Any,
) -> PerformanceLogger:
    """
    Create a timing context manager.

    Example:
        >>> logger = get_logger(__name__)
        >>> with log_performance(logger, "approve_order", order_id=str(oid)):
        ...     ...
    """
    return PerformanceLogger(logger, operation, **context)
