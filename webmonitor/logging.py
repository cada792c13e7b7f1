"""Structured logging configuration for the web monitoring pipeline."""

import json
import logging
import sys
import time
from typing import Any

import structlog
from structlog import processors, stdlib

from .config import get_settings


def setup_logging(
    log_level: str | None = None,
    json_logging: bool | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_logging: Enable JSON formatting
    """
    settings = get_settings()

    log_level = log_level or settings.log_level
    json_logging = json_logging if json_logging is not None else settings.json_logging

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(getattr(logging, log_level.upper()))

    processors_list = [
        stdlib.filter_by_level,
        stdlib.add_logger_name,
        stdlib.add_log_level,
        stdlib.PositionalArgumentsFormatter(),
        processors.TimeStamper(fmt="iso"),
        processors.StackInfoRenderer(),
        processors.format_exc_info,
    ]

    if json_logging:
        processors_list.append(
            processors.JSONRenderer(serializer=json.dumps, indent=None, ensure_ascii=False)
        )
    else:
        processors_list.extend([
            processors.CallsiteParameterAdder(
                parameters=[processors.CallsiteParameter.FILENAME,
                            processors.CallsiteParameter.LINENO]
            ),
            structlog.dev.ConsoleRenderer(colors=False),
        ])

    structlog.configure(
        processors=processors_list,
        wrapper_class=stdlib.BoundLogger,
        logger_factory=stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structured logger
    """
    return structlog.get_logger(name)


def log_api_request(
    method: str,
    url: str,
    status_code: int | None = None,
    response_time: float | None = None,
    **kwargs: Any
) -> dict[str, Any]:
    """Create a standardized log entry for outbound requests.

    Args:
        method: HTTP method
        url: Request URL
        status_code: Response status code
        response_time: Response time in seconds
        **kwargs: Additional request data

    Returns:
        Structured log data
    """
    log_data = {
        "event": "api_request",
        "method": method,
        "url": url,
        **kwargs
    }

    if status_code is not None:
        log_data["status_code"] = status_code

    if response_time is not None:
        log_data["response_time"] = response_time

    return log_data


def log_processing_stage(
    stage: str,
    input_count: int,
    output_count: int,
    duration: float | None = None,
    **kwargs: Any
) -> dict[str, Any]:
    """Create a standardized log entry for processing stages.

    Args:
        stage: Processing stage name
        input_count: Number of input items
        output_count: Number of output items
        duration: Processing duration in seconds
        **kwargs: Additional processing data

    Returns:
        Structured log data
    """
    log_data = {
        "event": "processing_stage",
        "stage": stage,
        "input_count": input_count,
        "output_count": output_count,
        **kwargs
    }

    if duration is not None:
        log_data["duration"] = duration

    return log_data


def log_error(
    error: Exception,
    context: str | None = None,
    **kwargs: Any
) -> dict[str, Any]:
    """Create a standardized log entry for errors.

    Args:
        error: Exception that occurred
        context: Additional context about the error
        **kwargs: Additional error data

    Returns:
        Structured log data
    """
    log_data = {
        "event": "error",
        "error_type": error.__class__.__name__,
        "error_message": str(error),
        **kwargs
    }

    if context:
        log_data["context"] = context

    return log_data


class PerformanceLogger:
    """Context manager for logging operation timings."""

    def __init__(self, operation: str, logger: structlog.stdlib.BoundLogger, **context: Any):
        self.operation = operation
        self.logger = logger
        self.context = context
        self.start_time: float | None = None
        self.duration: float | None = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.monotonic()
        self.logger.debug("operation_started", operation=self.operation, **self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None:
            return
        self.duration = time.monotonic() - self.start_time
        if exc_type is None:
            self.logger.info(
                "operation_completed",
                operation=self.operation,
                duration=self.duration,
                **self.context
            )
        else:
            self.logger.error(
                "operation_failed",
                operation=self.operation,
                duration=self.duration,
                error_type=exc_type.__name__,
                error_message=str(exc_val) if exc_val else None,
                **self.context
            )


setup_logging()
