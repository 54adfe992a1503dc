"""Logging configuration and utilities."""

import logging
import sys
from typing import Any

import structlog
from structlog.processors import JSONRenderer, TimeStamper, add_log_level

from risk_evaluation.core.config import Settings


def setup_logging(settings: Settings) -> None:
    """Configure structured logging for the service and the stdlib root logger."""
    log_level = str(getattr(settings.app.log_level, "value", settings.app.log_level)).upper()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.observability.log_record_format == "json":
        processors.append(JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level, logging.INFO)),
        processors=processors,
        logger_factory=structlog.PrintLoggerFactory(
            file=sys.stdout,
        ),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stdout,
        level=log_level,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger for a module."""
    # PrintLogger has no name attribute, so the module name is bound explicitly
    return structlog.get_logger(name).bind(logger=name)


def bind_evaluation_context(transaction_id: Any, user_id: Any) -> None:
    """Attach the evaluation identifiers to every structured log line in this task."""
    structlog.contextvars.bind_contextvars(
        transaction_id=str(transaction_id),
        user_id=str(user_id),
    )


def clear_evaluation_context() -> None:
    structlog.contextvars.unbind_contextvars("transaction_id", "user_id")


class LoggerMixin:
    """Mixin providing logger access."""

    @property
    def logger(self) -> structlog.BoundLogger:
        """Get logger for this instance."""
        return get_logger(self.__class__.__module__)
