"""Structured logging configuration."""

import logging
import sys
from typing import Any

import structlog
from pythonjsonlogger import jsonlogger

from orderflow.config import get_settings


def setup_logging() -> None:
    """Configure structured logging for the application."""
    settings = get_settings()

    # Configure standard library logging
    log_level = getattr(logging, settings.log_level)

    if settings.log_format == "json":
        # JSON logging for production
        handler = logging.StreamHandler(sys.stdout)
        formatter = jsonlogger.JsonFormatter(
            fmt="%(timestamp)s %(level)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
        handler.setFormatter(formatter)
    else:
        # Human-readable logging for development
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer() if settings.log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class WorkflowLogger:
    """Logger for order lifecycle events, one per workflow component."""

    def __init__(self, component: str):
        self.component = component
        self.logger = get_logger(component)

    def log_transition(
        self,
        order_id: str,
        order_number: str,
        from_status: str,
        to_status: str,
        actor: str,
        **kwargs: Any,
    ) -> None:
        """Log a committed status change."""
        self.logger.info(
            "order_transition",
            component=self.component,
            order_id=order_id,
            order_number=order_number,
            from_status=from_status,
            to_status=to_status,
            actor=actor,
            **kwargs,
        )

    def log_side_effect(
        self,
        effect: str,
        order_id: str,
        applied: bool = True,
        **kwargs: Any,
    ) -> None:
        """Log a stock, assignment or earnings side effect."""
        self.logger.info(
            "side_effect",
            component=self.component,
            effect=effect,
            order_id=order_id,
            applied=applied,
            **kwargs,
        )

    def log_error(
        self,
        error: str,
        order_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log a failed workflow operation."""
        self.logger.error(
            "workflow_error",
            component=self.component,
            order_id=order_id,
            error=error,
            **kwargs,
        )
