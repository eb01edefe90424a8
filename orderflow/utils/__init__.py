"""Utility modules."""

from orderflow.utils.logging import WorkflowLogger, get_logger, setup_logging
from orderflow.utils.tracing import WorkflowTracer

__all__ = ["setup_logging", "get_logger", "WorkflowLogger", "WorkflowTracer"]
