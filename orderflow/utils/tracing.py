"""Timing traces for workflow use cases."""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generator

from orderflow.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TraceEvent:
    """Individual step recorded while running a use case."""

    timestamp: datetime
    step: str
    component: str
    operation: str
    duration_ms: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class WorkflowTracer:
    """Traces the steps of one engine call (create, cancel, assign, ...)."""

    def __init__(self, operation: str, order_id: str | None = None):
        self.operation = operation
        self.order_id = order_id
        self.events: list[TraceEvent] = []
        self.start_time = time.time()

    def add_event(
        self,
        step: str,
        component: str,
        duration_ms: float | None = None,
        **metadata: Any,
    ) -> None:
        """Add a trace event."""
        event = TraceEvent(
            timestamp=datetime.now(timezone.utc),
            step=step,
            component=component,
            operation=self.operation,
            duration_ms=duration_ms,
            metadata=metadata,
        )
        self.events.append(event)

        logger.debug(
            "trace_event",
            operation=self.operation,
            order_id=self.order_id,
            step=step,
            component=component,
            duration_ms=duration_ms,
            **metadata,
        )

    @contextmanager
    def trace_step(
        self, step: str, component: str, **metadata: Any
    ) -> Generator[None, None, None]:
        """Context manager to time a step."""
        start = time.time()
        try:
            yield
        finally:
            duration_ms = (time.time() - start) * 1000
            self.add_event(step, component, duration_ms=duration_ms, **metadata)

    def get_trace_summary(self) -> dict[str, Any]:
        """Get a summary of the trace."""
        total_duration = (time.time() - self.start_time) * 1000

        return {
            "operation": self.operation,
            "order_id": self.order_id,
            "total_duration_ms": total_duration,
            "total_events": len(self.events),
            "steps": [
                {
                    "timestamp": event.timestamp.isoformat(),
                    "step": event.step,
                    "component": event.component,
                    "duration_ms": event.duration_ms,
                    "metadata": event.metadata,
                }
                for event in self.events
            ],
        }
