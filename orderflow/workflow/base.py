"""Common wiring shared by every workflow component."""

from orderflow.config import get_settings
from orderflow.utils.logging import WorkflowLogger


class WorkflowComponent:
    """Base class for the ledgers, coordinators and the engine."""

    def __init__(self, component_id: str):
        self.component_id = component_id
        self.settings = get_settings()
        self.logger = WorkflowLogger(component_id)
