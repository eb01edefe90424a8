"""HTTP API for the order workflow."""

from orderflow.api.routes import router

__all__ = ["router"]
