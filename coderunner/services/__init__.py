"""Services for the Code Runner API."""

from .engine import EngineContext, initialize_engine
from .orchestrator import ExecutionOrchestrator

__all__ = [
    "EngineContext",
    "initialize_engine",
    "ExecutionOrchestrator",
]
