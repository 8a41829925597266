"""Dependencies package for the Code Runner API."""

from .services import (
    get_engine_context,
    get_workspace_manager,
    get_orchestrator,
    EngineContextDep,
    OrchestratorDep,
)

__all__ = [
    "get_engine_context",
    "get_workspace_manager",
    "get_orchestrator",
    "EngineContextDep",
    "OrchestratorDep",
]
