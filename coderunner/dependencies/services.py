"""Service dependency injection for the Code Runner API."""

# Standard library imports
from functools import lru_cache
from typing import Annotated

# Third-party imports
from fastapi import Depends

# Local application imports
from ..services.engine import EngineContext
from ..services.orchestrator import ExecutionOrchestrator
from ..services.sandbox.workspace import WorkspaceManager


@lru_cache()
def get_engine_context() -> EngineContext:
    """Get the process-wide engine context.

    main.py runs the startup probe against this same instance.
    """
    return EngineContext()


@lru_cache()
def get_workspace_manager() -> WorkspaceManager:
    """Get workspace manager instance."""
    return WorkspaceManager()


@lru_cache()
def get_orchestrator() -> ExecutionOrchestrator:
    """Get execution orchestrator instance."""
    return ExecutionOrchestrator(
        engine=get_engine_context(), workspace_manager=get_workspace_manager()
    )


# Type aliases for dependency injection
EngineContextDep = Annotated[EngineContext, Depends(get_engine_context)]
OrchestratorDep = Annotated[ExecutionOrchestrator, Depends(get_orchestrator)]
