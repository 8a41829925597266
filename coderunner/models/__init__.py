"""Data models for the Code Runner API."""

from .execution import (
    ExecuteRequest,
    ExecuteResponse,
    ExecutionResult,
    Job,
    JobPhase,
    JobStatus,
)
from .errors import (
    ErrorType,
    ErrorDetail,
    ErrorResponse,
    CodeRunnerException,
    ValidationError,
    EngineUnavailableError,
    WorkspaceError,
    SandboxError,
    ExecutionTimeoutError,
    ExecutionFailedError,
)

__all__ = [
    # Execution models
    "ExecuteRequest",
    "ExecuteResponse",
    "ExecutionResult",
    "Job",
    "JobPhase",
    "JobStatus",
    # Error models
    "ErrorType",
    "ErrorDetail",
    "ErrorResponse",
    "CodeRunnerException",
    "ValidationError",
    "EngineUnavailableError",
    "WorkspaceError",
    "SandboxError",
    "ExecutionTimeoutError",
    "ExecutionFailedError",
]
