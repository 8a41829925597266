"""Error models and exception classes for the Code Runner API."""

import time
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class ErrorType(str, Enum):
    """Error type enumeration."""

    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    EXECUTION_FAILED = "execution_failed"
    TIMEOUT = "timeout"
    WORKSPACE = "workspace"
    SANDBOX = "sandbox"
    INTERNAL_SERVER = "internal_server"
    SERVICE_UNAVAILABLE = "service_unavailable"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(None, description="Field name for validation errors")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


class ErrorResponse(BaseModel):
    """Standardized error response model."""

    model_config = ConfigDict(use_enum_values=True)

    error: str = Field(..., description="Main error message")
    error_type: ErrorType = Field(..., description="Error category")
    details: Optional[List[ErrorDetail]] = Field(
        None, description="Additional error details"
    )
    request_id: Optional[str] = Field(
        None, description="Request identifier for tracking"
    )
    timestamp: float = Field(default_factory=time.time, description="Error timestamp")


# Custom Exception Classes


class CodeRunnerException(Exception):
    """Base exception for the Code Runner API."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INTERNAL_SERVER,
        status_code: int = 500,
        details: Optional[List[ErrorDetail]] = None,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or []
        self.request_id = request_id
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to error response model."""
        return ErrorResponse(
            error=self.message,
            error_type=self.error_type,
            details=self.details if self.details else None,
            request_id=self.request_id,
        )


class ValidationError(CodeRunnerException):
    """Request validation errors."""

    def __init__(self, message: str = "Validation failed", **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.VALIDATION, status_code=400, **kwargs
        )


class EngineUnavailableError(CodeRunnerException):
    """The container engine never reached the connected state."""

    def __init__(self, message: str = "Docker service unavailable", **kwargs):
        super().__init__(
            message=message,
            error_type=ErrorType.SERVICE_UNAVAILABLE,
            status_code=500,
            **kwargs,
        )


class WorkspaceError(CodeRunnerException):
    """Job directory could not be created or written."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.WORKSPACE, status_code=500, **kwargs
        )


class SandboxError(CodeRunnerException):
    """A sandbox lifecycle call failed.

    ``phase`` names the step that failed (create, start, attach, input, wait)
    and is kept for logging; the caller only sees the message.
    """

    def __init__(self, phase: str, message: str, **kwargs):
        self.phase = phase
        super().__init__(
            message=message, error_type=ErrorType.SANDBOX, status_code=500, **kwargs
        )


class ExecutionTimeoutError(CodeRunnerException):
    """The sandbox did not terminate before its deadline."""

    def __init__(self, timeout: float, message: Optional[str] = None, **kwargs):
        self.timeout = timeout
        super().__init__(
            message=message or f"Execution timed out after {timeout:g} seconds",
            error_type=ErrorType.TIMEOUT,
            status_code=500,
            **kwargs,
        )


class ExecutionFailedError(CodeRunnerException):
    """The submitted program exited with a non-zero status."""

    def __init__(self, exit_code: int, stderr: str = "", **kwargs):
        self.exit_code = exit_code
        self.stderr = stderr
        kwargs.setdefault(
            "details",
            [
                ErrorDetail(
                    field="exit_code", message=str(exit_code), code="non_zero_exit"
                )
            ],
        )
        super().__init__(
            message=stderr or "Execution failed",
            error_type=ErrorType.EXECUTION_FAILED,
            status_code=500,
            **kwargs,
        )
