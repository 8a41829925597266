"""Execution request, response and job models."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ..config.languages import LanguageSpec


class ExecuteRequest(BaseModel):
    """Body of POST /api/execute.

    Fields are optional here so missing values are reported with the
    service's own 400 response instead of a schema error.
    """

    language: Optional[str] = Field(None, description="Language identifier")
    code: Optional[str] = Field(None, description="Source code to run")
    input: Optional[str] = Field(None, description="Text fed to standard input")


class ExecuteResponse(BaseModel):
    """Successful execution response."""

    output: str = Field(default="", description="Captured standard output")
    error: str = Field(default="", description="Captured standard error")


class JobStatus(str, Enum):
    """Terminal status of a job."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"


class JobPhase(str, Enum):
    """Lifecycle states a job moves through, strictly in this order."""

    CREATED = "created"
    WORKSPACE_READY = "workspace_ready"
    SANDBOX_CREATED = "sandbox_created"
    SANDBOX_STARTED = "sandbox_started"
    ATTACHED = "attached"
    DRAINING = "draining"
    TERMINATED = "terminated"
    REMOVED = "removed"


@dataclass
class Job:
    """One end-to-end run of a single code submission."""

    job_id: str
    workspace: Path
    language: LanguageSpec
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    status: JobStatus = JobStatus.PENDING
    phase: JobPhase = JobPhase.CREATED
    container_id: Optional[str] = None

    @property
    def short_id(self) -> str:
        return self.job_id[:12]


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a job that ran to termination."""

    job_id: str
    stdout: str
    stderr: str
    exit_code: int
    duration_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0
