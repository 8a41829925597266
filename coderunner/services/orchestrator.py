"""Execution orchestration.

Turns one validated request into one job: resolve the language, allocate a
workspace, run the sandbox, and map the outcome onto a result or a typed
error. Every resource a job allocates is released before this returns.
"""

import asyncio
import time
from typing import Optional

import structlog

from ..config import get_language, get_timeout, settings
from ..config.languages import LanguageSpec
from ..models.errors import (
    CodeRunnerException,
    ExecutionFailedError,
    ExecutionTimeoutError,
    ValidationError,
)
from ..models.execution import ExecutionResult, Job, JobPhase, JobStatus
from ..utils.id_generator import generate_job_id
from .engine import EngineContext
from .sandbox.controller import SandboxController
from .sandbox.workspace import INPUT_FILE_NAME, WorkspaceManager

logger = structlog.get_logger(__name__)


class ExecutionOrchestrator:
    """Runs code submissions end to end."""

    def __init__(
        self,
        engine: EngineContext,
        workspace_manager: Optional[WorkspaceManager] = None,
        controller: Optional[SandboxController] = None,
        max_concurrent_jobs: Optional[int] = None,
    ):
        self._engine = engine
        self._workspaces = workspace_manager or WorkspaceManager()
        self._controller = controller or SandboxController(engine, self._workspaces)

        limit = max_concurrent_jobs or settings.max_concurrent_jobs
        self._semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(limit) if limit else None
        )

    def resolve_language(self, language: Optional[str]) -> LanguageSpec:
        """Look up a language, raising the 400 error for unknown identifiers."""
        spec = get_language(language) if language else None
        if spec is None:
            raise ValidationError("Unsupported language")
        return spec

    def timeout_for(self, spec: LanguageSpec) -> int:
        return get_timeout(
            spec,
            default=settings.sandbox_timeout_seconds,
            slow_start=settings.sandbox_slow_start_timeout_seconds,
        )

    async def execute(
        self, language: str, code: str, stdin_text: Optional[str] = None
    ) -> ExecutionResult:
        """Run ``code`` in a fresh sandbox.

        Returns:
            ExecutionResult for a program that exited with status 0

        Raises:
            ValidationError: unsupported language
            EngineUnavailableError: the engine never connected
            ExecutionFailedError: non-zero exit status
            ExecutionTimeoutError: deadline exceeded
            CodeRunnerException: any other fault while running the job
        """
        spec = self.resolve_language(language)
        # Fail before allocating anything when the engine is down
        self._engine.require_client()

        if self._semaphore is None:
            return await self._execute(spec, code, stdin_text)
        async with self._semaphore:
            return await self._execute(spec, code, stdin_text)

    async def _execute(
        self, spec: LanguageSpec, code: str, stdin_text: Optional[str]
    ) -> ExecutionResult:
        job_id = generate_job_id()
        timeout = self.timeout_for(spec)
        started = time.perf_counter()
        log = logger.bind(job_id=job_id[:12], language=spec.identifier)
        log.info("Job started", timeout=timeout, has_input=bool(stdin_text))

        try:
            async with self._workspaces.workspace(job_id) as path:
                job = Job(job_id=job_id, workspace=path, language=spec)
                self._workspaces.write(path, spec.source_file, code)
                if stdin_text:
                    self._workspaces.write(path, INPUT_FILE_NAME, stdin_text)
                job.phase = JobPhase.WORKSPACE_READY

                try:
                    exit_code = await self._controller.run(
                        job, spec.command, timeout=timeout, stdin_text=stdin_text
                    )
                except ExecutionTimeoutError:
                    job.status = JobStatus.TIMED_OUT
                    raise
                except CodeRunnerException:
                    job.status = JobStatus.ERRORED
                    raise
        except CodeRunnerException as e:
            log.warning(
                "Job did not complete",
                error_type=e.error_type.value,
                error=e.message,
                duration_ms=_elapsed_ms(started),
            )
            raise
        except Exception as e:
            log.error("Job crashed", error=str(e), exc_info=True)
            raise CodeRunnerException(str(e) or type(e).__name__) from e

        duration_ms = _elapsed_ms(started)
        if exit_code != 0:
            job.status = JobStatus.FAILED
            log.info("Job failed", exit_code=exit_code, duration_ms=duration_ms)
            raise ExecutionFailedError(exit_code, job.stderr)

        job.status = JobStatus.SUCCEEDED
        log.info("Job succeeded", duration_ms=duration_ms)
        return ExecutionResult(
            job_id=job_id,
            stdout=job.stdout,
            stderr=job.stderr,
            exit_code=exit_code,
            duration_ms=duration_ms,
        )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
