"""Sandbox lifecycle control.

One sandbox per job, driven through a fixed sequence:

    create -> start -> attach -> drain (while waiting) -> terminate -> remove

Removal is unconditional and happens exactly once, however the job ends.
Draining the attach stream and waiting for the container to stop run at the
same time so a burst of output right before exit is still captured. Writing
input, draining and waiting each get their own thread, and the job deadline
covers the input write as well as the wait.
"""

import asyncio
from contextlib import asynccontextmanager
from functools import partial
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, Optional

import docker
import structlog

from ...config import settings
from ...models.errors import ExecutionTimeoutError, SandboxError
from ...models.execution import Job, JobPhase
from .demux import FrameDemultiplexer
from .utils import (
    close_stream,
    close_write,
    disable_timeout,
    run_in_executor,
    run_in_thread,
    send_all,
)
from .workspace import WorkspaceManager

if TYPE_CHECKING:
    from ..engine import EngineContext

logger = structlog.get_logger(__name__)

ATTACH_PARAMS = {"stdin": 1, "stdout": 1, "stderr": 1, "stream": 1, "logs": 1}
DIAGNOSTIC_LOG_LIMIT = 4096
# Extra time the engine wait request gets beyond the job deadline
WAIT_REQUEST_SLACK = 5.0


class SandboxController:
    """Runs a job's command in a resource-capped container."""

    def __init__(
        self,
        engine: "EngineContext",
        workspace_manager: WorkspaceManager,
        memory_bytes: Optional[int] = None,
        cpu_period: Optional[int] = None,
        cpu_quota: Optional[int] = None,
        workdir: Optional[str] = None,
        network_disabled: Optional[bool] = None,
        drain_grace: Optional[float] = None,
    ):
        self._engine = engine
        self._workspaces = workspace_manager
        self._memory_bytes = memory_bytes or settings.sandbox_memory_bytes
        self._cpu_period = cpu_period or settings.sandbox_cpu_period
        self._cpu_quota = cpu_quota or settings.sandbox_cpu_quota
        self._workdir = workdir or settings.sandbox_workdir
        self._network_disabled = (
            settings.enable_network_isolation
            if network_disabled is None
            else network_disabled
        )
        self._drain_grace = (
            settings.sandbox_drain_grace_seconds if drain_grace is None else drain_grace
        )

    async def run(
        self,
        job: Job,
        command: str,
        timeout: float,
        stdin_text: Optional[str] = None,
    ) -> int:
        """Run ``command`` for ``job`` and return its exit code.

        The job's stdout/stderr buffers are filled from the attach stream.

        Raises:
            SandboxError: create, start, attach, input or wait failed
            ExecutionTimeoutError: the container outlived ``timeout``
        """
        async with self.sandbox(job, command) as container:
            sock = await self._attach(job, container)
            demux = FrameDemultiplexer(job_id=job.short_id)
            drain = run_in_thread(demux.drain, sock, name=f"drain-{job.short_id}")
            drain.add_done_callback(_discard_result)
            job.phase = JobPhase.DRAINING
            try:
                exit_code = await self._supervise(job, container, sock, stdin_text, timeout)
                job.phase = JobPhase.TERMINATED
                await self._finish_drain(job, drain)
            finally:
                self._close_socket(job, sock)
                job.stdout = demux.stdout
                job.stderr = demux.stderr

        job.exit_code = exit_code
        logger.info(
            "Sandbox finished",
            job_id=job.short_id,
            exit_code=exit_code,
            stdout_bytes=len(job.stdout),
            stderr_bytes=len(job.stderr),
        )
        return exit_code

    @asynccontextmanager
    async def sandbox(self, job: Job, command: str) -> AsyncIterator[Any]:
        """Create and start a container; force-remove it when the block exits."""
        client = self._engine.require_client()
        container = await self._create(client, job, command)
        try:
            await self._start(job, container)
            yield container
        finally:
            await self._remove(job, container)

    def _container_config(self, job: Job, command: str) -> Dict[str, Any]:
        host_path = self._workspaces.host_path(job.workspace)
        return {
            "image": job.language.image,
            "command": ["/bin/sh", "-c", command],
            "working_dir": self._workdir,
            "volumes": {host_path: {"bind": self._workdir, "mode": "rw"}},
            "mem_limit": self._memory_bytes,
            "cpu_period": self._cpu_period,
            "cpu_quota": self._cpu_quota,
            "tty": False,
            "stdin_open": True,
            # Container stdin closes when our attach stream half-closes
            "stdin_once": True,
            "detach": True,
            "auto_remove": False,
            "network_disabled": self._network_disabled,
            "labels": {
                "com.code-runner.managed": "true",
                "com.code-runner.job-id": job.job_id,
                "com.code-runner.language": job.language.identifier,
            },
        }

    async def _create(self, client: Any, job: Job, command: str) -> Any:
        config = self._container_config(job, command)
        logger.info(
            "Creating sandbox",
            job_id=job.short_id,
            image=config["image"],
            command=command,
        )
        try:
            container = await run_in_executor(
                partial(client.containers.create, **config)
            )
        except docker.errors.ImageNotFound as e:
            logger.error("Sandbox image not found", job_id=job.short_id, image=config["image"])
            raise SandboxError(
                "create", f"Sandbox image not available: {config['image']}"
            ) from e
        except Exception as e:
            logger.error("Failed to create sandbox", job_id=job.short_id, error=str(e))
            raise SandboxError("create", str(e)) from e

        job.container_id = container.id
        job.phase = JobPhase.SANDBOX_CREATED
        return container

    async def _start(self, job: Job, container: Any) -> None:
        logger.info("Starting sandbox", job_id=job.short_id, container=container.id[:12])
        try:
            await run_in_executor(container.start)
        except Exception as e:
            logger.error("Failed to start sandbox", job_id=job.short_id, error=str(e))
            raise SandboxError("start", str(e)) from e
        job.phase = JobPhase.SANDBOX_STARTED

    async def _attach(self, job: Job, container: Any) -> Any:
        # logs=1 replays anything written between start and attach
        try:
            sock = await run_in_executor(
                partial(container.attach_socket, params=ATTACH_PARAMS)
            )
            disable_timeout(sock)
        except Exception as e:
            logger.error("Failed to attach to sandbox", job_id=job.short_id, error=str(e))
            raise SandboxError("attach", str(e)) from e
        job.phase = JobPhase.ATTACHED
        return sock

    async def _feed_input(self, job: Job, sock: Any, stdin_text: Optional[str]) -> None:
        if stdin_text:
            logger.info("Feeding input to sandbox", job_id=job.short_id, size=len(stdin_text))
            try:
                await run_in_thread(
                    send_all, sock, stdin_text.encode("utf-8"), name=f"stdin-{job.short_id}"
                )
            except Exception as e:
                logger.error("Failed to write input", job_id=job.short_id, error=str(e))
                raise SandboxError("input", f"Failed to write input: {e}") from e

        try:
            close_write(sock)
        except OSError as e:
            logger.warning("Failed to close sandbox stdin", job_id=job.short_id, error=str(e))

    async def _supervise(
        self,
        job: Job,
        container: Any,
        sock: Any,
        stdin_text: Optional[str],
        timeout: float,
    ) -> int:
        """Feed input and wait for exit, both under the job deadline."""
        logger.info("Waiting for sandbox to finish", job_id=job.short_id, timeout=timeout)
        feed = asyncio.ensure_future(self._feed_input(job, sock, stdin_text))
        # A writer stuck past the deadline fails once the socket is closed
        feed.add_done_callback(_discard_result)
        waiting = run_in_thread(
            partial(
                container.wait,
                condition="not-running",
                timeout=timeout + WAIT_REQUEST_SLACK,
            ),
            name=f"wait-{job.short_id}",
        )
        waiting.add_done_callback(_discard_result)
        try:
            result = await asyncio.wait_for(_until_exit(feed, waiting), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("Sandbox exceeded its deadline", job_id=job.short_id, timeout=timeout)
            await self._capture_diagnostics(job, container)
            raise ExecutionTimeoutError(timeout)
        except SandboxError:
            raise
        except Exception as e:
            logger.error("Failed to wait for sandbox", job_id=job.short_id, error=str(e))
            await self._capture_diagnostics(job, container)
            raise SandboxError("wait", str(e)) from e

        if not feed.done():
            # Exited before its input was consumed; write errors are only logged
            await asyncio.wait({feed}, timeout=self._drain_grace)

        if result.get("Error"):
            logger.warning("Engine reported a wait error", job_id=job.short_id, error=result["Error"])
        return int(result.get("StatusCode", -1))

    async def _finish_drain(self, job: Job, drain: "asyncio.Future") -> None:
        try:
            await asyncio.wait_for(asyncio.shield(drain), timeout=self._drain_grace)
        except asyncio.TimeoutError:
            logger.warning(
                "Attach stream still open after sandbox exit",
                job_id=job.short_id,
                grace_seconds=self._drain_grace,
            )

    async def _capture_diagnostics(self, job: Job, container: Any) -> None:
        """Log the container state and buffered logs for operators."""
        try:
            await run_in_executor(container.reload)
            state = container.attrs.get("State", {})
            logs = await run_in_executor(
                partial(container.logs, stdout=True, stderr=True)
            )
            logger.info(
                "Sandbox diagnostics",
                job_id=job.short_id,
                state=state,
                logs=logs[-DIAGNOSTIC_LOG_LIMIT:].decode("utf-8", errors="replace"),
            )
        except Exception as e:
            logger.error("Failed to inspect sandbox", job_id=job.short_id, error=str(e))

    async def _remove(self, job: Job, container: Any) -> None:
        logger.info("Removing sandbox", job_id=job.short_id, container=container.id[:12])
        try:
            await run_in_executor(partial(container.remove, force=True))
        except docker.errors.NotFound:
            logger.debug("Sandbox already removed", job_id=job.short_id)
        except Exception as e:
            logger.error("Failed to remove sandbox", job_id=job.short_id, error=str(e))
        job.phase = JobPhase.REMOVED

    def _close_socket(self, job: Job, sock: Any) -> None:
        try:
            close_stream(sock)
        except Exception as e:
            logger.debug("Failed to close attach stream", job_id=job.short_id, error=str(e))


async def _until_exit(feed: "asyncio.Future", waiting: "asyncio.Future") -> Dict[str, Any]:
    """Return the wait result, failing early if input could not be written."""
    done, _ = await asyncio.wait({feed, waiting}, return_when=asyncio.FIRST_COMPLETED)
    if feed in done and waiting not in done:
        feed.result()
    return await waiting


def _discard_result(future: "asyncio.Future") -> None:
    if not future.cancelled():
        future.exception()
