"""Unit tests for ExecutionOrchestrator."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import patch

import pytest

from coderunner.models.errors import (
    CodeRunnerException,
    EngineUnavailableError,
    ExecutionFailedError,
    ExecutionTimeoutError,
    SandboxError,
    ValidationError,
    WorkspaceError,
)
from coderunner.services.orchestrator import ExecutionOrchestrator
from coderunner.services.sandbox.workspace import WorkspaceManager


def _workspaces(root):
    return list(root.iterdir()) if root.exists() else []


class TestValidation:
    """Test rejection before any resource is allocated."""

    @pytest.mark.asyncio
    async def test_unsupported_language(self, orchestrator, fake_docker, workspace_root):
        with pytest.raises(ValidationError) as exc_info:
            await orchestrator.execute("cobol", "DISPLAY 'HI'.")

        assert exc_info.value.message == "Unsupported language"
        assert exc_info.value.status_code == 400
        assert _workspaces(workspace_root) == []
        assert fake_docker.containers.created == []

    @pytest.mark.asyncio
    async def test_engine_unavailable(self, disconnected_engine, workspace_manager, workspace_root):
        orchestrator = ExecutionOrchestrator(
            engine=disconnected_engine, workspace_manager=workspace_manager
        )
        with pytest.raises(EngineUnavailableError) as exc_info:
            await orchestrator.execute("python", "print(1)")

        assert exc_info.value.message == "Docker service unavailable"
        assert _workspaces(workspace_root) == []


class TestExecute:
    """Test jobs that run to termination."""

    @pytest.mark.asyncio
    async def test_success(self, orchestrator, fake_docker, workspace_root):
        fake_docker.containers.script = {"frames": [(1, b"3\n"), (2, b"note\n")], "exit_code": 0}

        result = await orchestrator.execute("python", "print(1 + 2)")

        assert result.succeeded
        assert result.stdout == "3\n"
        assert result.stderr == "note\n"
        assert result.duration_ms >= 0
        assert _workspaces(workspace_root) == []
        assert fake_docker.containers.created[0].removed

    @pytest.mark.asyncio
    async def test_alias_resolves_to_image(self, orchestrator, fake_docker):
        await orchestrator.execute("js", "console.log(1)")
        assert fake_docker.containers.created[0].config["image"] == "node:16"

    @pytest.mark.asyncio
    async def test_workspace_contents(self, orchestrator, fake_docker):
        seen = {}
        original_create = fake_docker.containers.create

        def create(image, command=None, **kwargs):
            (host_path,) = kwargs["volumes"].keys()
            seen.update({p.name: p.read_text() for p in Path(host_path).iterdir()})
            return original_create(image, command, **kwargs)

        fake_docker.containers.create = create

        await orchestrator.execute("java", "class Main {}", "input line")
        assert seen == {"Main.java": "class Main {}", "input.txt": "input line"}

    @pytest.mark.asyncio
    async def test_no_input_file_without_input(self, orchestrator, fake_docker):
        seen = []
        original_create = fake_docker.containers.create

        def create(image, command=None, **kwargs):
            (host_path,) = kwargs["volumes"].keys()
            seen.extend(sorted(p.name for p in Path(host_path).iterdir()))
            return original_create(image, command, **kwargs)

        fake_docker.containers.create = create

        await orchestrator.execute("python", "print(1)")
        assert seen == ["program.py"]

    @pytest.mark.asyncio
    async def test_non_zero_exit_uses_stderr(self, orchestrator, fake_docker, workspace_root):
        fake_docker.containers.script = {
            "frames": [(1, b"partial"), (2, b"NameError: x")],
            "exit_code": 1,
        }

        with pytest.raises(ExecutionFailedError) as exc_info:
            await orchestrator.execute("python", "print(x)")

        assert exc_info.value.message == "NameError: x"
        assert exc_info.value.exit_code == 1
        assert exc_info.value.status_code == 500
        assert _workspaces(workspace_root) == []

    @pytest.mark.asyncio
    async def test_non_zero_exit_without_stderr(self, orchestrator, fake_docker):
        fake_docker.containers.script = {"frames": [(1, b"bye")], "exit_code": 3}

        with pytest.raises(ExecutionFailedError) as exc_info:
            await orchestrator.execute("python", "exit(3)")
        assert exc_info.value.message == "Execution failed"


class TestFailureCleanup:
    """Test that every failure path releases the job's resources."""

    @pytest.mark.asyncio
    async def test_timeout(self, orchestrator, fake_docker, workspace_root):
        fake_docker.containers.script = {"frames": [], "hang": True}

        with patch.object(ExecutionOrchestrator, "timeout_for", return_value=0.2):
            with pytest.raises(ExecutionTimeoutError):
                await orchestrator.execute("python", "while True: pass")

        assert fake_docker.containers.created[0].removed
        assert _workspaces(workspace_root) == []

    @pytest.mark.asyncio
    async def test_sandbox_error(self, orchestrator, fake_docker, workspace_root):
        fake_docker.containers.create_error = RuntimeError("engine said no")

        with pytest.raises(SandboxError):
            await orchestrator.execute("python", "print(1)")
        assert _workspaces(workspace_root) == []

    @pytest.mark.asyncio
    async def test_workspace_error(self, engine_context, tmp_path, fake_docker):
        blocked = tmp_path / "blocked"
        blocked.write_text("")

        orchestrator = ExecutionOrchestrator(
            engine=engine_context, workspace_manager=WorkspaceManager(root=blocked)
        )
        with pytest.raises(WorkspaceError):
            await orchestrator.execute("python", "print(1)")
        assert fake_docker.containers.created == []

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self, orchestrator, workspace_root):
        async def explode(*args, **kwargs):
            raise KeyError("boom")

        with patch.object(orchestrator._controller, "run", side_effect=explode):
            with pytest.raises(CodeRunnerException) as exc_info:
                await orchestrator.execute("python", "print(1)")

        assert exc_info.value.status_code == 500
        assert "boom" in exc_info.value.message
        assert _workspaces(workspace_root) == []


class TestConcurrency:
    """Test jobs running side by side."""

    @pytest.mark.asyncio
    async def test_concurrent_jobs_are_isolated(self, orchestrator, fake_docker, workspace_root):
        results = await asyncio.gather(
            *(orchestrator.execute("python", f"print({i})") for i in range(5))
        )

        assert len(results) == 5
        assert len({r.job_id for r in results}) == 5
        mounts = {next(iter(c.config["volumes"])) for c in fake_docker.containers.created}
        assert len(mounts) == 5
        assert all(c.removed for c in fake_docker.containers.created)
        assert _workspaces(workspace_root) == []

    @pytest.mark.asyncio
    async def test_concurrency_limit(self, engine_context, workspace_manager, controller):
        orchestrator = ExecutionOrchestrator(
            engine=engine_context,
            workspace_manager=workspace_manager,
            controller=controller,
            max_concurrent_jobs=2,
        )
        running = 0
        peak = 0
        original_run = controller.run

        async def tracked(*args, **kwargs):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.05)
            try:
                return await original_run(*args, **kwargs)
            finally:
                running -= 1

        with patch.object(controller, "run", side_effect=tracked):
            await asyncio.gather(
                *(orchestrator.execute("python", "print(1)") for _ in range(5))
            )
        assert peak == 2

    @pytest.mark.asyncio
    async def test_timed_out_jobs_leave_room_for_cleanup(
        self, orchestrator, fake_docker, workspace_root
    ):
        # More never-ending jobs than the default executor has threads
        executor = ThreadPoolExecutor(max_workers=2)
        asyncio.get_running_loop().set_default_executor(executor)
        fake_docker.containers.script = {"frames": [], "hang": True}

        with patch.object(orchestrator, "timeout_for", return_value=0.5):
            results = await asyncio.wait_for(
                asyncio.gather(
                    *(orchestrator.execute("python", "while True: pass") for _ in range(6)),
                    return_exceptions=True,
                ),
                timeout=10,
            )

        assert all(isinstance(r, ExecutionTimeoutError) for r in results)
        assert len(fake_docker.containers.created) == 6
        assert all(c.removed for c in fake_docker.containers.created)
        assert _workspaces(workspace_root) == []

    @pytest.mark.asyncio
    async def test_unread_input_still_times_out(self, orchestrator, fake_docker, workspace_root):
        fake_docker.containers.script = {"frames": [], "hang": True, "stdin_blocks": True}

        with patch.object(orchestrator, "timeout_for", return_value=0.5):
            with pytest.raises(ExecutionTimeoutError):
                await asyncio.wait_for(
                    orchestrator.execute("python", "while True: pass", "x" * 10_000_000),
                    timeout=6,
                )

        assert fake_docker.containers.created[0].removed
        assert _workspaces(workspace_root) == []
