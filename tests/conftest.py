"""Pytest configuration and shared fixtures."""

import os
import threading
from typing import Dict, List, Optional, Tuple

import pytest

# Keep unit tests away from any real engine or shared directories
os.environ.setdefault("DOCKER_HOST", "unix:///nonexistent/docker.sock")
os.environ.setdefault("ENGINE_CONNECT_ATTEMPTS", "1")
os.environ.setdefault("ENGINE_CONNECT_DELAY_SECONDS", "0")
os.environ.setdefault("LOG_FORMAT", "console")

import docker  # noqa: E402

from coderunner.services.engine import (  # noqa: E402
    ConnectionResult,
    ConnectionState,
    EngineContext,
)
from coderunner.services.orchestrator import ExecutionOrchestrator  # noqa: E402
from coderunner.services.sandbox.controller import SandboxController  # noqa: E402
from coderunner.services.sandbox.demux import encode_frame  # noqa: E402
from coderunner.services.sandbox.workspace import WorkspaceManager  # noqa: E402


class FakeAttachSocket:
    """Attach stream serving pre-framed output in small reads.

    Once its data is exhausted a read blocks until the container exits or
    the socket is shut down, as a real attach stream does.
    """

    def __init__(
        self,
        data: bytes,
        exited: threading.Event,
        read_size: int = 7,
        send_blocks: bool = False,
    ):
        self._data = bytearray(data)
        self._send_blocks = send_blocks
        self._exited = exited
        self._read_size = read_size
        self._shutdown = threading.Event()
        self.sent = bytearray()
        self.events: List[str] = []
        self.timeout = "unset"
        self.closed = False

    def recv(self, size: int) -> bytes:
        while not self._data:
            if self._shutdown.is_set() or self._exited.wait(0.01):
                if not self._data:
                    return b""
        take = min(size, self._read_size, len(self._data))
        chunk = bytes(self._data[:take])
        del self._data[:take]
        return chunk

    def sendall(self, data: bytes) -> None:
        self.events.append("send")
        if self._send_blocks:
            # Nobody reads stdin: the write stalls until the stream is torn down
            self._shutdown.wait()
            raise BrokenPipeError("stream closed")
        self.sent += data

    def shutdown(self, how) -> None:
        self.events.append(f"shutdown:{how}")
        self._shutdown.set()

    def settimeout(self, value) -> None:
        self.timeout = value

    def close(self) -> None:
        self.events.append("close")
        self.closed = True
        self._shutdown.set()


class FakeContainer:
    """Container whose program either exits at once or runs until killed."""

    def __init__(
        self,
        container_id: str,
        config: dict,
        frames: List[Tuple[int, bytes]],
        exit_code: int = 0,
        hang: bool = False,
        start_error: Optional[Exception] = None,
        attach_error: Optional[Exception] = None,
        remove_error: Optional[Exception] = None,
        stdin_blocks: bool = False,
    ):
        self.id = container_id
        self.config = config
        self.exit_code = exit_code
        self.hang = hang
        self.start_error = start_error
        self.attach_error = attach_error
        self.remove_error = remove_error
        self.attrs: Dict = {"State": {"Status": "created"}}
        self.exited = threading.Event()
        self.socket = FakeAttachSocket(
            b"".join(encode_frame(stream, payload) for stream, payload in frames),
            self.exited,
            send_blocks=stdin_blocks,
        )
        self.wait_timeout = None
        self.calls: List[str] = []
        self.removed = False

    def start(self):
        self.calls.append("start")
        if self.start_error:
            raise self.start_error
        self.attrs["State"] = {"Status": "running"}
        if not self.hang:
            self.exited.set()

    def attach_socket(self, params=None):
        self.calls.append("attach")
        self.attach_params = params
        if self.attach_error:
            raise self.attach_error
        return self.socket

    def wait(self, condition=None, timeout=None):
        self.calls.append("wait")
        self.wait_timeout = timeout
        self.exited.wait()
        return {"StatusCode": self.exit_code if not self.removed else 137}

    def reload(self):
        self.calls.append("reload")

    def logs(self, stdout=True, stderr=True):
        self.calls.append("logs")
        return b"partial output"

    def remove(self, force=False):
        self.calls.append("remove")
        self.force_removed = force
        self.removed = True
        self.exited.set()
        if self.remove_error:
            raise self.remove_error


class FakeContainers:
    """The ``client.containers`` collection."""

    def __init__(self):
        self.created: List[FakeContainer] = []
        self.create_error: Optional[Exception] = None
        self.script: Dict = {"frames": [(1, b"hello\n")], "exit_code": 0}

    def create(self, image, command=None, **kwargs):
        if self.create_error:
            raise self.create_error
        container = FakeContainer(
            f"{len(self.created):064x}",
            dict(image=image, command=command, **kwargs),
            **self.script,
        )
        self.created.append(container)
        return container


class FakeDockerClient:
    """Minimal stand-in for ``docker.DockerClient``."""

    def __init__(self):
        self.containers = FakeContainers()
        self.closed = False

    def ping(self):
        return True

    def close(self):
        self.closed = True


@pytest.fixture
def fake_docker():
    """Fake engine client."""
    return FakeDockerClient()


@pytest.fixture
def engine_context(fake_docker):
    """Engine context already connected to the fake client."""
    context = EngineContext()
    context.apply(
        ConnectionResult(
            state=ConnectionState.CONNECTED, client=fake_docker, attempts=1
        )
    )
    return context


@pytest.fixture
def disconnected_engine():
    """Engine context whose startup connection failed."""
    context = EngineContext()
    context.apply(
        ConnectionResult(state=ConnectionState.FAILED, attempts=5, error="refused")
    )
    return context


@pytest.fixture
def workspace_root(tmp_path):
    return tmp_path / "jobs"


@pytest.fixture
def workspace_manager(workspace_root):
    return WorkspaceManager(root=workspace_root)


@pytest.fixture
def controller(engine_context, workspace_manager):
    return SandboxController(engine_context, workspace_manager, drain_grace=1.0)


@pytest.fixture
def orchestrator(engine_context, workspace_manager, controller):
    return ExecutionOrchestrator(
        engine=engine_context,
        workspace_manager=workspace_manager,
        controller=controller,
    )


@pytest.fixture
def image_not_found():
    return docker.errors.ImageNotFound("No such image: gcc:latest")
