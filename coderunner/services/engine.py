"""Container engine connection management.

The connection is probed once at startup: a fixed number of ping attempts
with a fixed delay between them. The outcome is stored on a process-wide
EngineContext that the orchestrator checks before every job. There is no
reconnect loop; a failed probe leaves the service answering health checks
and rejecting executions.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import docker
import structlog

from ..config import settings
from ..models.errors import EngineUnavailableError
from .sandbox.utils import run_in_executor

logger = structlog.get_logger(__name__)


class ConnectionState(str, Enum):
    """Reachability of the container engine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass
class ConnectionResult:
    """Outcome of a startup probe."""

    state: ConnectionState
    client: Optional[Any] = None
    attempts: int = 0
    error: Optional[str] = None


def default_client_factory() -> docker.DockerClient:
    """Build a docker client for the configured control socket."""
    config = settings.sandbox
    return docker.DockerClient(
        base_url=config.docker_host, timeout=config.docker_client_timeout
    )


async def connect_with_retry(
    client_factory: Callable[[], Any],
    max_attempts: int = 5,
    delay: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ConnectionResult:
    """Build a client and ping it, retrying with a fixed delay.

    Args:
        client_factory: Returns a client exposing ``ping()`` and ``close()``
        max_attempts: Attempts before giving up
        delay: Seconds between attempts
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        ConnectionResult in the CONNECTED or FAILED state
    """
    last_error: Optional[str] = None

    for attempt in range(1, max_attempts + 1):
        client = None
        try:
            client = await run_in_executor(client_factory)
            await run_in_executor(client.ping)
            logger.info("Docker daemon connection established", attempt=attempt)
            return ConnectionResult(
                state=ConnectionState.CONNECTED, client=client, attempts=attempt
            )
        except Exception as e:
            last_error = str(e)
            logger.error(
                "Docker connection attempt failed",
                attempt=attempt,
                max_attempts=max_attempts,
                error=last_error,
            )
            if client is not None:
                _close_quietly(client)

        if attempt < max_attempts:
            await sleep(delay)

    logger.error(
        "Failed to connect to the container engine after max retries",
        attempts=max_attempts,
        error=last_error,
    )
    return ConnectionResult(
        state=ConnectionState.FAILED, attempts=max_attempts, error=last_error
    )


class EngineContext:
    """Process-wide handle on the container engine connection."""

    def __init__(self):
        self._state = ConnectionState.DISCONNECTED
        self._client: Optional[Any] = None
        self._error: Optional[str] = None
        self._attempts = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def attempts(self) -> int:
        return self._attempts

    def mark_connecting(self) -> None:
        self._state = ConnectionState.CONNECTING

    def apply(self, result: ConnectionResult) -> None:
        """Record the outcome of a probe."""
        self._state = result.state
        self._client = result.client
        self._error = result.error
        self._attempts = result.attempts

    def require_client(self) -> Any:
        """Return the engine client, or raise if the engine is unreachable."""
        if not self.is_connected or self._client is None:
            logger.error("Docker daemon is not available", state=self._state.value)
            raise EngineUnavailableError()
        return self._client

    def to_dict(self) -> dict:
        return {
            "state": self._state.value,
            "attempts": self._attempts,
            "error": self._error,
        }

    def close(self) -> None:
        """Close the client at shutdown."""
        if self._client is not None:
            _close_quietly(self._client)
        self._client = None
        self._state = ConnectionState.DISCONNECTED


async def initialize_engine(
    context: EngineContext,
    client_factory: Callable[[], Any] = default_client_factory,
    max_attempts: Optional[int] = None,
    delay: Optional[float] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ConnectionResult:
    """Run the startup probe and record its outcome on the context."""
    context.mark_connecting()
    result = await connect_with_retry(
        client_factory,
        max_attempts=max_attempts or settings.engine_connect_attempts,
        delay=settings.engine_connect_delay_seconds if delay is None else delay,
        sleep=sleep,
    )
    context.apply(result)
    return result


def _close_quietly(client: Any) -> None:
    try:
        client.close()
    except Exception as e:
        logger.debug("Failed to close engine client", error=str(e))
