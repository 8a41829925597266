"""Shared utilities for sandbox operations.

The docker SDK is synchronous; everything that talks to the engine or
blocks on the attach socket goes through these helpers.
"""

import asyncio
import socket
import threading
from typing import Any, Optional


async def run_in_executor(func, *args):
    """
    Run a blocking function in the default thread pool executor.

    Args:
        func: Blocking function to run
        *args: Arguments to pass to the function

    Returns:
        Result of the function
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, *args)


def run_in_thread(func, *args, name: Optional[str] = None) -> "asyncio.Future":
    """Run a call that may block for a job's lifetime on its own thread.

    Container waits, attach reads and stdin writes last as long as the job.
    They stay out of the shared executor used for create, inspect and remove.
    Cancelling the returned future does not stop the thread; the call
    returns once the socket is shut down or the container is removed.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def settle(result, error):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def target():
        try:
            result, error = func(*args), None
        except Exception as e:
            result, error = None, e
        try:
            loop.call_soon_threadsafe(settle, result, error)
        except RuntimeError:
            # Event loop already closed
            pass

    threading.Thread(target=target, name=name, daemon=True).start()
    return future


def raw_socket(sock: Any) -> Any:
    """Return the OS-level socket behind an attach stream.

    On a unix control socket the SDK hands back a ``socket.SocketIO``
    wrapper; the real socket lives on its ``_sock`` attribute.
    """
    return getattr(sock, "_sock", sock)


def read_chunk(sock: Any, chunk_size: int = 4096) -> bytes:
    """Read up to ``chunk_size`` bytes from a socket or file-like stream."""
    if hasattr(sock, "recv"):
        return sock.recv(chunk_size)
    return sock.read(chunk_size) or b""


def send_all(sock: Any, data: bytes) -> None:
    """Write all of ``data`` to the stream's write side."""
    raw = raw_socket(sock)
    if hasattr(raw, "sendall"):
        raw.sendall(data)
    else:
        raw.write(data)
        raw.flush()


def close_write(sock: Any) -> None:
    """Half-close the write side so the sandboxed program sees EOF on stdin."""
    raw = raw_socket(sock)
    if hasattr(raw, "shutdown"):
        raw.shutdown(socket.SHUT_WR)


def disable_timeout(sock: Any) -> None:
    """Let reads block until the engine closes the stream."""
    raw = raw_socket(sock)
    if hasattr(raw, "settimeout"):
        raw.settimeout(None)


def close_stream(sock: Any) -> None:
    """Shut down both directions and close the stream.

    Shutting down first wakes a reader blocked in ``recv`` on another thread.
    """
    raw = raw_socket(sock)
    if hasattr(raw, "shutdown"):
        try:
            raw.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already shut down or reset by the engine
            pass
    sock.close()
