"""Demultiplexing of the sandbox attach stream.

With TTY disabled the engine sends stdout and stderr over one byte stream,
split into frames:

    byte 0      stream type (0 stdin, 1 stdout, 2 stderr, 3 engine error)
    bytes 1-3   reserved
    bytes 4-7   payload length, big-endian unsigned
    bytes 8-    payload

Frames may arrive split across any number of reads, so the parser is
incremental. Payload bytes are kept per stream and decoded only when read,
which keeps multi-byte characters intact when the engine splits them
across frames.
"""

import struct
from typing import Any, Optional

import structlog

from .utils import read_chunk

logger = structlog.get_logger(__name__)

HEADER_SIZE = 8
HEADER_FORMAT = ">BxxxL"

STREAM_STDIN = 0
STREAM_STDOUT = 1
STREAM_STDERR = 2
STREAM_SYSTEMERR = 3


def encode_frame(stream_type: int, payload: bytes) -> bytes:
    """Build one frame in the engine's multiplexing format."""
    return struct.pack(HEADER_FORMAT, stream_type, len(payload)) + payload


class FrameDemultiplexer:
    """Splits a multiplexed byte stream into stdout and stderr buffers."""

    def __init__(self, job_id: str = ""):
        self._job_id = job_id
        self._pending = bytearray()
        self._stream: Optional[int] = None  # Stream of the frame being read
        self._remaining = 0  # Payload bytes still expected for that frame
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._frames = 0
        self._closed = False

    @property
    def stdout(self) -> str:
        return self._stdout.decode("utf-8", errors="replace")

    @property
    def stderr(self) -> str:
        return self._stderr.decode("utf-8", errors="replace")

    @property
    def frames(self) -> int:
        """Number of complete frames consumed."""
        return self._frames

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, data: bytes) -> None:
        """Consume the next chunk of the stream."""
        self._pending += data

        while self._pending:
            if self._stream is None:
                if len(self._pending) < HEADER_SIZE:
                    return
                stream_type, length = struct.unpack_from(HEADER_FORMAT, self._pending)
                del self._pending[:HEADER_SIZE]
                self._stream = stream_type
                self._remaining = length
                if length == 0:
                    self._end_frame()
                continue

            take = min(self._remaining, len(self._pending))
            self._append(self._stream, bytes(self._pending[:take]))
            del self._pending[:take]
            self._remaining -= take
            if self._remaining == 0:
                self._end_frame()

    def close(self) -> None:
        """Mark end of stream.

        Payload bytes of a truncated frame were already appended as they
        arrived; a truncated header carries no payload and is dropped.
        """
        if self._closed:
            return
        self._closed = True
        if self._stream is not None:
            logger.debug(
                "Stream ended mid-frame",
                job_id=self._job_id,
                stream=self._stream,
                missing_bytes=self._remaining,
            )
        elif self._pending:
            logger.debug(
                "Stream ended inside a frame header",
                job_id=self._job_id,
                dropped_bytes=len(self._pending),
            )
        self._pending.clear()

    def drain(self, sock: Any, chunk_size: int = 4096) -> None:
        """Read ``sock`` until the engine closes it.

        Blocking; meant to run in a worker thread. Socket errors end the
        stream and are logged, never raised.
        """
        try:
            while True:
                chunk = read_chunk(sock, chunk_size)
                if not chunk:
                    break
                self.feed(chunk)
        except (OSError, ValueError) as e:
            # ValueError: read on a socket closed by cleanup
            logger.warning("Attach stream error", job_id=self._job_id, error=str(e))
        finally:
            self.close()
            logger.debug(
                "Attach stream ended",
                job_id=self._job_id,
                frames=self._frames,
                stdout_bytes=len(self._stdout),
                stderr_bytes=len(self._stderr),
            )

    def _append(self, stream_type: int, payload: bytes) -> None:
        if stream_type in (STREAM_STDIN, STREAM_STDOUT):
            self._stdout += payload
        elif stream_type == STREAM_STDERR:
            self._stderr += payload
        elif stream_type == STREAM_SYSTEMERR:
            logger.warning(
                "Engine reported a stream error",
                job_id=self._job_id,
                message=payload.decode("utf-8", errors="replace"),
            )
        else:
            logger.warning(
                "Unknown stream type in attach stream",
                job_id=self._job_id,
                stream=stream_type,
                size=len(payload),
            )

    def _end_frame(self) -> None:
        self._stream = None
        self._remaining = 0
        self._frames += 1


def demultiplex(data: bytes) -> FrameDemultiplexer:
    """Demultiplex a complete captured stream."""
    demux = FrameDemultiplexer()
    demux.feed(data)
    demux.close()
    return demux
