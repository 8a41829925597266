"""Request logging middleware."""

import time
from typing import Callable

import structlog
from fastapi import Request

from ..utils.id_generator import generate_request_id

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = b"x-request-id"


class RequestLoggingMiddleware:
    """Logs one line per request and tags every log line with a request id.

    The liveness probe is polled constantly, so only its first hit is logged.
    """

    def __init__(self, app: Callable, quiet_paths=("/",)):
        self.app = app
        self.quiet_paths = set(quiet_paths)
        self.quiet_logged = set()

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        path = request.url.path
        start_time = time.time()
        request_id = generate_request_id()

        skip_logging = path in self.quiet_paths and path in self.quiet_logged
        if path in self.quiet_paths:
            self.quiet_logged.add(path)

        response_status = None

        async def send_wrapper(message):
            nonlocal response_status
            if message["type"] == "http.response.start":
                response_status = message["status"]
                headers = list(message.get("headers", []))
                headers.append((REQUEST_ID_HEADER, request_id.encode("ascii")))
                message["headers"] = headers
            await send(message)

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            logger.error(
                "Request failed", method=request.method, path=path, error=str(e)
            )
            raise
        finally:
            if not skip_logging:
                log_kwargs = dict(
                    method=request.method,
                    path=path,
                    status=response_status,
                    duration_ms=round((time.time() - start_time) * 1000, 2),
                )
                if response_status and response_status >= 500:
                    logger.error("Request failed", **log_kwargs)
                elif response_status and response_status >= 400:
                    logger.warning("Request error", **log_kwargs)
                else:
                    logger.info("Request processed", **log_kwargs)
            structlog.contextvars.unbind_contextvars("request_id")
