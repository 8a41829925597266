"""Exception handlers rendering every failure as an ErrorResponse envelope."""

import traceback
from typing import List, Optional, Union

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..models.errors import CodeRunnerException, ErrorDetail, ErrorResponse, ErrorType
from .id_generator import generate_request_id

logger = structlog.get_logger(__name__)

STATUS_ERROR_TYPES = {
    400: ErrorType.VALIDATION,
    404: ErrorType.RESOURCE_NOT_FOUND,
    405: ErrorType.VALIDATION,
    415: ErrorType.VALIDATION,
    503: ErrorType.SERVICE_UNAVAILABLE,
    504: ErrorType.TIMEOUT,
}


def _render(
    request: Request,
    status_code: int,
    message: str,
    error_type: ErrorType,
    details: Optional[List[ErrorDetail]] = None,
    request_id: Optional[str] = None,
    headers: Optional[dict] = None,
    **log_fields,
) -> JSONResponse:
    """Log the failure at a level matching its status and build the response."""
    request_id = request_id or generate_request_id()
    event = dict(
        status_code=status_code,
        error_type=error_type.value,
        error=message,
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else "unknown",
        **log_fields,
    )
    if details:
        event["details"] = [d.model_dump(exclude_none=True) for d in details]

    if status_code >= 500:
        logger.error("Request failed", **event)
    else:
        logger.warning("Request rejected", **event)

    body = ErrorResponse(
        error=message, error_type=error_type, details=details or None, request_id=request_id
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


async def code_runner_exception_handler(
    request: Request, exc: CodeRunnerException
) -> JSONResponse:
    """Typed service errors carry their own status and message."""
    return _render(
        request,
        exc.status_code,
        exc.message,
        exc.error_type,
        details=exc.details,
        request_id=exc.request_id,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Routing errors (unknown path, wrong method) and explicit HTTPExceptions."""
    error_type = STATUS_ERROR_TYPES.get(exc.status_code, ErrorType.INTERNAL_SERVER)
    return _render(
        request,
        exc.status_code,
        str(exc.detail),
        error_type,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """Malformed bodies share status 400 with the other request errors."""
    details = [
        ErrorDetail(
            field=" -> ".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in exc.errors()
    ]
    return _render(
        request, 400, "Invalid request body", ErrorType.VALIDATION, details=details
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unhandled; the message is not exposed to the caller."""
    return _render(
        request,
        500,
        "An unexpected error occurred",
        ErrorType.INTERNAL_SERVER,
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        traceback=traceback.format_exc(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install all handlers on ``app``."""
    app.add_exception_handler(CodeRunnerException, code_runner_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
