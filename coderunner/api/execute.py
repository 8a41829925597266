"""Code execution endpoint."""

from typing import Optional

import structlog
from fastapi import APIRouter, Body

from ..dependencies.services import OrchestratorDep
from ..models.errors import ValidationError
from ..models.execution import ExecuteRequest, ExecuteResponse

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/api/execute", response_model=ExecuteResponse)
async def execute_code(
    orchestrator: OrchestratorDep,
    request: Optional[ExecuteRequest] = Body(None),
) -> ExecuteResponse:
    """Run a code submission in a fresh sandbox.

    Responds 200 with the program's stdout and stderr when it exits with
    status 0. Every failure is a single error message: 400 for a bad request,
    500 for anything that went wrong while running it.
    """
    if request is None:
        logger.warning("Request body is missing")
        raise ValidationError("Request body is missing")

    if not request.language or not request.code:
        logger.warning(
            "Language or code is missing in request",
            has_language=bool(request.language),
            has_code=bool(request.code),
        )
        raise ValidationError("Language and code are required")

    result = await orchestrator.execute(request.language, request.code, request.input)
    return ExecuteResponse(output=result.stdout, error=result.stderr)
