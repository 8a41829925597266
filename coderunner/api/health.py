"""Health check and service information endpoints."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..config import LANGUAGES, get_timeout, settings
from ..dependencies.services import EngineContextDep

router = APIRouter()


@router.get("/", summary="Liveness check")
async def health_check():
    """Healthy whenever the process serves requests, engine or not."""
    return {"status": "healthy"}


@router.get("/health/engine", summary="Container engine status")
async def engine_health(engine: EngineContextDep):
    """Report the outcome of the startup connection probe."""
    body = {
        "status": "healthy" if engine.is_connected else "unhealthy",
        "engine": engine.to_dict(),
    }
    return JSONResponse(status_code=200 if engine.is_connected else 503, content=body)


@router.get("/api/languages", summary="Supported languages")
async def list_languages():
    """List the languages the service can run."""
    return {
        "languages": [
            {
                "id": spec.identifier,
                "name": spec.name,
                "image": spec.image,
                "aliases": list(spec.aliases),
                "timeout_seconds": get_timeout(
                    spec,
                    default=settings.sandbox_timeout_seconds,
                    slow_start=settings.sandbox_slow_start_timeout_seconds,
                ),
            }
            for spec in LANGUAGES.values()
        ]
    }
