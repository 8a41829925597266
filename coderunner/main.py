"""Main FastAPI application for the Code Runner API."""

# Standard library imports
import asyncio
from contextlib import asynccontextmanager

# Third-party imports
import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Local application imports
from .api import execute, health
from .config import settings
from .dependencies.services import get_engine_context
from .middleware.request_logging import RequestLoggingMiddleware
from .services.engine import initialize_engine
from .utils.error_handlers import register_exception_handlers
from .utils.logging import setup_logging

# Setup logging
setup_logging()
logger = structlog.get_logger()

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    The engine probe runs in the background so the liveness endpoint answers
    while it retries.
    """
    logger.info(
        "Starting Code Runner API",
        version=VERSION,
        docker_host=settings.docker_host,
        workspace_root=settings.workspace_root,
    )
    if settings.api_debug:
        logger.warning("Debug mode is enabled - disable in production")

    engine = get_engine_context()
    probe = asyncio.create_task(initialize_engine(engine))

    logger.info("Code Runner API startup completed")

    yield

    logger.info("Shutting down Code Runner API")

    if not probe.done():
        probe.cancel()
        try:
            await probe
        except asyncio.CancelledError:
            logger.info("Engine probe cancelled")
    engine.close()

    logger.info("Code Runner API shutdown completed")


app = FastAPI(
    title="Code Runner API",
    description="Runs code submissions in resource-capped, throwaway containers",
    version=VERSION,
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    debug=settings.api_debug,
    lifespan=lifespan,
)

if settings.enable_access_logs:
    app.add_middleware(RequestLoggingMiddleware)

# Add CORS middleware (conditionally)
if settings.enable_cors:
    origins = settings.cors_origins if settings.cors_origins else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    logger.info("CORS enabled", origins=origins)

# Register global error handlers
register_exception_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(execute.router, tags=["execute"])


def run_server():
    api = settings.api
    logger.info(f"Starting HTTP server on {api.api_host}:{api.api_port}")
    uvicorn.run(
        "coderunner.main:app",
        host=api.api_host,
        port=api.api_port,
        reload=api.api_reload,
        log_level=settings.log_level.lower(),
        access_log=settings.enable_access_logs,
        timeout_keep_alive=120,
    )


if __name__ == "__main__":
    run_server()
