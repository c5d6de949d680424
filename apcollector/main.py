"""APCollector Backend Application.

This is the main entry point for the APCollector backend service.
A creator opens a temporary room and shares its id; participants each
upload one editable set of files into it, and the creator downloads
everything as two zip bundles. Rooms expire 24 hours after creation.

Modules:
    - rooms: Room records, expiry, teardown and the background sweeper
    - submissions: Per-participant file sets (upload / remove / cancel)
    - files: Filename classifier and the room-scoped file area on disk
    - archives: Lazily built, cached zip bundles per room and category
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apcollector.archives.router import router as archives_router
from apcollector.config import AppConfig, get_config
from apcollector.errors import BadRequestError, CollectorError
from apcollector.rooms.lifecycle import Clock
from apcollector.rooms.router import router as rooms_router
from apcollector.state import CollectorState
from apcollector.submissions.router import router as submissions_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

for _noisy in ("multipart", "python_multipart", "httpx", "httpcore"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None, clock: Optional[Clock] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Settings to use; defaults to the process-wide config.
        clock: Source of "now" (naive UTC); tests pass a controllable one.
    """
    app_config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the collector state before serving and close it afterwards."""
        configured_level = getattr(logging, app_config.logging.level.upper(), None)
        if configured_level is not None:
            logging.getLogger().setLevel(configured_level)
            logger.info("Root logger level set to %s", app_config.logging.level.upper())

        state = CollectorState.open(app_config, clock=clock)
        app.state.collector = state

        if app_config.sweeper.enabled:
            await state.sweeper.start()
        else:
            logger.info("Expiry sweeper disabled in config")

        yield  # Application runs here

        await state.sweeper.stop()
        state.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="APCollector API",
        description="Temporary rooms for collecting participants' files",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_config.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    @app.exception_handler(CollectorError)
    async def collector_error_handler(request: Request, exc: CollectorError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            {"success": False, "error": exc.message},
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Render request validation failures as a 400 in the common error shape."""
        problems = []
        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"][1:]) or str(error["loc"][0])
            problems.append(f"{field_path}: {error['msg']}")
        logger.warning("Invalid request to %s %s: %s", request.method, request.url.path, problems)
        return await collector_error_handler(
            request, BadRequestError("Invalid request: " + "; ".join(problems))
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            {"success": False, "error": "Internal server error"},
            status_code=500,
        )

    app.include_router(rooms_router)
    app.include_router(submissions_router)
    app.include_router(archives_router)

    @app.get("/api/health")
    async def health() -> dict:
        """Health check endpoint."""
        return {"success": True, "message": "API is running"}

    return app


app = create_app()
