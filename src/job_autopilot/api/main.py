"""Main FastAPI application for Job Autopilot."""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Optional, Type
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException

from job_autopilot import __version__
from job_autopilot.config import Settings, settings as default_settings
from job_autopilot.utils.logging import configure_logging, get_logger
from job_autopilot.api.routes import all_routers
from job_autopilot.api.models import ErrorResponse
from job_autopilot.core.errors import (
    AlreadyReviewed,
    NotFound,
    PersistenceFailure,
    PipelineError,
    TransientCollaboratorFailure,
    ValidationError,
)
from job_autopilot.core.pipeline import Pipeline, build_pipeline

logger = get_logger(__name__)

ERROR_STATUS: Dict[Type[PipelineError], int] = {
    ValidationError: 400,
    NotFound: 404,
    AlreadyReviewed: 409,
    PersistenceFailure: 503,
    TransientCollaboratorFailure: 503,
}


def status_for(exc: PipelineError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


def _error_response(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(ErrorResponse(
            error=error,
            message=message,
            details=details,
            timestamp=datetime.now(timezone.utc)
        ))
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    config: Settings = app.state.settings
    owns_pipeline = getattr(app.state, "pipeline", None) is None

    # Startup
    logger.info("Starting Job Autopilot API", database=config.database_url.split("://")[0])

    if owns_pipeline:
        app.state.pipeline = build_pipeline(config)
    pipeline: Pipeline = app.state.pipeline
    await pipeline.start()

    worker_task: Optional[asyncio.Task] = None
    if config.run_workers_in_api:
        worker_task = asyncio.create_task(pipeline.worker.run(), name="apply-worker-pool")
        logger.warning(
            "Apply rate limit is per process; do not also run `autopilot work` against this database",
            max_starts=config.rate_limit_max_starts,
            window_seconds=config.rate_limit_window_seconds
        )

    logger.info("Application startup completed successfully", workers_in_process=worker_task is not None)

    yield

    # Shutdown
    logger.info("Shutting down Job Autopilot API")

    if worker_task is not None:
        pipeline.worker.stop()
        await worker_task

    if owns_pipeline:
        await pipeline.close()
    else:
        await pipeline.dispatcher.drain()

    logger.info("Application shutdown completed successfully")


def create_app(pipeline: Optional[Pipeline] = None, config: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        pipeline: Prebuilt pipeline; built from configuration at startup when omitted
        config: Settings; the environment-derived settings when omitted
    """
    config = config or default_settings

    app = FastAPI(
        title="Job Autopilot API",
        description="Job matching with human review and a durable application queue",
        version=__version__,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        lifespan=lifespan
    )
    app.state.settings = config
    app.state.pipeline = pipeline

    # Add middleware
    setup_middleware(app, config)

    # Add exception handlers
    setup_exception_handlers(app, config)

    # Include routers
    for router in all_routers:
        app.include_router(router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "name": "Job Autopilot API",
            "version": __version__,
            "status": "running",
            "docs": "/docs" if config.debug else "disabled"
        }

    return app


def setup_middleware(app: FastAPI, config: Settings) -> None:
    """Setup application middleware."""

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = asyncio.get_running_loop().time()

        logger.info(
            "Request started",
            method=request.method,
            url=str(request.url),
            client_ip=request.client.host if request.client else None
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                method=request.method,
                url=str(request.url),
                error=str(e),
                duration_seconds=asyncio.get_running_loop().time() - start_time
            )
            raise

        logger.info(
            "Request completed",
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            duration_seconds=asyncio.get_running_loop().time() - start_time
        )
        return response


def setup_exception_handlers(app: FastAPI, config: Settings) -> None:
    """Setup global exception handlers."""

    @app.exception_handler(PipelineError)
    async def pipeline_exception_handler(request: Request, exc: PipelineError):
        status_code = status_for(exc)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "Pipeline error",
            error_type=type(exc).__name__,
            message=exc.message,
            status_code=status_code,
            url=str(request.url)
        )
        return _error_response(status_code, type(exc).__name__, exc.message, exc.details or None)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            "Validation error",
            errors=exc.errors(),
            url=str(request.url)
        )
        return _error_response(
            422,
            "ValidationError",
            "Request validation failed",
            {"validation_errors": jsonable_encoder(exc.errors())}
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            url=str(request.url)
        )
        return _error_response(exc.status_code, "HTTPException", str(exc.detail))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            url=str(request.url)
        )
        return _error_response(
            500,
            "InternalServerError",
            "An unexpected error occurred",
            {"error_type": type(exc).__name__} if config.debug else None
        )


def get_app() -> FastAPI:
    """Factory used by uvicorn: configures logging and builds the app from the environment."""
    configure_logging()
    return create_app()
