"""Application factory: builds the FastAPI app with middlewares, handlers, and routes."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
import structlog

from approvalhub.api.v1 import router as v1_router
from approvalhub.container import Services, build_services
from approvalhub.core import Settings, configure_logging, get_settings
from approvalhub.core.exceptions import (
    ConfigValidationFailed,
    NoProviderConfigured,
    SendFailed,
    WorkflowNotFound,
)
from approvalhub.schemas import ErrorResponse

logger = structlog.get_logger(__name__)


def _error(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            request_id=getattr(request.state, "request_id", None),
            details=details,
        ).model_dump(),
    )


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Overrides `get_settings()`.
        services: Pre-built component graph; built from settings at startup when omitted.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        configure_logging(settings.log_level, environment=settings.environment)
        logger.info(
            "Starting application",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment,
        )
        app.state.services = services or build_services(settings)
        app.state.services.start()
        try:
            yield
        finally:
            logger.info("Shutting down application")
            await app.state.services.aclose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Routes outbound WhatsApp messages across providers and runs "
            "human approval workflows over them."
        ),
        lifespan=lifespan,
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        start_time = time.perf_counter()
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        process_time = (time.perf_counter() - start_time) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"
        logger.info(
            "Request completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time_ms=round(process_time, 2),
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "validation_error",
            "Request validation failed",
            {"errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, dict) else {}
        response = _error(
            request,
            exc.status_code,
            detail.get("error", "http_error"),
            detail.get("message", str(exc.detail)),
        )
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(WorkflowNotFound)
    async def workflow_not_found_handler(request: Request, exc: WorkflowNotFound) -> JSONResponse:
        return _error(
            request,
            status.HTTP_404_NOT_FOUND,
            "workflow_not_found",
            str(exc),
            {"workflow_id": exc.workflow_id},
        )

    @app.exception_handler(NoProviderConfigured)
    async def no_provider_handler(request: Request, exc: NoProviderConfigured) -> JSONResponse:
        logger.error("No provider configured", error=str(exc))
        return _error(request, status.HTTP_503_SERVICE_UNAVAILABLE, "no_provider_configured", str(exc))

    @app.exception_handler(SendFailed)
    async def send_failed_handler(request: Request, exc: SendFailed) -> JSONResponse:
        details = {"message_id": exc.message.id} if exc.message else None
        return _error(request, status.HTTP_502_BAD_GATEWAY, "send_failed", str(exc), details)

    @app.exception_handler(ConfigValidationFailed)
    async def config_invalid_handler(request: Request, exc: ConfigValidationFailed) -> JSONResponse:
        return _error(
            request, status.HTTP_422_UNPROCESSABLE_ENTITY, "config_validation_failed", str(exc)
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            request_id=getattr(request.state, "request_id", None),
            error=str(exc),
            exc_info=exc,
        )
        return _error(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "An unexpected error occurred",
        )

    app.include_router(v1_router)

    return app
