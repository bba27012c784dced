"""FastAPI application for the render service.

This module configures the FastAPI application with middleware, error
handling and the render engine lifecycle. The request coordinator is created
in the application lifespan and stored on ``app.state``; tests inject their
own coordinator through ``create_app``.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.schemas import ErrorDetail, FailureResponse, HealthResponse
from app.api.routes import render_router
from app.render import ErrorKind, RequestCoordinator, __version__
from app.render.config import RenderConfig, RenderConfigManager
from app.render.models.job import new_job_id


logger = logging.getLogger(__name__)

# Application metadata
APP_VERSION = __version__
APP_TITLE = "Render Service API"
APP_DESCRIPTION = """
Render Service turns HTML into PDFs and web pages into screenshots with a headless browser.

## Features

* **PDF Generation**: Render inline HTML to paged PDF documents
* **Screenshots**: Capture remote pages as JPEG or PNG
* **Readiness Detection**: Wait for loaders, images and late layout before capture
* **Resource Blocking**: Skip media, fonts and other heavy sub-resources during load

Every request runs in its own isolated browser context.
"""

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(
    config: Optional[RenderConfig] = None,
    coordinator: Optional[RequestCoordinator] = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Service configuration (loaded from render.yaml if None)
        coordinator: Pre-built coordinator; when omitted one owning its own
            browser is created and started in the lifespan

    Returns:
        Configured FastAPI application instance
    """
    if config is None:
        config = RenderConfigManager().config
    service = config.get_service_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.coordinator is None:
            app.state.coordinator = RequestCoordinator(config=config.get_coordinator_config())
        await app.state.coordinator.start()
        logger.info(f"{service.name} ready")
        try:
            yield
        finally:
            await app.state.coordinator.stop()
            logger.info(f"{service.name} stopped")

    app = FastAPI(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.service_name = service.name
    app.state.coordinator = coordinator
    app.state.start_time = datetime.utcnow()

    # Configure CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    # Add request tracking middleware
    @app.middleware("http")
    async def add_request_id_and_logging(request: Request, call_next):
        """Add request ID and logging middleware."""
        # A caller-supplied request ID becomes the render job ID
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_job_id()
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(
            f"[{request_id}] Request started: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_host": request.client.host if request.client else None,
            }
        )

        try:
            response = await call_next(request)

            response.headers[REQUEST_ID_HEADER] = request_id

            duration = time.time() - start_time
            logger.info(
                f"[{request_id}] Request completed: {request.method} {request.url.path} - {response.status_code}",
                extra={
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "duration_ms": round(duration * 1000, 2),
                }
            )

            return response

        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"[{request_id}] Request failed: {request.method} {request.url.path} - {str(e)}",
                extra={
                    "request_id": request_id,
                    "error": str(e),
                    "duration_ms": round(duration * 1000, 2),
                },
                exc_info=True
            )
            raise

    def error_response(
        request: Request,
        status_code: int,
        kind: ErrorKind,
        message: str,
        details: Optional[dict] = None
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=status_code,
            content=FailureResponse(
                error=ErrorDetail(kind=kind, message=message),
                details=details,
                request_id=request_id,
            ).to_json()
        )

    def kind_for_status(status_code: int) -> ErrorKind:
        return ErrorKind.VALIDATION_ERROR if 400 <= status_code < 500 else ErrorKind.INTERNAL_ERROR

    # Global exception handlers
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with consistent error format."""
        return error_response(request, exc.status_code, kind_for_status(exc.status_code), str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors with detailed information."""
        errors = []
        for error in exc.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"][1:])  # Skip 'body'
            errors.append({
                "field": field_path,
                "message": error["msg"],
                "type": error["type"],
            })

        return error_response(
            request,
            422,
            ErrorKind.VALIDATION_ERROR,
            "Request validation failed",
            details={"validation_errors": errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle Starlette HTTP exceptions."""
        return error_response(request, exc.status_code, kind_for_status(exc.status_code), str(exc.detail))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        request_id = getattr(request.state, "request_id", None)

        logger.error(
            f"[{request_id}] Unhandled exception: {str(exc)}",
            exc_info=True
        )

        return error_response(request, 500, ErrorKind.INTERNAL_ERROR, "An unexpected error occurred")

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
        description="Liveness probe; does not exercise the browser"
    )
    async def health_check():
        return HealthResponse(status="ok", service_name=app.state.service_name)

    @app.get(
        "/stats",
        tags=["System"],
        summary="Render statistics",
        description="Job, failure and browser context counters since startup"
    )
    async def render_stats():
        coordinator = app.state.coordinator
        if coordinator is None:
            raise HTTPException(status_code=503, detail="Render engine not available")
        stats = coordinator.get_stats()
        stats.pop('errors', None)
        stats['uptime_seconds'] = (datetime.utcnow() - app.state.start_time).total_seconds()
        return JSONResponse(content=_jsonable(stats))

    @app.get("/", include_in_schema=False)
    async def root():
        return JSONResponse(
            content={
                "message": APP_TITLE,
                "version": APP_VERSION,
                "documentation": "/docs",
                "openapi": "/openapi.json"
            }
        )

    app.include_router(render_router)

    return app


def _jsonable(stats: dict) -> dict:
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in stats.items()
    }


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    import uvicorn

    manager = RenderConfigManager()
    configure_logging(manager.config.log_level)
    settings = manager.config.get_service_settings()

    uvicorn.run(
        create_app(manager.config),
        host=settings.host,
        port=settings.port,
        log_level="info",
        access_log=True,
    )
