"""FastAPI application for the Event Crawler REST API.

This module configures the FastAPI application with middleware, error
handling, and OpenAPI documentation for the event scan API.
"""

import logging
import time
from datetime import datetime
import uuid

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from event_crawler import __version__
from event_crawler.api.schemas import ErrorResponse, HealthResponse
from event_crawler.api.routes import scans_router


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

APP_VERSION = __version__
APP_TITLE = "Event Crawler API"
APP_DESCRIPTION = """
Event Crawler captures the analytics events a live webpage emits.

## Features

* **Event Capture**: Records every tag-management queue push and direct
  analytics `event` call made while the page loads
* **Pass-through Instrumentation**: Hooks forward every call unchanged, so
  the page behaves as it would without the scanner
* **Isolated Sessions**: Each scan runs in its own headless browser
"""

app_start_time = datetime.utcnow()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def add_request_id_and_logging(request: Request, call_next):
        """Add request ID and logging middleware."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_host": request.client.host if request.client else None,
            }
        )

        try:
            response = await call_next(request)

            response.headers["X-Request-ID"] = request_id

            duration = time.time() - start_time
            logger.info(
                f"Request completed: {request.method} {request.url.path} - {response.status_code}",
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
                f"Request failed: {request.method} {request.url.path} - {str(e)}",
                extra={
                    "request_id": request_id,
                    "error": str(e),
                    "duration_ms": round(duration * 1000, 2),
                },
                exc_info=True
            )
            raise

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with consistent error format."""
        request_id = getattr(request.state, "request_id", None)

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=f"http_{exc.status_code}",
                message=str(exc.detail),
                request_id=request_id,
                timestamp=datetime.utcnow()
            ).model_dump(mode='json')
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors with detailed information."""
        request_id = getattr(request.state, "request_id", None)

        errors = []
        for error in exc.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"][1:])
            errors.append({
                "field": field_path,
                "message": error["msg"],
                "type": error["type"],
            })

        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error="validation_error",
                message="Request validation failed",
                details={"validation_errors": errors},
                request_id=request_id,
                timestamp=datetime.utcnow()
            ).model_dump(mode='json')
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle Starlette HTTP exceptions."""
        request_id = getattr(request.state, "request_id", None)

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=f"http_{exc.status_code}",
                message=str(exc.detail),
                request_id=request_id,
                timestamp=datetime.utcnow()
            ).model_dump(mode='json')
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        request_id = getattr(request.state, "request_id", None)

        logger.error(
            f"Unhandled exception in request {request_id}: {str(exc)}",
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="internal_server_error",
                message="An unexpected error occurred",
                request_id=request_id,
                timestamp=datetime.utcnow()
            ).model_dump(mode='json')
        )

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
        description="Returns the current health status of the API"
    )
    async def health_check():
        """Health check endpoint for monitoring and operational purposes."""
        uptime = (datetime.utcnow() - app_start_time).total_seconds()

        return HealthResponse(
            status="healthy",
            version=APP_VERSION,
            timestamp=datetime.utcnow(),
            services={"scan_engine": "healthy"},
            uptime_seconds=uptime
        )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint pointing at the API documentation."""
        return JSONResponse(
            content={
                "message": APP_TITLE,
                "version": APP_VERSION,
                "documentation": "/docs",
                "openapi": "/openapi.json"
            }
        )

    app.include_router(scans_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "event_crawler.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
        access_log=True,
    )
