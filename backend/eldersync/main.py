"""
ElderSync - Main FastAPI Application
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, settings
from .api import auth_router, patients_router, iot_router, health_router
from .core.exceptions import ElderSyncError
from .core.logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .services.context import build_context

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"Invalid request: {location} {first.get('msg', '')}".strip()


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": message}``."""

    @app.exception_handler(ElderSyncError)
    async def domain_error_handler(request: Request, exc: ElderSyncError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _describe_validation_error(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra={"extra_fields": {"path": request.url.path, "method": request.method}},
        )
        return JSONResponse(status_code=500, content={"error": f"Internal server error: {exc}"})


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; its context is created in the lifespan."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events."""
        setup_logging(app_settings)
        context = build_context(app_settings)
        app.state.context = context

        logger.info(f"Starting {app_settings.app_name} v{app_settings.app_version}")
        logger.info(f"Storage backend: {app_settings.storage_backend}")
        logger.info(f"Auth backend: {app_settings.auth_backend}")
        logger.info(f"Log level: {app_settings.log_level.upper()}")
        yield
        await context.close()
        logger.info(f"Shutting down {app_settings.app_name}")

    app = FastAPI(
        title=app_settings.app_name,
        version=app_settings.app_version,
        description="Mobility and fall-risk monitoring for elderly patients",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging wraps CORS
    if app_settings.log_api_requests:
        app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(patients_router)
    app.include_router(iot_router)
    app.include_router(health_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": app_settings.app_name,
            "version": app_settings.app_version,
            "status": "running",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "eldersync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
