"""Image Chat API - Main Application Module.

This module initializes the FastAPI application with proper configuration,
middleware, routing, and lifecycle management for the image-generation chat
service.
"""

import logging
import sys
import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

# Add the project root to Python path if running directly
if __name__ == "__main__":
    project_root = Path(__file__).parent.parent
    sys.path.insert(0, str(project_root))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import LogFormatEnum, get_config_summary, settings
from app.core.dependencies import get_generation_dispatcher
from app.database import AsyncSessionLocal, engine
from app.schemas.base import ErrorResponseSchema
from models import Base

logger = logging.getLogger(__name__)

LOG_FORMATS = {
    LogFormatEnum.simple: "%(asctime)s %(levelname)s [%(name)s] %(message)s",
    LogFormatEnum.json: '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
}


def configure_logging() -> None:
    logging.basicConfig(level=settings.log_level.value, format=LOG_FORMATS[settings.log_format])
    logging.getLogger().setLevel(settings.log_level.value)


def error_response(request: Request, status_code: int, message: str, error_code: str, details=None, headers=None):
    body = ErrorResponseSchema(
        message=message,
        error_code=error_code,
        details=details,
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Manage application lifecycle events."""
    configure_logging()
    logger.info(f"🚀 Starting {settings.app_name}...")

    # Development mode: Auto-create tables if they don't exist
    # Production: Use Alembic migrations (alembic upgrade head)
    if settings.is_development:
        logger.info("📝 Development mode: Creating/updating database tables...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables created/verified")
    else:
        logger.info("🏭 Use 'alembic upgrade head' to manage database schema")
    logger.info(f"Generation dispatch mode: {settings.generation_dispatch_mode.value}")

    yield

    # Shutdown
    logger.info(f"🛑 Shutting down {settings.app_name}...")
    await get_generation_dispatcher().drain()
    await engine.dispose()
    logger.info("✅ Database connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Chat threads whose assistant turns are images from pluggable generation providers",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Add middleware
    setup_middleware(app)

    # Add exception handlers
    setup_exception_handlers(app)

    # Include routers
    setup_routers(app)

    return app


def setup_middleware(app: FastAPI):
    """Configure application middleware."""
    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def setup_exception_handlers(app: FastAPI):
    """Configure global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Handle custom exceptions that have structured detail
        if isinstance(exc.detail, dict) and "message" in exc.detail:
            message = exc.detail["message"]
            error_code = exc.detail.get("error_code", "HTTP_ERROR")
            details = exc.detail.get("details")
        else:
            message = str(exc.detail) if exc.detail else "An error occurred"
            error_code = "HTTP_ERROR"
            details = None

        return error_response(
            request, exc.status_code, message, error_code, details, headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # Convert errors to JSON-serializable format
        errors = []
        for error in exc.errors():
            error_dict = {
                "loc": error.get("loc", []),
                "msg": str(error.get("msg", "Validation error")),
                "type": error.get("type", "value_error"),
            }
            errors.append(error_dict)

        return error_response(request, 422, "Validation error", "VALIDATION_ERROR", errors)


def setup_routers(app: FastAPI):
    """Configure application routers."""
    # Import routers
    from app.domains.chat.controller import message_router
    from app.domains.chat.controller import router as chat_router
    from app.domains.files.controller import router as files_router
    from app.domains.generation.controller import router as generation_router
    from app.domains.provider.controller import router as provider_router

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        db_status = "healthy"
        try:
            async with AsyncSessionLocal() as db:
                await db.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Database health check failed: {str(e)}")
            db_status = "unhealthy"

        return JSONResponse(
            status_code=200 if db_status == "healthy" else 503,
            content={
                "status": "healthy" if db_status == "healthy" else "degraded",
                "version": settings.version,
                "environment": settings.environment.value,
                "timestamp": datetime.now(UTC).isoformat(),
                "services": {
                    "database": db_status,
                    "dispatcher": {
                        "mode": settings.generation_dispatch_mode.value,
                        "in_flight": get_generation_dispatcher().in_flight,
                    },
                },
            },
        )

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        summary = get_config_summary()
        return {
            "name": summary["app_name"],
            "version": summary["version"],
            "description": "Image generation chat API",
            "docs_url": "/docs" if settings.is_development else None,
        }

    # Include domain routers
    app.include_router(chat_router)
    app.include_router(message_router)
    app.include_router(generation_router)
    app.include_router(provider_router)
    app.include_router(files_router)


# Create the application instance
app = create_app()


def main():
    """Entry point for running the application directly."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()
