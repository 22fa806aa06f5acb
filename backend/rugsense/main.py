"""
PURPOSE: Main FastAPI application factory and lifecycle management for RugSense.

Initializes the FastAPI application with:
- The Q-learning API router
- Exception handlers for validation and unexpected errors
- Startup (logging, storage backend, DecisionService) and shutdown (store close)
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rugsense import __version__
from rugsense.api import api_router
from rugsense.config.settings import Settings, settings as default_settings
from rugsense.services.decision_service import DecisionService
from rugsense.storage import create_store
from rugsense.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


# ════════════════════════════════════════════════════════════════
# Exception Handlers
# ════════════════════════════════════════════════════════════════


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    PURPOSE: Handle Pydantic validation errors with consistent JSON response.

    CALLED BY: FastAPI when request validation fails
    """
    logger.warning(
        "request_validation_failed",
        path=request.url.path,
        method=request.method,
        error_count=len(exc.errors())
    )
    safe_errors = jsonable_encoder(
        exc.errors(),
        custom_encoder={
            ValueError: lambda e: str(e),
            Exception: lambda e: str(e),
        },
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "status": "error",
            "detail": "Request validation failed",
            "errors": safe_errors,
        },
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    PURPOSE: Handle unexpected exceptions with logging and safe error response.

    CALLED BY: FastAPI exception handler middleware
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exception_type=type(exc).__name__
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "status": "error",
            "detail": "Internal server error",
        },
    )


# ════════════════════════════════════════════════════════════════
# FastAPI Application Factory
# ════════════════════════════════════════════════════════════════


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    PURPOSE: Create and configure the FastAPI application.

    Args:
        app_settings: Settings to run with; the module-level settings by default.

    Returns:
        FastAPI: Configured application. The DecisionService is built on
        startup and stored as app.state.decision_service.

    CALLED BY: Application entrypoint (uvicorn) and the API tests
    """
    config = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config.LOG_LEVEL)
        logger.info(
            "application_startup_starting",
            version=__version__,
            storage_backend=config.storage_backend(),
            training_enabled=config.TRAINING_ENABLED,
        )

        store = await create_store(config)
        service = DecisionService(store, config)
        await service.initialize()
        app.state.store = store
        app.state.decision_service = service
        logger.info("application_startup_complete")

        yield

        await store.close()
        logger.info("application_shutdown_complete")

    app = FastAPI(
        title="RugSense",
        description="Adaptive rug prediction and Q-learning side-bet decisions",
        version=__version__,
        lifespan=lifespan,
        docs_url=None if config.is_production() else "/docs",
        redoc_url=None if config.is_production() else "/redoc",
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router)

    @app.get("/", tags=["root"])
    async def root():
        return {
            "status": "ok",
            "service": "RugSense API",
            "version": __version__,
        }

    return app


app = create_app()


if __name__ == "__main__":
    """
    PURPOSE: Run the FastAPI application with Uvicorn.

    Usage:
        python -m rugsense.main
        OR
        uvicorn rugsense.main:app --host 0.0.0.0 --port 8000
    """
    import uvicorn

    uvicorn.run(
        "rugsense.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=default_settings.LOG_LEVEL.lower(),
    )
