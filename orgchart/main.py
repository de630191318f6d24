"""Main application entry point for the Org Chart Builder API."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from orgchart.api.admin_sheets import admin_sheets_router
from orgchart.api.employees import employees_router
from orgchart.api.integrity import integrity_router
from orgchart.api.org_charts import org_charts_router
from orgchart.config.settings import get_settings
from orgchart.data.connection import close_sheets_client, get_sheets_client
from orgchart.services.error_handling_service import ErrorHandlingService
from orgchart.utils.errors import APIError, SheetsError


# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    settings = get_settings()
    logger.info(f"Starting {settings.app_name}...")
    get_sheets_client(settings.sheets)
    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_sheets_client()
    logger.info("Application shutdown complete")


# =============================================================================
# Exception Handlers
# =============================================================================

async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle API errors and return structured responses."""
    response = exc.to_response()

    if isinstance(exc, SheetsError):
        errors: ErrorHandlingService = request.app.state.error_service
        app_error = errors.from_sheets_error(exc)
        errors.record(app_error)
        response.details = {
            **(response.details or {}),
            "user_message": errors.user_message(app_error),
        }

    return JSONResponse(
        status_code=response.status_code,
        content=response.to_dict(),
    )


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "API for building company org charts on top of a Google Sheets "
            "backing store, with hierarchy building and data integrity checks."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.error_service = ErrorHandlingService()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    app.include_router(employees_router)
    app.include_router(org_charts_router)
    app.include_router(integrity_router)
    app.include_router(admin_sheets_router)

    # Register exception handlers
    app.add_exception_handler(APIError, api_error_handler)

    @app.exception_handler(PydanticValidationError)
    async def pydantic_validation_handler(
        request: Request,
        exc: PydanticValidationError,
    ) -> JSONResponse:
        """Convert Pydantic validation errors to structured response."""
        field_errors = []
        for error in exc.errors():
            loc = ".".join(str(x) for x in error["loc"])
            field_errors.append({
                "field": loc,
                "message": error["msg"],
                "code": error["type"],
            })

        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "message": "Request validation failed",
                    "code": "validation_error",
                    "field_errors": field_errors,
                }
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unexpected error occurred")
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "message": "An unexpected error occurred",
                    "code": "internal_error",
                }
            },
        )

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check() -> dict:
        """Check application health."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "sheets_configured": settings.sheets.is_configured,
        }

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "orgchart.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
