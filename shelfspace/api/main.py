"""
ShelfSpace API

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import FastAPI, Request
from loguru import logger

from shelfspace.logging_config import configure_logging
from .schemas import HealthResponse
from .routes import frames
from .middleware import setup_exception_handlers
from .dependencies import SessionRegistry, Settings, get_settings


VERSION = "1.0.0"


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Sessions are created on demand, so startup only logs the detection
    setup; shutdown drops every session.
    """
    settings: Settings = app.state.settings
    logger.info(f"Starting ShelfSpace in {settings.environment} mode")
    logger.info(
        f"Detection profile '{settings.sensitivity_profile}', "
        f"external detector: {settings.detector_url or 'none'}"
    )

    try:
        yield
    finally:
        logger.info(f"Shutting down ShelfSpace, dropping {len(app.state.sessions)} sessions")
        app.state.sessions.clear()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(
        level="DEBUG" if settings.debug else settings.log_level,
        serialize=settings.environment == "production",
    )

    app = FastAPI(
        title="ShelfSpace",
        description="Live bookshelf detection and space optimization.",
        version=VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.sessions = SessionRegistry(settings)

    setup_exception_handlers(app)

    # ==========================================================================
    # Routers
    # ==========================================================================

    api_prefix = "/api/v1"

    app.include_router(
        frames.router,
        prefix=api_prefix,
    )

    # ==========================================================================
    # Root Routes
    # ==========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request) -> HealthResponse:
        """
        Health check endpoint.

        Reports the detector setup and the number of live sessions.
        """
        registry: SessionRegistry = request.app.state.sessions

        components = {
            "local_pipeline": "healthy",
            "external_detector": "configured" if settings.detector_url else "not_configured",
            "sessions": str(len(registry)),
        }

        return HealthResponse(
            status="healthy",
            version=VERSION,
            components=components,
        )

    return app


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    # Sessions live in process memory, so a single worker serves them all
    uvicorn.run(
        "shelfspace.api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        workers=1,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
