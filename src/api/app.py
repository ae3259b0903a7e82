"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src import __version__
from src.api import routes
from src.automation.models import utc_timestamp
from src.automation.service import AutomationService
from src.utils.logging import get_logger

logger = get_logger("api")


def create_app(service: AutomationService | None = None) -> FastAPI:
    """Build the HTTP application around one shared :class:`AutomationService`.

    Args:
        service: Service to expose; a settings-configured one is built if omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"DataSage API v{__version__} ready")
        yield
        logger.info("DataSage API shutting down")

    app = FastAPI(
        title="DataSage",
        description="Declarative browser automation and data extraction",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service or AutomationService()

    # Browser-extension clients call from arbitrary origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(routes.router)

    @app.get("/")
    def read_root():
        """Return service metadata."""
        return {
            "name": "DataSage",
            "version": __version__,
            "status": "running",
            "endpoints": {
                "health": "/health",
                "automation": "/api/automation",
                "status": "/api/status",
            },
        }

    @app.get("/health")
    def health_check():
        """Return a health probe response."""
        return {"status": "healthy", "timestamp": utc_timestamp()}

    return app
