"""
TV Catalog - FastAPI application

Serves channel views joined from iptv-org style entity collections.
Run with ``python -m tvcatalog.main`` or ``uvicorn tvcatalog.main:create_app --factory``.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tvcatalog.config import Settings, get_settings
from tvcatalog.routers import catalog as catalog_router
from tvcatalog.services.catalog import CatalogService

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_app(
    settings: Optional[Settings] = None,
    catalog: Optional[CatalogService] = None,
) -> FastAPI:
    """Build the application around an explicit settings object and catalog service."""
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown events."""
        logger.info("Starting TV Catalog...")
        restored = await app.state.catalog.initialize()
        logger.info(f"Cache initialized ({restored} views restored)")
        yield
        logger.info("Shutting down TV Catalog...")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Channel directory grouped by country and category",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.catalog = catalog or CatalogService.from_settings(settings)

    app.include_router(catalog_router.router)

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": settings.app_version}

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
    )
