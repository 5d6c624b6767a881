from contextlib import asynccontextmanager
from fastapi import FastAPI

from app.core.config import settings
from app.core.exception_handler import register_exception_handlers
from app.core.logging_config import configure_logging
from app.core.middleware import register_middlewares
from app.db.session import db
from app.services.cache_service import cache_service

# Routers
from app.api.v1.endpoints import book


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles application startup and shutdown events.
    """
    configure_logging()
    await db.connect()

    yield

    # Let an in-flight aggregate rebuild finish before the engine goes away
    await cache_service.wait_for_refresh()
    await db.disconnect()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description=settings.DESCRIPTION,
        lifespan=lifespan,
    )

    register_middlewares(app)
    register_exception_handlers(app)

    app.include_router(book.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_application()
