"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from mailpulse.application.pipeline import Pipeline
from mailpulse.infrastructure import configure_logging, get_settings, redis_lifespan


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} API v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    if getattr(app.state, "pipeline", None) is not None:
        yield
        logger.info("Shutdown complete")
        return

    from mailpulse.cli.worker import create_pipeline_from_settings

    async with redis_lifespan(settings) as redis:
        app.state.pipeline = create_pipeline_from_settings(settings, redis)
        logger.info("Redis-backed pipeline ready")
        yield
        logger.info("Shutting down...")
        app.state.pipeline = None
    logger.info("Shutdown complete")


def create_app(pipeline: Pipeline | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Passing ``pipeline`` skips the Redis connection made at startup.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Scope status and admin controls for debounced email alerts",
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline

    from mailpulse.api.routes import router

    app.include_router(router)

    return app


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(), host=settings.api_host, port=settings.api_port)
