"""dubsync API server."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI

from dubsync import __version__
from dubsync.api.deps import init_job_manager, shutdown_job_manager
from dubsync.api.routes import health, jobs, media, sync
from dubsync.config import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the job manager for the lifetime of the app."""
    init_job_manager(
        max_concurrent=settings.max_concurrent_jobs,
        output_dir=settings.output_dir,
    )
    logger.info("dubsync %s ready (max %d exports)", __version__, settings.max_concurrent_jobs)
    try:
        yield
    finally:
        await shutdown_job_manager()


def create_app() -> FastAPI:
    app = FastAPI(
        title="dubsync",
        description="Synchronized preview and export of dubbed video",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(health.router)
    app.include_router(media.router)
    app.include_router(sync.router)
    app.include_router(jobs.router)
    return app


app = create_app()


def main() -> None:
    """Run the API server with uvicorn."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings.ensure_directories()
    uvicorn.run(
        "dubsync.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
