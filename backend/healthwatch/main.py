"""Main FastAPI application - scheduled runs plus a small read/trigger API."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from . import __version__
from .config import Settings, settings
from .database import async_session, close_db, init_db
from .routers import monitors_router, runs_router
from .services.engine import CheckEngine
from .services.scheduler import SchedulerService
from .services.store import MonitorStore, SqlMonitorStore

logger = logging.getLogger(__name__)


def configure_logging(level: str = settings.log_level):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(
    store: Optional[MonitorStore] = None,
    engine: Optional[CheckEngine] = None,
    config: Settings = settings,
) -> FastAPI:
    """Create the application.

    Without a ``store`` the app owns the database: it creates the tables on
    startup and disposes the connection pool on shutdown.
    """
    owns_db = store is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown."""
        logger.info(f"Starting healthwatch {__version__}")
        if owns_db:
            await init_db()
            logger.info("Database initialized")
            app.state.store = SqlMonitorStore(async_session)
        else:
            app.state.store = store

        app.state.engine = engine or CheckEngine(app.state.store, config=config)
        app.state.scheduler = SchedulerService(app.state.engine, config.run_interval_seconds)
        app.state.scheduler.start()

        yield

        app.state.scheduler.stop()
        if owns_db:
            await close_db()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="healthwatch",
        description="Scheduled reachability and TLS certificate checks",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(monitors_router)
    app.include_router(runs_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "scheduler_running": app.state.scheduler.running,
        }

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
