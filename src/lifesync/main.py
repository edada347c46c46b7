"""FastAPI application factory and entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from lifesync import __version__
from lifesync.adapters import build_adapters
from lifesync.config import get_settings
from lifesync.db.engine import dispose_engine, get_session_factory, init_db
from lifesync.routers import activity, admin, cache, health, timetracking
from lifesync.services.page_cache import PageCache
from lifesync.services.scheduler import PollScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    # Startup
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.environment == "development" else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting lifesync v%s in %s mode", __version__, settings.environment)

    # Reject insecure default secrets in production
    settings.validate_production()

    # Create tables (for SQLite dev mode; production uses Alembic migrations)
    if settings.environment == "development":
        await init_db()
        logger.info("Database tables created/verified")

    scheduler: PollScheduler = app.state.scheduler
    for adapter in build_adapters(settings, get_session_factory()):
        scheduler.schedule(adapter.name, adapter.interval_ms, adapter.poll)

    page_cache: PageCache = app.state.page_cache
    if page_cache.enabled:
        scheduler.schedule("page-cache", page_cache.interval_ms, page_cache.run_sweep)
    else:
        logger.warning("Page cache is disabled")

    yield

    # Shutdown
    await scheduler.stop()
    await dispose_engine()
    logger.info("lifesync shut down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Disable interactive docs in production to reduce attack surface
    docs_url = "/docs" if settings.environment == "development" else None
    redoc_url = "/redoc" if settings.environment == "development" else None
    openapi_url = "/openapi.json" if settings.environment == "development" else None

    app = FastAPI(
        title="lifesync API",
        description="Personal activity synchronization and lifelog API",
        version=__version__,
        lifespan=lifespan,
        docs_url=docs_url,
        redoc_url=redoc_url,
        openapi_url=openapi_url,
    )

    app.state.scheduler = PollScheduler()
    app.state.page_cache = PageCache(
        settings.cache_duration_secs, settings.cache_interval_secs
    )

    # Page cache sits innermost so CORS and security headers apply to hits too
    app.middleware("http")(app.state.page_cache.middleware())

    origins = [o.strip() for o in settings.cors_origins.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers middleware
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    # Include routers
    app.include_router(health.router)
    app.include_router(activity.router)
    app.include_router(timetracking.router)
    app.include_router(cache.router)
    app.include_router(admin.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "lifesync.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=(settings.environment == "development"),
    )
