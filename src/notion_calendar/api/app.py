"""HTTP API: FastAPI application factory.

The app factory creates a FastAPI instance with:
- Lifespan handler that opens the counter DB pool and a shared HTTP client
- Health endpoint at GET /api/health
- Calendar, cron, and ticket routers
- Consistent error envelopes via ``register_error_handlers``
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from notion_calendar import __version__
from notion_calendar.api.deps import AppResources, wire_resources
from notion_calendar.api.middleware import register_error_handlers
from notion_calendar.api.routers.calendar import router as calendar_router
from notion_calendar.api.routers.global_ids import router as global_ids_router
from notion_calendar.api.routers.tickets import router as tickets_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open shared resources on startup and release them on shutdown."""
    resources: AppResources | None = getattr(app.state, "resources", None)
    if resources is None:
        resources = AppResources.from_env()
        app.state.resources = resources
    await resources.open()
    wire_resources(app, resources)
    logger.info("API resources initialized")

    yield

    await resources.close()
    logger.info("API resources closed")


def create_app(resources: AppResources | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    resources:
        Pre-built handles to use instead of ones read from the environment.
        The lifespan still opens and closes them.
    """
    app = FastAPI(
        title="Notion Calendar API",
        version=__version__,
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False
    if resources is not None:
        app.state.resources = resources

    register_error_handlers(app)

    app.include_router(calendar_router)
    app.include_router(global_ids_router)
    app.include_router(tickets_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app
