"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskgrid.api import access, notifications, shares, websocket
from taskgrid.api.errors import register_error_handlers
from taskgrid.config import get_settings
from taskgrid.services.notification_bridge import get_notification_bridge

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    yield
    # Hand off whatever the broker refused while we were running
    bridge = get_notification_bridge()
    if bridge.pending_count:
        dispatched = bridge.flush_pending()
        logger.info(f"Flushed {dispatched} pending share events on shutdown")


app = FastAPI(
    title="Taskgrid API",
    description="Shared todo lists with hierarchical permissions and live notifications",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:3001"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_error_handlers(app)

# Register routers
app.include_router(shares.router)
app.include_router(access.router)
app.include_router(notifications.router)
app.include_router(websocket.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
