"""FastAPI application entry-point."""

from __future__ import annotations

import atexit
from contextlib import asynccontextmanager

from fastapi import FastAPI

from borgbridge import __version__
from borgbridge.config import settings
from borgbridge.routers import commands, events, health, mounts
from borgbridge.services.mounts import mount_supervisor
from borgbridge.utils.logging import get_logger, setup_logging

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    setup_logging()
    log.info("app.started", backend=settings.backend.value, version=__version__)
    yield
    # Shutdown: no mount process may outlive the service
    await mount_supervisor.shutdown()
    log.info("app.stopped")


# exits that skip the lifespan shutdown
atexit.register(mount_supervisor.kill_all)


app = FastAPI(
    title="borgbridge",
    description="Command execution and mount supervision for BorgBackup",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(commands.router)
app.include_router(mounts.router)
app.include_router(events.router)


def run() -> None:
    """Console entry-point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
