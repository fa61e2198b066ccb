"""
FastAPI application for the Lumi execution server.

Run it with ``lumi-agent-server`` or ``uvicorn lumi_agent.server.main:app``.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from lumi_agent import __version__
from lumi_agent.core.config import settings
from lumi_agent.core.logging_config import get_logger, setup_logging

from .api.v1 import health, sessions
from .core import constant
from .core.database import init_db
from .exception_handlers import setup_exception_handlers
from .services.orchestrator import get_orchestrator

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup; cancel in-flight sessions and flush audit writes on shutdown."""
    try:
        logger.info("Starting up Lumi agent server...")
        await init_db()
        logger.info(f"Database ready at {settings.database_url.split('@')[-1]}")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    yield

    logger.info("Shutting down Lumi agent server...")
    await get_orchestrator().shutdown()


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="Execution core of the Lumi agent platform: sessions, approvals and cancellation.",
    version=__version__,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    lifespan=lifespan,
)

setup_exception_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(sessions.router, prefix=f"{constant.API_V1_STR}/sessions", tags=["sessions"])


def run() -> None:
    """Run the server with uvicorn using the configured host and port."""
    uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_config=None)
