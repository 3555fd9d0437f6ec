from contextlib import asynccontextmanager
import logging
import time
from typing import AsyncGenerator

from fastapi import FastAPI

from wafbot.core.client_registry import registry
from wafbot.core.initializers import init_orchestrator

# Initialize logger
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager
    Handles startup and shutdown events
    """
    # Startup
    start_time = time.time()
    startup_errors = []

    logger.info("Starting WAF query bot")

    if registry.get_query_orchestrator() is None:
        success, err = await init_orchestrator()
        if not success:
            startup_errors.append(f"Orchestrator failed: {err}")

    app.state.startup_errors = startup_errors
    app.state.start_time = start_time

    if startup_errors:
        logger.warning(f"System started with {len(startup_errors)} warnings")
    else:
        logger.info("All systems ready")

    yield

    # Shutdown
    logger.info("Shutting down...")
    registry.clear()
    logger.info("Shutdown complete")
