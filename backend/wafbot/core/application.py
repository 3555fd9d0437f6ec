"""
FastAPI Application Factory
Creates and configures the FastAPI application instance
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.responses import Response

from wafbot.api.v1.router import api_router
from wafbot.core.client_registry import registry
from wafbot.core.config import settings
from wafbot.core.error_handler import setup_error_handling
from wafbot.core.lifespan import lifespan
from wafbot.core.logging_config import setup_logging

# Initialize logger
logger = logging.getLogger(__name__)


def create_application() -> FastAPI:
    """
    Create and configure FastAPI application

    Returns:
        FastAPI: Configured application instance
    """
    # Setup logging first
    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Natural-language WAF log search over Slack and Athena",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan
    )

    # Setup standardized error handling
    setup_error_handling(app)

    # Include API routes
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check endpoint for load balancers"""
        health_status = {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": int(time.time() - getattr(app.state, "start_time", time.time())),
            "components": {
                "orchestrator": "ready" if registry.get_query_orchestrator() else "inactive",
                "athena": "ready" if registry.get_engine_clients() else "inactive",
            },
        }

        if getattr(app.state, "startup_errors", None):
            health_status["warnings"] = app.state.startup_errors
            health_status["status"] = "degraded"

        return health_status

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint"""
        from wafbot.core.prometheus_metrics import get_metrics, get_content_type
        return Response(content=get_metrics(), media_type=get_content_type())

    logger.info(f"{settings.app_name} application created successfully")
    return app
