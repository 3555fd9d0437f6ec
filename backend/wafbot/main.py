"""
Main FastAPI Application Entry Point
WAF query bot
"""

import logging
import signal
import sys

from wafbot.core.application import create_application

# Create FastAPI application instance
app = create_application()

logger = logging.getLogger(__name__)


def handle_shutdown_signal(signum, frame):
    """
    Handle shutdown signals (SIGTERM, SIGINT) for graceful shutdown
    """
    signal_name = "SIGTERM" if signum == signal.SIGTERM else "SIGINT"
    logger.info(f"Received {signal_name}, initiating graceful shutdown...")
    sys.exit(0)


if __name__ == "__main__":
    import uvicorn

    signal.signal(signal.SIGTERM, handle_shutdown_signal)
    signal.signal(signal.SIGINT, handle_shutdown_signal)

    uvicorn.run(
        "wafbot.main:app",
        host="0.0.0.0",
        port=8000,
        log_level="info",
        access_log=True,
        limit_concurrency=50,
        timeout_keep_alive=5,
    )
