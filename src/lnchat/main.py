from __future__ import annotations

import asyncio
import logging
import os
import sys

import uvicorn
from pydantic import ValidationError

# Install uvloop for better async performance (Linux/macOS only)
if sys.platform != "win32":
    try:
        import uvloop

        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    except ImportError:
        pass  # uvloop not available, continue with default event loop

from .env import get_settings

logger = logging.getLogger(__name__)


def _setup_prometheus_multiproc_dir() -> None:
    """Prepare the Prometheus multiprocess directory before Uvicorn starts.

    This ensures the process writes to a clean directory so metrics can be
    correctly aggregated by the multiprocess collector.
    """
    prom_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if not prom_dir:
        return

    os.makedirs(prom_dir, exist_ok=True)
    for filename in os.listdir(prom_dir):
        file_path = os.path.join(prom_dir, filename)
        if os.path.isfile(file_path):
            os.remove(file_path)


def main() -> None:
    """Main entry point for the comment service."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = get_settings()
    except (ValidationError, ValueError, OSError) as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    logger.info("Database: %s", settings.database_url)
    logger.info("Lightning node: %s", settings.lnd_rest_url)
    logger.info(
        "Amount range: %d-%d msat, comments up to %d characters",
        settings.min_sendable,
        settings.max_sendable,
        settings.comment_allowed,
    )
    logger.info("API will be available at: http://%s:%d", settings.api_host, settings.api_port)

    _setup_prometheus_multiproc_dir()

    # Comment cache, subscribers and settlement waits live in this process,
    # so the service always runs a single worker.
    uvicorn.run(
        "lnchat.api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
