"""
Food-court order core service entry point

Opens the database, starts the outbox retry scheduler and runs until
SIGINT / SIGTERM.
"""

import asyncio
import logging
import signal
import sys

from foodcourt.core.config import Config
from foodcourt.database import Database
from foodcourt.utils.logging_setup import setup_logging
from foodcourt.utils.sentry import init_sentry


logger = logging.getLogger(__name__)


async def main():
    """Start the core and wait for a stop signal"""
    db = None
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises
            logger.debug("Signal handler for %s not supported", sig)

    try:
        init_sentry()

        errors = Config.validate()
        if errors:
            for error in errors:
                logger.error("Configuration error: %s", error)
            sys.exit(1)

        db = Database()
        await db.connect()
        await db.init_db()

        services = db.services
        await services.scheduler.start()
        logger.info("Food-court core started (database: %s)", Config.DATABASE_PATH)

        await stop_event.wait()
        logger.info("Stop signal received")

    finally:
        logger.info("Shutting down...")
        if db:
            # Stops the scheduler and drains pending notifications first
            await db.disconnect()
        logger.info("Food-court core stopped")


def run():
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopped by user")


if __name__ == "__main__":
    run()
