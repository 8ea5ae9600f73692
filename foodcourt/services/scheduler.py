"""
Task scheduler
"""

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from foodcourt.core.config import Config
from foodcourt.repositories.exceptions import RepositoryError
from foodcourt.services.notification_dispatcher import NotificationDispatcher


logger = logging.getLogger(__name__)


class TaskScheduler:
    """Periodic background jobs"""

    def __init__(self, dispatcher: NotificationDispatcher):
        """
        Args:
            dispatcher: Dispatcher whose outbox is retried
        """
        self.dispatcher = dispatcher
        self.scheduler = AsyncIOScheduler()

    async def start(self):
        """Start the scheduler (must be called from a running event loop)"""
        # Parked notifications
        self.scheduler.add_job(
            self.retry_notification_outbox,
            trigger=IntervalTrigger(minutes=Config.OUTBOX_RETRY_INTERVAL),
            id="retry_notification_outbox",
            name="Retry parked notifications",
            replace_existing=True,
        )

        self.scheduler.start()
        logger.info(
            "Task scheduler started (outbox retry every %s min)", Config.OUTBOX_RETRY_INTERVAL
        )

    async def stop(self):
        """Stop the scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            # AsyncIOScheduler finishes shutting down on the next loop iteration
            await asyncio.sleep(0)
        logger.info("Task scheduler stopped")

    async def retry_notification_outbox(self) -> int:
        """
        Re-dispatch parked notifications

        Returns:
            Number of notifications delivered in this run
        """
        try:
            return await self.dispatcher.retry_outbox()
        except RepositoryError as e:
            # Next run tries again
            logger.error("Outbox retry run failed: %s", e)
            return 0
