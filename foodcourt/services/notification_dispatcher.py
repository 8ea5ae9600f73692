"""
Notification dispatcher

Renders fixed templates and writes them to a sink. Delivery is
at-least-once; dispatch_later never blocks or fails the operation that
triggered it. Undelivered notifications are parked in the sink's outbox
and retried by the scheduler.
"""

import asyncio
import hashlib
import logging
from typing import Any

from foodcourt.core.config import Config
from foodcourt.database.models import Notification
from foodcourt.domain.exceptions import DispatchFailedError
from foodcourt.repositories.exceptions import RepositoryError
from foodcourt.repositories.notification_repository import NotificationSink, OutboxEntry
from foodcourt.utils.helpers import get_now
from foodcourt.utils.retry import RetryExhaustedError, retry_async
from foodcourt.utils.sentry import capture_dispatch_failure


logger = logging.getLogger(__name__)


class NotificationTemplate:
    """Fixed notification templates, one per trigger type"""

    ORDER_STATUS_CHANGED = "order_status_changed"
    ORDER_STATUS_OVERRIDDEN = "order_status_overridden"
    PAYOUT_APPROVED = "payout_approved"
    PAYOUT_REJECTED = "payout_rejected"
    ACCOUNT_SUSPENDED = "account_suspended"
    ACCOUNT_ACTIVATED = "account_activated"
    VENDOR_APPROVED = "vendor_approved"
    VENDOR_REJECTED = "vendor_rejected"
    COMMISSION_RATE_UPDATED = "commission_rate_updated"

    # template: (title, message)
    TEMPLATES: dict[str, tuple[str, str]] = {
        ORDER_STATUS_CHANGED: (
            "Order Status Updated",
            "Your order #{order_number} status has been updated to: {status_label}{note_suffix}",
        ),
        ORDER_STATUS_OVERRIDDEN: (
            "Order Status Updated by Admin",
            "Order #{order_number} status has been changed by an administrator "
            "to: {status_label}{note_suffix}",
        ),
        PAYOUT_APPROVED: (
            "Payout Request Approved",
            "Your payout request of {amount} has been approved.{notes_suffix}",
        ),
        PAYOUT_REJECTED: (
            "Payout Request Rejected",
            "Your payout request of {amount} has been rejected.{notes_suffix}",
        ),
        ACCOUNT_SUSPENDED: (
            "Account Suspended",
            "Your account has been suspended. Reason: {reason}{duration_suffix}",
        ),
        ACCOUNT_ACTIVATED: (
            "Account Reactivated",
            "Your account has been reactivated. Welcome back!",
        ),
        VENDOR_APPROVED: (
            "Vendor Application Approved",
            "Congratulations! Your vendor application has been approved. "
            "You can now start managing your restaurant.",
        ),
        VENDOR_REJECTED: (
            "Vendor Application Rejected",
            "Your vendor application has been rejected. Reason: {reason}",
        ),
        COMMISSION_RATE_UPDATED: (
            "Commission Rate Updated",
            "Your commission rate has been updated to {rate}%.",
        ),
    }

    @classmethod
    def all_templates(cls) -> list[str]:
        return list(cls.TEMPLATES)

    @classmethod
    def render(cls, template: str, context: dict[str, Any]) -> tuple[str, str]:
        """
        Render title and message of a template

        Args:
            template: Template key
            context: Values referenced by the template

        Returns:
            (title, message)

        Raises:
            ValueError: Unknown template or missing context value
        """
        if template not in cls.TEMPLATES:
            raise ValueError(f"Unknown notification template: {template}")

        values = dict(context)
        note = values.get("note")
        values["note_suffix"] = f" ({note})" if note else ""
        notes = values.get("notes")
        values["notes_suffix"] = f" Notes: {notes}" if notes else ""
        duration = values.get("duration_days")
        values["duration_suffix"] = f" Duration: {duration} days" if duration else ""

        title, message = cls.TEMPLATES[template]
        try:
            return title, message.format_map(values)
        except KeyError as e:
            raise ValueError(f"Template '{template}' needs context value {e}") from e


def make_dedupe_key(
    user_id: str, template: str, message: str, related_order_id: str | None, event_id: str
) -> str:
    """Content hash identifying one logical notification"""
    raw = "|".join([user_id, template, related_order_id or "", event_id, message])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class NotificationDispatcher:
    """Writes rendered notifications to a sink with retries"""

    def __init__(
        self,
        sink: NotificationSink,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
    ):
        """
        Args:
            sink: Notification sink
            max_attempts: Attempts per delivery (Config.DISPATCH_MAX_ATTEMPTS)
            base_delay: First backoff delay, seconds (Config.DISPATCH_BASE_DELAY)
            max_delay: Backoff cap, seconds (Config.DISPATCH_MAX_DELAY)
        """
        self.sink = sink
        self.max_attempts = max_attempts or Config.DISPATCH_MAX_ATTEMPTS
        self.base_delay = Config.DISPATCH_BASE_DELAY if base_delay is None else base_delay
        self.max_delay = Config.DISPATCH_MAX_DELAY if max_delay is None else max_delay
        self._background: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        """Fire-and-forget deliveries still running"""
        return len(self._background)

    def build(
        self,
        user_id: str,
        template: str,
        context: dict[str, Any] | None = None,
        related_order_id: str | None = None,
    ) -> Notification:
        """
        Render a notification without delivering it

        context["event_id"] identifies the triggering event; two
        notifications with the same content and event are one notification.

        Raises:
            ValueError: Unknown template or missing context value
        """
        context = context or {}
        title, message = NotificationTemplate.render(template, context)
        event_id = str(context.get("event_id", ""))
        return Notification(
            user_id=user_id,
            title=title,
            message=message,
            template=template,
            related_order_id=related_order_id,
            read=False,
            created_at=get_now(),
            dedupe_key=make_dedupe_key(user_id, template, message, related_order_id, event_id),
        )

    async def _deliver(self, notification: Notification) -> Notification:
        """
        Write to the sink with exponential backoff

        Raises:
            DispatchFailedError: Every attempt failed
        """
        write = retry_async(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
        )(self.sink.write)

        try:
            stored = await write(notification)
        except RetryExhaustedError as e:
            raise DispatchFailedError(
                notification.user_id, notification.template, e.attempts, e.last_exception
            ) from e

        logger.info(
            "Notification '%s' delivered to user %s", notification.template, notification.user_id
        )
        return stored

    async def dispatch(
        self,
        user_id: str,
        template: str,
        context: dict[str, Any] | None = None,
        related_order_id: str | None = None,
    ) -> Notification:
        """
        Render and deliver a notification, waiting for the sink

        Args:
            user_id: Recipient
            template: NotificationTemplate key
            context: Template values (plus optional event_id)
            related_order_id: Order the notification is about

        Returns:
            Stored notification (the earlier one if it is a duplicate)

        Raises:
            ValueError: Unknown template or missing context value
            DispatchFailedError: Sink kept failing
        """
        notification = self.build(user_id, template, context, related_order_id)
        return await self._deliver(notification)

    def dispatch_later(
        self,
        user_id: str,
        template: str,
        context: dict[str, Any] | None = None,
        related_order_id: str | None = None,
    ) -> asyncio.Task:
        """
        Fire-and-forget dispatch

        Rendering happens immediately so template errors surface to the
        caller; delivery runs in the background. A delivery that fails every
        attempt is logged, reported to Sentry and parked in the outbox.

        Returns:
            Background task (already tracked by the dispatcher)
        """
        notification = self.build(user_id, template, context, related_order_id)
        task = asyncio.create_task(self._deliver_or_park(notification))
        self._background.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Background dispatch crashed: %s", task.exception(), exc_info=task.exception()
            )

    async def _deliver_or_park(self, notification: Notification) -> Notification | None:
        try:
            return await self._deliver(notification)
        except DispatchFailedError as e:
            logger.error("Dispatch failed, parking in outbox: %s", e)
            capture_dispatch_failure(
                e,
                user_id=notification.user_id,
                template=notification.template,
                related_order_id=notification.related_order_id,
            )
            await self._park(notification, e)
            return None

    async def _park(self, notification: Notification, error: DispatchFailedError) -> None:
        try:
            await self.sink.park(notification, error.attempts, str(error.cause or error))
        except RepositoryError as park_error:
            # Nothing left to fall back on; the failure is already in Sentry
            logger.error(
                "Could not park notification '%s' for user %s: %s",
                notification.template,
                notification.user_id,
                park_error,
            )
            capture_dispatch_failure(park_error, user_id=notification.user_id, stage="outbox")

    async def drain(self) -> None:
        """Wait for every fire-and-forget delivery started so far"""
        while self._background:
            await asyncio.gather(*list(self._background))

    async def retry_outbox(self, limit: int | None = None) -> int:
        """
        Re-deliver parked notifications

        Args:
            limit: Maximum entries per run (Config.OUTBOX_BATCH_SIZE)

        Returns:
            Number of entries delivered
        """
        entries: list[OutboxEntry] = await self.sink.pending_outbox(
            limit or Config.OUTBOX_BATCH_SIZE
        )
        if not entries:
            return 0

        delivered = 0
        for entry in entries:
            try:
                await self._deliver(entry.notification)
            except DispatchFailedError as e:
                logger.warning("Outbox entry #%s still failing: %s", entry.id, e)
                await self.sink.record_outbox_failure(entry.id, str(e.cause or e))
                continue

            await self.sink.resolve_outbox(entry.id)
            delivered += 1

        logger.info("Outbox retry: %d/%d delivered", delivered, len(entries))
        return delivered
