"""
Notification sinks

A sink stores user notifications (deduplicated by dedupe_key) and an
outbox of notifications whose delivery failed and must be retried.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime

import aiosqlite

from foodcourt.database.models import Notification
from foodcourt.repositories.base import BaseRepository
from foodcourt.utils.helpers import get_now


logger = logging.getLogger(__name__)


@dataclass
class OutboxEntry:
    """Notification waiting for another delivery attempt"""

    notification: Notification
    attempts: int
    last_error: str
    created_at: datetime
    id: int | None = None


class NotificationSink(ABC):
    """Where notifications end up"""

    @abstractmethod
    async def write(self, notification: Notification) -> Notification:
        """
        Store a notification

        A notification whose dedupe_key was already written is not stored
        twice; the existing record is returned instead.

        Raises:
            StoreUnavailableError: Sink storage failed (retryable)
        """

    @abstractmethod
    async def list_for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        """Notifications of a user, newest first"""

    @abstractmethod
    async def mark_read(self, notification_id: int) -> bool:
        """Mark a notification as read"""

    @abstractmethod
    async def park(self, notification: Notification, attempts: int, error: str) -> OutboxEntry:
        """Put an undelivered notification into the outbox"""

    @abstractmethod
    async def pending_outbox(self, limit: int = 50) -> list[OutboxEntry]:
        """Oldest outbox entries first"""

    @abstractmethod
    async def resolve_outbox(self, entry_id: int) -> None:
        """Remove a delivered entry from the outbox"""

    @abstractmethod
    async def record_outbox_failure(self, entry_id: int, error: str) -> None:
        """Count one more failed attempt for an outbox entry"""


class MemoryNotificationSink(NotificationSink):
    """In-process sink"""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []
        self._by_key: dict[str, Notification] = {}
        self._outbox: dict[int, OutboxEntry] = {}
        self._next_id = 1
        self._next_outbox_id = 1
        self._lock = asyncio.Lock()

    async def write(self, notification: Notification) -> Notification:
        async with self._lock:
            if notification.dedupe_key and notification.dedupe_key in self._by_key:
                logger.debug("Duplicate notification %s skipped", notification.dedupe_key)
                return self._by_key[notification.dedupe_key]

            stored = replace(
                notification,
                id=self._next_id,
                created_at=notification.created_at or get_now(),
            )
            self._next_id += 1
            self.notifications.append(stored)
            if stored.dedupe_key:
                self._by_key[stored.dedupe_key] = stored
            return stored

    async def list_for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        result = [
            n
            for n in self.notifications
            if n.user_id == user_id and not (unread_only and n.read)
        ]
        return list(reversed(result))

    async def mark_read(self, notification_id: int) -> bool:
        for n in self.notifications:
            if n.id == notification_id:
                n.read = True
                return True
        return False

    async def park(self, notification: Notification, attempts: int, error: str) -> OutboxEntry:
        async with self._lock:
            entry = OutboxEntry(
                notification=notification,
                attempts=attempts,
                last_error=error,
                created_at=get_now(),
                id=self._next_outbox_id,
            )
            self._next_outbox_id += 1
            self._outbox[entry.id] = entry
            return entry

    async def pending_outbox(self, limit: int = 50) -> list[OutboxEntry]:
        return sorted(self._outbox.values(), key=lambda e: e.id)[:limit]

    async def resolve_outbox(self, entry_id: int) -> None:
        self._outbox.pop(entry_id, None)

    async def record_outbox_failure(self, entry_id: int, error: str) -> None:
        entry = self._outbox.get(entry_id)
        if entry:
            entry.attempts += 1
            entry.last_error = error


class NotificationRepository(BaseRepository[Notification], NotificationSink):
    """SQLite sink (notifications and notification_outbox tables)"""

    def __init__(
        self, db_connection: aiosqlite.Connection, write_lock: asyncio.Lock | None = None
    ):
        BaseRepository.__init__(self, db_connection, write_lock)

    def _row_to_notification(self, row: aiosqlite.Row) -> Notification:
        return Notification(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            message=row["message"],
            template=row["template"] or "",
            related_order_id=row["related_order_id"],
            read=bool(row["is_read"]),
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
            dedupe_key=row["dedupe_key"] or "",
        )

    async def write(self, notification: Notification) -> Notification:
        created_at = notification.created_at or get_now()
        try:
            async with self.write_lock:
                # NULL dedupe keys never collide under the UNIQUE constraint
                cursor = await self._execute(
                    """
                    INSERT OR IGNORE INTO notifications
                        (user_id, title, message, template, related_order_id,
                         is_read, created_at, dedupe_key)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        notification.user_id,
                        notification.title,
                        notification.message,
                        notification.template,
                        notification.related_order_id,
                        int(notification.read),
                        created_at.isoformat(),
                        notification.dedupe_key or None,
                    ),
                )
                inserted = cursor.rowcount == 1
                new_id = cursor.lastrowid
                await self.db.commit()

                if not inserted:
                    row = await self._fetch_one(
                        "SELECT * FROM notifications WHERE dedupe_key = ?",
                        (notification.dedupe_key,),
                    )
                    logger.debug("Duplicate notification %s skipped", notification.dedupe_key)
                    return self._row_to_notification(row)
        except aiosqlite.Error as e:
            raise self._unavailable("notification write", e) from e

        return replace(notification, id=new_id, created_at=created_at)

    async def list_for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        query = "SELECT * FROM notifications WHERE user_id = ?"
        if unread_only:
            query += " AND is_read = 0"
        query += " ORDER BY id DESC"
        rows = await self._fetch_all(query, (user_id,))
        return [self._row_to_notification(row) for row in rows]

    async def mark_read(self, notification_id: int) -> bool:
        changed = await self._execute_update(
            "UPDATE notifications SET is_read = 1 WHERE id = ?", (notification_id,)
        )
        return changed > 0

    async def park(self, notification: Notification, attempts: int, error: str) -> OutboxEntry:
        created_at = get_now()
        entry_id = await self._execute_commit(
            """
            INSERT INTO notification_outbox
                (user_id, title, message, template, related_order_id, dedupe_key,
                 attempts, last_error, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                notification.user_id,
                notification.title,
                notification.message,
                notification.template,
                notification.related_order_id,
                notification.dedupe_key or None,
                attempts,
                error,
                created_at.isoformat(),
            ),
        )
        return OutboxEntry(
            notification=notification,
            attempts=attempts,
            last_error=error,
            created_at=created_at,
            id=entry_id,
        )

    async def pending_outbox(self, limit: int = 50) -> list[OutboxEntry]:
        rows = await self._fetch_all(
            "SELECT * FROM notification_outbox ORDER BY id LIMIT ?", (limit,)
        )
        return [
            OutboxEntry(
                notification=Notification(
                    user_id=row["user_id"],
                    title=row["title"],
                    message=row["message"],
                    template=row["template"] or "",
                    related_order_id=row["related_order_id"],
                    dedupe_key=row["dedupe_key"] or "",
                ),
                attempts=row["attempts"],
                last_error=row["last_error"] or "",
                created_at=datetime.fromisoformat(row["created_at"]),
                id=row["id"],
            )
            for row in rows
        ]

    async def resolve_outbox(self, entry_id: int) -> None:
        await self._execute_update("DELETE FROM notification_outbox WHERE id = ?", (entry_id,))

    async def record_outbox_failure(self, entry_id: int, error: str) -> None:
        await self._execute_update(
            "UPDATE notification_outbox SET attempts = attempts + 1, last_error = ? WHERE id = ?",
            (error, entry_id),
        )
