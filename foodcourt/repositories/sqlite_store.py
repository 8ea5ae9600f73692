"""
SQLite order store

The whole document is kept as JSON in orders.document; the columns next to
it are copies used for filtering and ordering. Status history is mirrored
into order_status_history for reporting.
"""

import asyncio
import logging
from datetime import datetime, timezone

import aiosqlite

from foodcourt.database.models import Order
from foodcourt.repositories.base import BaseRepository
from foodcourt.repositories.exceptions import DuplicateEntityError, EntityNotFoundError
from foodcourt.repositories.order_store import (
    OrderFilter,
    OrderStore,
    check_replacement,
    clone_order,
    order_from_json,
    order_to_json,
)


logger = logging.getLogger(__name__)


def _db_timestamp(value: datetime | None) -> str | None:
    """Fixed-width UTC timestamp so that text order equals time order"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class SQLiteOrderStore(BaseRepository[Order], OrderStore):
    """Order store on top of the shared aiosqlite connection"""

    def __init__(
        self, db_connection: aiosqlite.Connection, write_lock: asyncio.Lock | None = None
    ):
        BaseRepository.__init__(self, db_connection, write_lock)
        OrderStore.__init__(self)

    async def _next_sequence(self) -> int:
        row = await self._fetch_one("SELECT COALESCE(MAX(sequence), 0) + 1 AS seq FROM orders")
        return int(row["seq"]) if row else 1

    async def _write_history(self, order: Order, start: int) -> None:
        """Mirror history entries from position `start` onwards"""
        for position, entry in enumerate(order.status_history[start:], start=start):
            await self._execute(
                """
                INSERT INTO order_status_history
                    (order_id, position, status, changed_at, note, actor_role, actor_id)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    order.id,
                    position,
                    entry.status,
                    _db_timestamp(entry.timestamp),
                    entry.note,
                    entry.actor_role,
                    entry.actor_id,
                ),
            )

    async def create(self, order: Order) -> Order:
        order = clone_order(order)
        async with self.write_lock:
            try:
                async with self.transaction():
                    existing = await self._fetch_one(
                        "SELECT id FROM orders WHERE id = ? OR order_number = ?",
                        (order.id, order.order_number),
                    )
                    if existing:
                        if existing["id"] == order.id:
                            raise DuplicateEntityError("Order", order.id)
                        raise DuplicateEntityError("Order number", order.order_number)

                    order.sequence = await self._next_sequence()
                    await self._execute(
                        """
                        INSERT INTO orders (
                            id, order_number, user_id, restaurant_id, status,
                            payment_status, total_amount, created_at, updated_at,
                            sequence, document
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            order.id,
                            order.order_number,
                            order.user_id,
                            order.restaurant_id,
                            order.status,
                            order.payment.status,
                            str(order.pricing.total_amount),
                            _db_timestamp(order.created_at),
                            _db_timestamp(order.updated_at),
                            order.sequence,
                            order_to_json(order),
                        ),
                    )
                    await self._write_history(order, 0)
            except aiosqlite.Error as e:
                raise self._unavailable("create", e) from e

            committed = clone_order(order)
            self.changes.publish(clone_order(order))

        logger.info("Order %s created (seq %d)", committed.id, committed.sequence)
        return committed

    async def get(self, order_id: str) -> Order | None:
        try:
            async with self.write_lock:
                row = await self._fetch_one(
                    "SELECT document FROM orders WHERE id = ?", (order_id,)
                )
        except aiosqlite.Error as e:
            raise self._unavailable("get", e) from e
        return order_from_json(row["document"]) if row else None

    async def put(
        self,
        order: Order,
        expected_status: str | None = None,
        expected_sequence: int | None = None,
    ) -> Order:
        order = clone_order(order)
        async with self.write_lock:
            try:
                async with self.transaction():
                    row = await self._fetch_one(
                        "SELECT document FROM orders WHERE id = ?", (order.id,)
                    )
                    if row is None:
                        raise EntityNotFoundError("Order", order.id)

                    current = order_from_json(row["document"])
                    check_replacement(current, order, expected_status, expected_sequence)

                    order.sequence = await self._next_sequence()
                    await self._execute(
                        """
                        UPDATE orders
                        SET status = ?, payment_status = ?, total_amount = ?,
                            updated_at = ?, sequence = ?, document = ?
                        WHERE id = ?
                        """,
                        (
                            order.status,
                            order.payment.status,
                            str(order.pricing.total_amount),
                            _db_timestamp(order.updated_at),
                            order.sequence,
                            order_to_json(order),
                            order.id,
                        ),
                    )
                    await self._write_history(order, len(current.status_history))
            except aiosqlite.Error as e:
                raise self._unavailable("put", e) from e

            committed = clone_order(order)
            self.changes.publish(clone_order(order))

        logger.debug("Order %s replaced (seq %d)", committed.id, committed.sequence)
        return committed

    async def query(self, order_filter: OrderFilter) -> list[Order]:
        if order_filter.restaurant_id is not None:
            query = "SELECT document FROM orders WHERE restaurant_id = ?"
            params: list = [order_filter.restaurant_id]
        else:
            query = "SELECT document FROM orders WHERE user_id = ?"
            params = [order_filter.user_id]

        if order_filter.statuses is not None:
            statuses = sorted(order_filter.statuses)
            query += f" AND status IN ({', '.join('?' for _ in statuses)})"
            params.extend(statuses)

        query += " ORDER BY created_at DESC, id DESC"

        try:
            async with self.write_lock:
                rows = await self._fetch_all(query, tuple(params))
        except aiosqlite.Error as e:
            raise self._unavailable("query", e) from e
        return [order_from_json(row["document"]) for row in rows]

    async def get_status_history(self, order_id: str) -> list[aiosqlite.Row]:
        """Mirrored history rows of an order, oldest first"""
        try:
            return await self._fetch_all(
                """
                SELECT position, status, changed_at, note, actor_role, actor_id
                FROM order_status_history
                WHERE order_id = ?
                ORDER BY position
                """,
                (order_id,),
            )
        except aiosqlite.Error as e:
            raise self._unavailable("get_status_history", e) from e
