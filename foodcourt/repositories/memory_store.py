"""
In-memory order store

Used by tests and single-process deployments. Documents are kept as JSON
so that callers never share mutable state with the store.
"""

import asyncio
import logging

from foodcourt.database.models import Order
from foodcourt.repositories.exceptions import DuplicateEntityError, EntityNotFoundError
from foodcourt.repositories.order_store import (
    OrderFilter,
    OrderStore,
    check_replacement,
    clone_order,
    order_from_json,
    order_to_json,
    sort_orders,
)


logger = logging.getLogger(__name__)


class MemoryOrderStore(OrderStore):
    """Order store backed by a dict"""

    def __init__(self) -> None:
        super().__init__()
        self._documents: dict[str, str] = {}
        self._order_numbers: set[str] = set()
        self._sequence = 0
        self._lock = asyncio.Lock()

    @property
    def last_sequence(self) -> int:
        return self._sequence

    def _commit(self, order: Order) -> Order:
        """Store a document with the next sequence and publish it (lock held)"""
        self._sequence += 1
        order.sequence = self._sequence
        data = order_to_json(order)
        self._documents[order.id] = data
        committed = order_from_json(data)
        self.changes.publish(order_from_json(data))
        return committed

    async def create(self, order: Order) -> Order:
        async with self._lock:
            if order.id in self._documents:
                raise DuplicateEntityError("Order", order.id)
            if order.order_number and order.order_number in self._order_numbers:
                raise DuplicateEntityError("Order number", order.order_number)

            if order.order_number:
                self._order_numbers.add(order.order_number)
            committed = self._commit(clone_order(order))

        logger.info("Order %s created (seq %d)", committed.id, committed.sequence)
        return committed

    async def get(self, order_id: str) -> Order | None:
        data = self._documents.get(order_id)
        return order_from_json(data) if data is not None else None

    async def put(
        self,
        order: Order,
        expected_status: str | None = None,
        expected_sequence: int | None = None,
    ) -> Order:
        async with self._lock:
            data = self._documents.get(order.id)
            if data is None:
                raise EntityNotFoundError("Order", order.id)

            check_replacement(order_from_json(data), order, expected_status, expected_sequence)
            committed = self._commit(clone_order(order))

        logger.debug("Order %s replaced (seq %d)", committed.id, committed.sequence)
        return committed

    async def query(self, order_filter: OrderFilter) -> list[Order]:
        orders = [order_from_json(data) for data in self._documents.values()]
        return sort_orders([o for o in orders if order_filter.matches(o)])
