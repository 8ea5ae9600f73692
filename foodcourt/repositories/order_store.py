"""
Order store contract

Whole-document replace-on-write storage of orders. Adapters guarantee
that a single put is atomic; nothing spans documents.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime

from pydantic import TypeAdapter

from foodcourt.database.models import Order
from foodcourt.domain.exceptions import OrderLockedError
from foodcourt.repositories.change_feed import ChangeFeed, OrderChangeStream
from foodcourt.repositories.exceptions import StaleWriteError


logger = logging.getLogger(__name__)

_ORDER_ADAPTER = TypeAdapter(Order)


def order_to_json(order: Order) -> str:
    """Serialize an order document"""
    return _ORDER_ADAPTER.dump_json(order).decode("utf-8")


def order_from_json(data: str | bytes) -> Order:
    """Deserialize an order document"""
    return _ORDER_ADAPTER.validate_json(data)


def clone_order(order: Order) -> Order:
    """Independent deep copy of an order"""
    return order_from_json(order_to_json(order))


@dataclass(frozen=True)
class OrderFilter:
    """Orders of one restaurant or of one customer"""

    restaurant_id: str | None = None
    user_id: str | None = None
    statuses: frozenset[str] | None = field(default=None)

    def __post_init__(self) -> None:
        if (self.restaurant_id is None) == (self.user_id is None):
            raise ValueError("OrderFilter needs exactly one of restaurant_id / user_id")

    @classmethod
    def for_restaurant(
        cls, restaurant_id: str, statuses: list[str] | None = None
    ) -> "OrderFilter":
        return cls(
            restaurant_id=restaurant_id,
            statuses=frozenset(statuses) if statuses else None,
        )

    @classmethod
    def for_customer(cls, user_id: str, statuses: list[str] | None = None) -> "OrderFilter":
        return cls(user_id=user_id, statuses=frozenset(statuses) if statuses else None)

    def without_statuses(self) -> "OrderFilter":
        """Same owner, any status"""
        return replace(self, statuses=None)

    def matches(self, order: Order) -> bool:
        """Whether an order belongs to this filter"""
        if self.restaurant_id is not None and order.restaurant_id != self.restaurant_id:
            return False
        if self.user_id is not None and order.user_id != self.user_id:
            return False
        if self.statuses is not None and order.status not in self.statuses:
            return False
        return True

    def describe(self) -> str:
        if self.restaurant_id is not None:
            return f"restaurant={self.restaurant_id}"
        return f"customer={self.user_id}"


@dataclass(frozen=True)
class OrderListSnapshot:
    """Full materialized list of matching orders, newest first"""

    order_filter: OrderFilter
    orders: list[Order]
    sequence: int  # Highest store write sequence reflected in the list
    created_at: datetime

    def __len__(self) -> int:
        return len(self.orders)

    def get(self, order_id: str) -> Order | None:
        return next((o for o in self.orders if o.id == order_id), None)


def sort_orders(orders: list[Order]) -> list[Order]:
    """Newest first (ties broken by id for a stable order)"""
    return sorted(
        orders,
        key=lambda o: (o.created_at.timestamp() if o.created_at else 0.0, o.id),
        reverse=True,
    )


def check_replacement(
    current: Order,
    new: Order,
    expected_status: str | None,
    expected_sequence: int | None = None,
) -> None:
    """
    Preconditions of a whole-document replace

    Args:
        current: Stored document, read inside the write's atomic section
        new: Replacement
        expected_status: Status the caller validated against (None = unconditional)
        expected_sequence: Write sequence of the document the caller read
            (None = any); set by services, never taken from clients

    Raises:
        StaleWriteError: Stored document no longer matches the caller's read
        OrderLockedError: Immutable field or history prefix changed
    """
    if expected_status is not None and current.status != expected_status:
        raise StaleWriteError(
            current.id, expected_status, current.status, expected_sequence, current.sequence
        )
    if expected_sequence is not None and current.sequence != expected_sequence:
        raise StaleWriteError(
            current.id,
            expected_status or current.status,
            current.status,
            expected_sequence,
            current.sequence,
        )

    if new.user_id != current.user_id:
        raise OrderLockedError(current.id, "user_id", "ownership is immutable")
    if new.restaurant_id != current.restaurant_id:
        raise OrderLockedError(current.id, "restaurant_id", "ownership is immutable")
    if new.order_number != current.order_number:
        raise OrderLockedError(current.id, "order_number", "assigned at creation")

    previous = current.status_history
    if new.status_history[: len(previous)] != previous:
        raise OrderLockedError(current.id, "status_history", "history is append-only")
    if not new.status_history or new.status_history[-1].status != new.status:
        raise OrderLockedError(
            current.id, "status_history", "last entry must match the current status"
        )


class OrderStore(ABC):
    """
    Order store interface

    get / put / query / watch, plus create for the initial insert.
    """

    def __init__(self) -> None:
        self.changes = ChangeFeed()

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """
        Insert a new order document

        Raises:
            DuplicateEntityError: id or order_number already used
            StoreUnavailableError: Storage failed
        """

    @abstractmethod
    async def get(self, order_id: str) -> Order | None:
        """
        Read the current document

        Raises:
            StoreUnavailableError: Storage failed
        """

    @abstractmethod
    async def put(
        self,
        order: Order,
        expected_status: str | None = None,
        expected_sequence: int | None = None,
    ) -> Order:
        """
        Replace the whole document atomically

        Args:
            order: New document
            expected_status: Only write if the stored status still equals this
            expected_sequence: Only write if no other write landed since this one

        Returns:
            The stored document with its new write sequence

        Raises:
            EntityNotFoundError: Document does not exist
            StaleWriteError: Stored status differs from expected_status
            StoreUnavailableError: Storage failed
        """

    @abstractmethod
    async def query(self, order_filter: OrderFilter) -> list[Order]:
        """
        Orders matching a filter, newest first

        Raises:
            StoreUnavailableError: Storage failed
        """

    def watch(self, order_filter: OrderFilter) -> OrderChangeStream:
        """
        Stream of committed writes matching a filter

        The caller must close() the stream.
        """
        return OrderChangeStream(self.changes, order_filter)

    async def close(self) -> None:
        """End every open watch stream"""
        self.changes.close()
