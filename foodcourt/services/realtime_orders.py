"""
Real-time order lists

A subscription keeps a materialized list of the orders matching its filter
and yields the whole list every time a committed write changes it.
"""

import logging
from typing import Callable

from foodcourt.database.models import Order
from foodcourt.repositories.change_feed import OrderChange
from foodcourt.repositories.order_store import (
    OrderFilter,
    OrderListSnapshot,
    OrderStore,
    sort_orders,
)
from foodcourt.utils.helpers import get_now


logger = logging.getLogger(__name__)


class OrderSubscription:
    """
    Live view of one restaurant's or one customer's orders

    Async iterator of OrderListSnapshot: the first snapshot is the current
    list, each following one reflects at least one newer write. Snapshot
    sequences never decrease. Must be released with unsubscribe(), or used
    as an async context manager.

    Example:
        async with notifier.subscribe(OrderFilter.for_restaurant(vendor_id)) as sub:
            async for snapshot in sub:
                render(snapshot.orders)
    """

    def __init__(
        self,
        store: OrderStore,
        order_filter: OrderFilter,
        on_release: Callable[["OrderSubscription"], None] | None = None,
    ):
        self.order_filter = order_filter
        self._store = store
        self._on_release = on_release
        # Opened before the initial query so that no write falls in between
        self._stream = store.watch(order_filter.without_statuses())
        self._orders: dict[str, Order] = {}
        self._sequence = 0
        self._started = False
        self._closed = False
        self.latest: OrderListSnapshot | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _apply(self, change: OrderChange) -> bool:
        """Fold one change into the view; False if it was already reflected"""
        order = change.order
        current = self._orders.get(order.id)
        if current is not None and current.sequence >= change.sequence:
            return False

        if self.order_filter.matches(order):
            self._orders[order.id] = order
        elif current is not None:
            # Left the status subset of the filter
            del self._orders[order.id]
        else:
            return False

        self._sequence = max(self._sequence, change.sequence)
        return True

    def _snapshot(self) -> OrderListSnapshot:
        snapshot = OrderListSnapshot(
            order_filter=self.order_filter,
            orders=sort_orders(list(self._orders.values())),
            sequence=self._sequence,
            created_at=get_now(),
        )
        self.latest = snapshot
        return snapshot

    async def _load_initial(self) -> None:
        orders = await self._store.query(self.order_filter)
        self._orders = {o.id: o for o in orders}
        self._sequence = max((o.sequence for o in orders), default=0)
        for change in self._stream.drain_nowait():
            self._apply(change)

    def __aiter__(self) -> "OrderSubscription":
        return self

    async def __anext__(self) -> OrderListSnapshot:
        if self._closed:
            raise StopAsyncIteration

        if not self._started:
            try:
                await self._load_initial()
            except Exception:
                self.unsubscribe()
                raise
            self._started = True
            return self._snapshot()

        while True:
            try:
                change = await self._stream.__anext__()
            except StopAsyncIteration:
                self.unsubscribe()
                raise

            changed = self._apply(change)
            # Coalesce writes that are already queued into one snapshot
            for pending in self._stream.drain_nowait():
                changed = self._apply(pending) or changed
            if changed:
                return self._snapshot()

    def unsubscribe(self) -> None:
        """Release the subscription (idempotent)"""
        if self._closed:
            return
        self._closed = True
        self._stream.close()
        if self._on_release is not None:
            self._on_release(self)
        logger.debug("Subscription released: %s", self.order_filter.describe())

    async def __aenter__(self) -> "OrderSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class RealtimeOrdersNotifier:
    """Hands out subscriptions and tracks the live ones"""

    def __init__(self, store: OrderStore):
        self.store = store
        self._subscriptions: set[OrderSubscription] = set()

    @property
    def active_count(self) -> int:
        """Subscriptions not yet released"""
        return len(self._subscriptions)

    def subscribe(self, order_filter: OrderFilter) -> OrderSubscription:
        """
        Subscribe to the orders matching a filter

        Args:
            order_filter: OrderFilter.for_restaurant(...) or OrderFilter.for_customer(...)

        Returns:
            OrderSubscription (the caller must release it)
        """
        subscription = OrderSubscription(self.store, order_filter, self._release)
        self._subscriptions.add(subscription)
        logger.debug(
            "Subscription opened: %s (%d active)",
            order_filter.describe(),
            len(self._subscriptions),
        )
        return subscription

    def _release(self, subscription: OrderSubscription) -> None:
        self._subscriptions.discard(subscription)

    def close(self) -> None:
        """Release every live subscription"""
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()
        logger.info("Real-time notifier closed")
