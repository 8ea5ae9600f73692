"""
In-process change feed of committed order writes

Stores publish every committed document here, in commit order; watchers
receive the changes through per-watcher queues.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from foodcourt.database.models import Order


if TYPE_CHECKING:
    from foodcourt.repositories.order_store import OrderFilter


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderChange:
    """One committed write"""

    order: Order
    sequence: int


# Queued to wake a watcher when the feed or the stream is closed
_END = None


class ChangeFeed:
    """Fan-out of committed order writes to registered watchers"""

    def __init__(self) -> None:
        self._queues: set[asyncio.Queue[OrderChange | None]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def watcher_count(self) -> int:
        return len(self._queues)

    def register(self) -> "asyncio.Queue[OrderChange | None]":
        """Register a new watcher queue"""
        queue: asyncio.Queue[OrderChange | None] = asyncio.Queue()
        if self._closed:
            queue.put_nowait(_END)
        else:
            self._queues.add(queue)
        return queue

    def unregister(self, queue: "asyncio.Queue[OrderChange | None]") -> None:
        """Remove a watcher queue (no-op if unknown)"""
        self._queues.discard(queue)

    def publish(self, order: Order) -> None:
        """
        Deliver a committed document to every watcher

        Must be called in commit order, under the store's write lock.

        Args:
            order: Committed document (each watcher's copy is shared read-only)
        """
        if self._closed:
            return
        change = OrderChange(order=order, sequence=order.sequence)
        for queue in self._queues:
            queue.put_nowait(change)
        logger.debug(
            "Published order %s (seq %d) to %d watcher(s)",
            order.id,
            order.sequence,
            len(self._queues),
        )

    def close(self) -> None:
        """End every stream"""
        if self._closed:
            return
        self._closed = True
        for queue in self._queues:
            queue.put_nowait(_END)
        self._queues.clear()
        logger.info("Change feed closed")


class OrderChangeStream:
    """
    Stream of committed changes matching a filter

    Async iterator; ends when closed or when the feed is closed.
    """

    def __init__(self, feed: ChangeFeed, order_filter: "OrderFilter"):
        self._feed = feed
        self.order_filter = order_filter
        self._queue = feed.register()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "OrderChangeStream":
        return self

    async def __anext__(self) -> OrderChange:
        while not self._closed:
            change = await self._queue.get()
            if change is _END:
                self.close()
                break
            if self.order_filter.matches(change.order):
                return change
        raise StopAsyncIteration

    def drain_nowait(self) -> list[OrderChange]:
        """
        Matching changes already queued, without waiting

        Returns:
            Changes in commit order (empty if none are pending)
        """
        changes: list[OrderChange] = []
        while not self._closed and not self._queue.empty():
            change = self._queue.get_nowait()
            if change is _END:
                self.close()
                break
            if self.order_filter.matches(change.order):
                changes.append(change)
        return changes

    def close(self) -> None:
        """Stop receiving changes (idempotent)"""
        if self._closed:
            return
        self._closed = True
        self._feed.unregister(self._queue)
        # Wake a reader blocked in __anext__
        self._queue.put_nowait(_END)
