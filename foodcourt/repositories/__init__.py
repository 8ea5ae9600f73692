"""
Repository layer: order stores, notification sinks and SQLite repositories
"""

from foodcourt.repositories.base import BaseRepository
from foodcourt.repositories.memory_store import MemoryOrderStore
from foodcourt.repositories.notification_repository import (
    MemoryNotificationSink,
    NotificationRepository,
    NotificationSink,
)
from foodcourt.repositories.order_store import OrderFilter, OrderListSnapshot, OrderStore
from foodcourt.repositories.payout_repository import PayoutRepository
from foodcourt.repositories.sqlite_store import SQLiteOrderStore
from foodcourt.repositories.vendor_repository import VendorRepository


__all__ = [
    "BaseRepository",
    "MemoryNotificationSink",
    "MemoryOrderStore",
    "NotificationRepository",
    "NotificationSink",
    "OrderFilter",
    "OrderListSnapshot",
    "OrderStore",
    "PayoutRepository",
    "SQLiteOrderStore",
    "VendorRepository",
]
