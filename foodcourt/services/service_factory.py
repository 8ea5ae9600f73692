"""
Factory wiring repositories and services onto one database connection
"""

import asyncio
import logging
from typing import TYPE_CHECKING

import aiosqlite

from foodcourt.domain.order_state_machine import OrderStateMachine
from foodcourt.repositories import (
    NotificationRepository,
    PayoutRepository,
    SQLiteOrderStore,
    VendorRepository,
)
from foodcourt.services.account_service import AccountService
from foodcourt.services.financial_reports import FinancialReportsService
from foodcourt.services.notification_dispatcher import NotificationDispatcher
from foodcourt.services.order_service import OrderService
from foodcourt.services.payout_service import PayoutService
from foodcourt.services.realtime_orders import RealtimeOrdersNotifier
from foodcourt.services.scheduler import TaskScheduler


if TYPE_CHECKING:
    from foodcourt.database.db import Database


logger = logging.getLogger(__name__)


class ServiceFactory:
    """
    Factory creating services with their dependencies injected

    Every repository shares the connection's write lock.
    """

    def __init__(self, db_connection: aiosqlite.Connection, write_lock: asyncio.Lock):
        """
        Args:
            db_connection: Database connection
            write_lock: Lock serializing writes on that connection
        """
        self.db_connection = db_connection
        self.write_lock = write_lock
        self._order_store = None
        self._notification_repo = None
        self._vendor_repo = None
        self._payout_repo = None
        self._state_machine = None
        self._dispatcher = None
        self._order_service = None
        self._realtime_notifier = None
        self._financial_reports = None
        self._payout_service = None
        self._account_service = None
        self._scheduler = None

    @classmethod
    def for_database(cls, db: "Database") -> "ServiceFactory":
        return cls(db.get_connection(), db.write_lock)

    @property
    def order_store(self) -> SQLiteOrderStore:
        if self._order_store is None:
            self._order_store = SQLiteOrderStore(self.db_connection, self.write_lock)
        return self._order_store

    @property
    def notification_repository(self) -> NotificationRepository:
        if self._notification_repo is None:
            self._notification_repo = NotificationRepository(self.db_connection, self.write_lock)
        return self._notification_repo

    @property
    def vendor_repository(self) -> VendorRepository:
        if self._vendor_repo is None:
            self._vendor_repo = VendorRepository(self.db_connection, self.write_lock)
        return self._vendor_repo

    @property
    def payout_repository(self) -> PayoutRepository:
        if self._payout_repo is None:
            self._payout_repo = PayoutRepository(self.db_connection, self.write_lock)
        return self._payout_repo

    @property
    def state_machine(self) -> OrderStateMachine:
        if self._state_machine is None:
            self._state_machine = OrderStateMachine()
        return self._state_machine

    @property
    def dispatcher(self) -> NotificationDispatcher:
        if self._dispatcher is None:
            self._dispatcher = NotificationDispatcher(self.notification_repository)
        return self._dispatcher

    @property
    def order_service(self) -> OrderService:
        if self._order_service is None:
            self._order_service = OrderService(
                store=self.order_store,
                dispatcher=self.dispatcher,
                state_machine=self.state_machine,
            )
        return self._order_service

    @property
    def realtime_notifier(self) -> RealtimeOrdersNotifier:
        if self._realtime_notifier is None:
            self._realtime_notifier = RealtimeOrdersNotifier(self.order_store)
        return self._realtime_notifier

    @property
    def financial_reports(self) -> FinancialReportsService:
        if self._financial_reports is None:
            self._financial_reports = FinancialReportsService(
                store=self.order_store,
                vendor_repo=self.vendor_repository,
                payout_repo=self.payout_repository,
            )
        return self._financial_reports

    @property
    def payout_service(self) -> PayoutService:
        if self._payout_service is None:
            self._payout_service = PayoutService(
                payout_repo=self.payout_repository,
                reports=self.financial_reports,
                dispatcher=self.dispatcher,
            )
        return self._payout_service

    @property
    def account_service(self) -> AccountService:
        if self._account_service is None:
            self._account_service = AccountService(
                vendor_repo=self.vendor_repository, dispatcher=self.dispatcher
            )
        return self._account_service

    @property
    def scheduler(self) -> TaskScheduler:
        if self._scheduler is None:
            self._scheduler = TaskScheduler(self.dispatcher)
        return self._scheduler

    async def close(self) -> None:
        """Stop background work before the connection goes away"""
        if self._scheduler is not None:
            await self._scheduler.stop()
        if self._realtime_notifier is not None:
            self._realtime_notifier.close()
        if self._dispatcher is not None:
            await self._dispatcher.drain()
        if self._order_store is not None:
            await self._order_store.close()
        logger.debug("ServiceFactory closed")
