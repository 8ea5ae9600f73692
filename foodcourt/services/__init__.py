"""Service layer"""

from foodcourt.services.account_service import AccountService
from foodcourt.services.financial_reports import FinancialReportsService
from foodcourt.services.notification_dispatcher import (
    NotificationDispatcher,
    NotificationTemplate,
)
from foodcourt.services.order_service import OrderService
from foodcourt.services.payout_service import PayoutService
from foodcourt.services.realtime_orders import OrderSubscription, RealtimeOrdersNotifier
from foodcourt.services.scheduler import TaskScheduler
from foodcourt.services.service_factory import ServiceFactory


__all__ = [
    "AccountService",
    "FinancialReportsService",
    "NotificationDispatcher",
    "NotificationTemplate",
    "OrderService",
    "OrderSubscription",
    "PayoutService",
    "RealtimeOrdersNotifier",
    "ServiceFactory",
    "TaskScheduler",
]
