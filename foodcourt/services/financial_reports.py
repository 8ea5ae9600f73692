"""
Vendor statements, the platform ledger and payout balances

All figures come from compute_split / split_for_order; the commission
rate is read from the vendor record on every call.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from foodcourt.core.config import Config
from foodcourt.core.constants import OrderStatus, PaymentStatus, PayoutStatus
from foodcourt.database.models import Order
from foodcourt.domain.financial import FinancialSplit, split_for_order
from foodcourt.repositories.order_store import OrderFilter, OrderStore
from foodcourt.repositories.payout_repository import PayoutRepository
from foodcourt.repositories.vendor_repository import VendorRepository


logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class StatementLine:
    """One settled order in a statement"""

    order_id: str
    order_number: str
    paid_at: datetime | None
    split: FinancialSplit


@dataclass
class VendorStatement:
    """Settled sales of one vendor"""

    vendor_id: str
    commission_rate: Decimal
    lines: list[StatementLine] = field(default_factory=list)
    unsettled_orders: int = 0
    total_sales: Decimal = ZERO
    total_commission: Decimal = ZERO
    total_platform_fee: Decimal = ZERO
    total_net: Decimal = ZERO

    def add(self, line: StatementLine) -> None:
        self.lines.append(line)
        self.total_sales += line.split.total_amount
        self.total_commission += line.split.commission
        self.total_platform_fee += line.split.platform_fee
        self.total_net += line.split.net_amount


@dataclass
class PlatformLedger:
    """Statements of several vendors plus platform totals"""

    statements: list[VendorStatement] = field(default_factory=list)

    @property
    def total_sales(self) -> Decimal:
        return sum((s.total_sales for s in self.statements), ZERO)

    @property
    def total_commission(self) -> Decimal:
        return sum((s.total_commission for s in self.statements), ZERO)

    @property
    def total_platform_fee(self) -> Decimal:
        return sum((s.total_platform_fee for s in self.statements), ZERO)

    @property
    def platform_revenue(self) -> Decimal:
        """Commission plus platform fees"""
        return self.total_commission + self.total_platform_fee

    @property
    def total_vendor_net(self) -> Decimal:
        return sum((s.total_net for s in self.statements), ZERO)


class FinancialReportsService:
    """Financial reports"""

    def __init__(
        self,
        store: OrderStore,
        vendor_repo: VendorRepository,
        payout_repo: PayoutRepository | None = None,
    ):
        self.store = store
        self.vendor_repo = vendor_repo
        self.payout_repo = payout_repo

    async def get_commission_rate(self, vendor_id: str) -> Decimal:
        """
        Commission rate in effect for a vendor

        The vendor record is authoritative; Config.DEFAULT_COMMISSION_RATE
        applies only when the vendor has no rate of its own.
        """
        rate = await self.vendor_repo.get_commission_rate(vendor_id)
        if rate is None:
            logger.debug("Vendor %s has no commission rate, using default", vendor_id)
            return Config.DEFAULT_COMMISSION_RATE
        return rate

    async def get_order_split(self, order: Order) -> FinancialSplit:
        """
        Split of one order with its vendor's current rate

        Raises:
            NotSettledError: Payment is not Completed
        """
        rate = await self.get_commission_rate(order.restaurant_id)
        return split_for_order(order, rate)

    async def vendor_statement(
        self,
        vendor_id: str,
        period_start: datetime | None = None,
        period_end: datetime | None = None,
    ) -> VendorStatement:
        """
        Statement of settled orders of a vendor

        Args:
            vendor_id: Vendor (restaurant) id
            period_start: Include payments at or after this time
            period_end: Include payments before this time

        Returns:
            VendorStatement (lines oldest payment first)
        """
        rate = await self.get_commission_rate(vendor_id)
        orders = await self.store.query(OrderFilter.for_restaurant(vendor_id))

        statement = VendorStatement(vendor_id=vendor_id, commission_rate=rate)
        settled: list[Order] = []
        for order in orders:
            if order.payment.status != PaymentStatus.COMPLETED:
                if order.status != OrderStatus.CANCELLED and order.payment.status in (
                    PaymentStatus.PENDING,
                    PaymentStatus.FAILED,
                ):
                    statement.unsettled_orders += 1
                continue

            paid_at = order.payment.paid_at
            if period_start and (paid_at is None or paid_at < period_start):
                continue
            if period_end and (paid_at is None or paid_at >= period_end):
                continue
            settled.append(order)

        settled.sort(
            key=lambda o: (
                o.payment.paid_at.timestamp() if o.payment.paid_at else 0.0,
                o.created_at.timestamp() if o.created_at else 0.0,
            )
        )
        for order in settled:
            statement.add(
                StatementLine(
                    order_id=order.id,
                    order_number=order.order_number,
                    paid_at=order.payment.paid_at,
                    split=split_for_order(order, rate),
                )
            )

        logger.info(
            "Statement for vendor %s: %d settled orders, net %s",
            vendor_id,
            len(statement.lines),
            statement.total_net,
        )
        return statement

    async def platform_ledger(
        self,
        vendor_ids: list[str] | None = None,
        period_start: datetime | None = None,
        period_end: datetime | None = None,
    ) -> PlatformLedger:
        """
        Ledger across vendors

        Args:
            vendor_ids: Vendors to include (every registered vendor by default)
        """
        if vendor_ids is None:
            vendor_ids = [v.id for v in await self.vendor_repo.list_by_status()]

        ledger = PlatformLedger()
        for vendor_id in vendor_ids:
            ledger.statements.append(
                await self.vendor_statement(vendor_id, period_start, period_end)
            )
        return ledger

    async def available_balance(self, vendor_id: str) -> Decimal:
        """
        Net earnings not yet paid out or requested

        net of settled orders - (approved + pending payout requests)
        """
        statement = await self.vendor_statement(vendor_id)
        reserved = ZERO
        if self.payout_repo is not None:
            reserved = await self.payout_repo.sum_amounts(
                vendor_id, [PayoutStatus.APPROVED, PayoutStatus.PENDING]
            )
        return statement.total_net - reserved
