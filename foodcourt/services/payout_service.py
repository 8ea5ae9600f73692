"""
Service for vendor payout requests
"""

import asyncio
import logging
from decimal import Decimal

from foodcourt.core.constants import PayoutStatus
from foodcourt.database.models import Actor, PayoutRequest
from foodcourt.domain.exceptions import InvalidAmountError, PermissionDeniedError
from foodcourt.domain.financial import round_money, to_decimal
from foodcourt.repositories.exceptions import EntityNotFoundError
from foodcourt.repositories.payout_repository import PayoutRepository
from foodcourt.services.financial_reports import FinancialReportsService
from foodcourt.services.notification_dispatcher import (
    NotificationDispatcher,
    NotificationTemplate,
)
from foodcourt.utils.helpers import format_money


logger = logging.getLogger(__name__)


class PayoutService:
    """Payout requests and their approval"""

    def __init__(
        self,
        payout_repo: PayoutRepository,
        reports: FinancialReportsService,
        dispatcher: NotificationDispatcher,
    ):
        self.payout_repo = payout_repo
        self.reports = reports
        self.dispatcher = dispatcher
        # Balance check and insert must not interleave
        self._request_lock = asyncio.Lock()

    async def request_payout(
        self, vendor_id: str, amount: Decimal | int | str, actor: Actor
    ) -> PayoutRequest:
        """
        Create a payout request

        Args:
            vendor_id: Vendor asking for the payout
            amount: Requested amount
            actor: Must be the vendor itself

        Returns:
            Pending PayoutRequest

        Raises:
            PermissionDeniedError: Actor is not this vendor
            InvalidAmountError: Amount is not positive or exceeds the balance
        """
        if not (actor.is_vendor and actor.user_id == vendor_id):
            raise PermissionDeniedError(actor.role, "request a payout for another vendor")

        amount = round_money(to_decimal(amount))
        if amount <= 0:
            raise InvalidAmountError("amount", amount, "must be positive")

        async with self._request_lock:
            balance = await self.reports.available_balance(vendor_id)
            if amount > balance:
                raise InvalidAmountError(
                    "amount", amount, f"exceeds available balance {format_money(balance)}"
                )
            payout = await self.payout_repo.create(vendor_id, amount)

        logger.info("Vendor %s requested payout of %s", vendor_id, amount)
        return payout

    async def approve_payout(
        self, payout_id: int, actor: Actor, notes: str | None = None
    ) -> PayoutRequest:
        """Approve a pending request and notify the vendor"""
        return await self._process(payout_id, PayoutStatus.APPROVED, actor, notes)

    async def reject_payout(
        self, payout_id: int, actor: Actor, notes: str | None = None
    ) -> PayoutRequest:
        """Reject a pending request and notify the vendor"""
        return await self._process(payout_id, PayoutStatus.REJECTED, actor, notes)

    async def _process(
        self, payout_id: int, status: str, actor: Actor, notes: str | None
    ) -> PayoutRequest:
        """
        Raises:
            PermissionDeniedError: Actor is not an admin
            EntityNotFoundError: Request does not exist
            StaleWriteError: Request was already processed
        """
        if not actor.is_admin:
            raise PermissionDeniedError(actor.role, f"mark payouts {status}")

        payout = await self.payout_repo.process(payout_id, status, actor.user_id, notes)

        template = (
            NotificationTemplate.PAYOUT_APPROVED
            if status == PayoutStatus.APPROVED
            else NotificationTemplate.PAYOUT_REJECTED
        )
        self.dispatcher.dispatch_later(
            payout.vendor_id,
            template,
            {
                "amount": format_money(payout.amount),
                "notes": notes,
                "event_id": f"payout:{payout.id}",
            },
        )
        return payout

    async def get_vendor_payouts(
        self, vendor_id: str, status: str | None = None
    ) -> list[PayoutRequest]:
        return await self.payout_repo.list_for_vendor(vendor_id, status)

    async def get_payout(self, payout_id: int) -> PayoutRequest:
        payout = await self.payout_repo.get(payout_id)
        if payout is None:
            raise EntityNotFoundError("Payout request", str(payout_id))
        return payout
