"""
Vendor and account administration
"""

import logging
from decimal import Decimal

from foodcourt.core.constants import VendorStatus
from foodcourt.database.models import Actor, Vendor
from foodcourt.domain.exceptions import InvalidAmountError, PermissionDeniedError
from foodcourt.domain.financial import to_decimal
from foodcourt.repositories.vendor_repository import VendorRepository
from foodcourt.services.notification_dispatcher import (
    NotificationDispatcher,
    NotificationTemplate,
)
from foodcourt.utils.helpers import get_now


logger = logging.getLogger(__name__)


class AccountService:
    """Admin actions on vendors and user accounts"""

    def __init__(self, vendor_repo: VendorRepository, dispatcher: NotificationDispatcher):
        self.vendor_repo = vendor_repo
        self.dispatcher = dispatcher

    @staticmethod
    def _require_admin(actor: Actor, action: str) -> None:
        if not actor.is_admin:
            raise PermissionDeniedError(actor.role, action)

    @staticmethod
    def _event_id(vendor: Vendor | None) -> str:
        stamp = vendor.updated_at if vendor is not None and vendor.updated_at else get_now()
        return stamp.isoformat()

    async def approve_vendor(self, vendor_id: str, actor: Actor) -> Vendor:
        """
        Approve a vendor application

        Raises:
            PermissionDeniedError: Actor is not an admin
            EntityNotFoundError: Vendor does not exist
        """
        self._require_admin(actor, "approve vendors")
        vendor = await self.vendor_repo.update_status(vendor_id, VendorStatus.APPROVED)
        self.dispatcher.dispatch_later(
            vendor_id, NotificationTemplate.VENDOR_APPROVED, {"event_id": self._event_id(vendor)}
        )
        return vendor

    async def reject_vendor(self, vendor_id: str, reason: str, actor: Actor) -> Vendor:
        """
        Reject a vendor application

        Raises:
            PermissionDeniedError: Actor is not an admin
            EntityNotFoundError: Vendor does not exist
        """
        self._require_admin(actor, "reject vendors")
        vendor = await self.vendor_repo.update_status(vendor_id, VendorStatus.REJECTED, reason)
        self.dispatcher.dispatch_later(
            vendor_id,
            NotificationTemplate.VENDOR_REJECTED,
            {"reason": reason, "event_id": self._event_id(vendor)},
        )
        return vendor

    async def suspend_user(
        self,
        user_id: str,
        reason: str,
        actor: Actor,
        duration_days: int | None = None,
    ) -> Vendor | None:
        """
        Suspend an account

        Args:
            user_id: Account to suspend (vendor or customer)
            reason: Shown to the user
            actor: Admin
            duration_days: Optional suspension length

        Returns:
            Updated vendor record, None for accounts without one

        Raises:
            PermissionDeniedError: Actor is not an admin
        """
        self._require_admin(actor, "suspend accounts")

        vendor = None
        if await self.vendor_repo.get(user_id) is not None:
            vendor = await self.vendor_repo.update_status(
                user_id, VendorStatus.SUSPENDED, reason
            )

        logger.warning("Account %s suspended by %s: %s", user_id, actor.user_id, reason)
        self.dispatcher.dispatch_later(
            user_id,
            NotificationTemplate.ACCOUNT_SUSPENDED,
            {
                "reason": reason,
                "duration_days": duration_days,
                "event_id": self._event_id(vendor),
            },
        )
        return vendor

    async def activate_user(self, user_id: str, actor: Actor) -> Vendor | None:
        """
        Reactivate a suspended account

        Raises:
            PermissionDeniedError: Actor is not an admin
        """
        self._require_admin(actor, "activate accounts")

        vendor = None
        if await self.vendor_repo.get(user_id) is not None:
            vendor = await self.vendor_repo.update_status(user_id, VendorStatus.ACTIVE)

        logger.info("Account %s activated by %s", user_id, actor.user_id)
        self.dispatcher.dispatch_later(
            user_id, NotificationTemplate.ACCOUNT_ACTIVATED, {"event_id": self._event_id(vendor)}
        )
        return vendor

    async def update_commission_rate(
        self, vendor_id: str, rate: Decimal | int | str, actor: Actor
    ) -> Vendor:
        """
        Set a vendor's commission rate (percent)

        Raises:
            PermissionDeniedError: Actor is not an admin
            InvalidAmountError: Rate outside 0..100
            EntityNotFoundError: Vendor does not exist
        """
        self._require_admin(actor, "change commission rates")

        rate = to_decimal(rate, "commission_rate")
        if not Decimal("0") <= rate <= Decimal("100"):
            raise InvalidAmountError("commission_rate", rate, "must be within 0..100")

        vendor = await self.vendor_repo.update_commission_rate(vendor_id, rate)
        self.dispatcher.dispatch_later(
            vendor_id,
            NotificationTemplate.COMMISSION_RATE_UPDATED,
            {"rate": rate, "event_id": self._event_id(vendor)},
        )
        return vendor
