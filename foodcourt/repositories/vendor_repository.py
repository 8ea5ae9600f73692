"""
Repository for vendor records
"""

import logging
from datetime import datetime
from decimal import Decimal

import aiosqlite

from foodcourt.core.constants import VendorStatus
from foodcourt.database.models import Vendor
from foodcourt.repositories.base import BaseRepository
from foodcourt.repositories.exceptions import DuplicateEntityError, EntityNotFoundError
from foodcourt.utils.helpers import get_now


logger = logging.getLogger(__name__)


class VendorRepository(BaseRepository[Vendor]):
    """Vendor storage (vendor id doubles as the restaurant id of its orders)"""

    def _row_to_vendor(self, row: aiosqlite.Row) -> Vendor:
        return Vendor(
            id=row["id"],
            name=row["name"] or "",
            commission_rate=(
                Decimal(row["commission_rate"]) if row["commission_rate"] is not None else None
            ),
            status=row["status"],
            status_reason=row["status_reason"],
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
            updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        )

    async def create(self, vendor: Vendor) -> Vendor:
        """
        Register a vendor

        Raises:
            DuplicateEntityError: Vendor id already exists
        """
        now = get_now()
        try:
            await self._execute_commit(
                """
                INSERT INTO vendors
                    (id, name, commission_rate, status, status_reason, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    vendor.id,
                    vendor.name,
                    str(vendor.commission_rate) if vendor.commission_rate is not None else None,
                    vendor.status,
                    vendor.status_reason,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
        except aiosqlite.IntegrityError as e:
            raise DuplicateEntityError("Vendor", vendor.id) from e

        vendor.created_at = now
        vendor.updated_at = now
        logger.info("Vendor %s registered (status=%s)", vendor.id, vendor.status)
        return vendor

    async def get(self, vendor_id: str) -> Vendor | None:
        row = await self._fetch_one("SELECT * FROM vendors WHERE id = ?", (vendor_id,))
        return self._row_to_vendor(row) if row else None

    async def get_or_raise(self, vendor_id: str) -> Vendor:
        vendor = await self.get(vendor_id)
        if vendor is None:
            raise EntityNotFoundError("Vendor", vendor_id)
        return vendor

    async def get_commission_rate(self, vendor_id: str) -> Decimal | None:
        """
        Current commission rate of a vendor (percent)

        Read on every split computation, never cached.

        Returns:
            Rate or None when the vendor or its rate is unknown
        """
        row = await self._fetch_one(
            "SELECT commission_rate FROM vendors WHERE id = ?", (vendor_id,)
        )
        if row is None or row["commission_rate"] is None:
            return None
        return Decimal(row["commission_rate"])

    async def list_by_status(self, status: str | None = None) -> list[Vendor]:
        if status:
            rows = await self._fetch_all(
                "SELECT * FROM vendors WHERE status = ? ORDER BY created_at", (status,)
            )
        else:
            rows = await self._fetch_all("SELECT * FROM vendors ORDER BY created_at")
        return [self._row_to_vendor(row) for row in rows]

    async def update_status(
        self, vendor_id: str, status: str, reason: str | None = None
    ) -> Vendor:
        """
        Change vendor status

        Raises:
            ValueError: Unknown status
            EntityNotFoundError: Vendor does not exist
        """
        if status not in VendorStatus.all_statuses():
            raise ValueError(f"Unknown vendor status: {status}")

        changed = await self._execute_update(
            "UPDATE vendors SET status = ?, status_reason = ?, updated_at = ? WHERE id = ?",
            (status, reason, get_now().isoformat(), vendor_id),
        )
        if not changed:
            raise EntityNotFoundError("Vendor", vendor_id)

        logger.info("Vendor %s status -> %s", vendor_id, status)
        return await self.get_or_raise(vendor_id)

    async def update_commission_rate(self, vendor_id: str, rate: Decimal) -> Vendor:
        """
        Set the vendor's commission rate (percent)

        Raises:
            EntityNotFoundError: Vendor does not exist
        """
        changed = await self._execute_update(
            "UPDATE vendors SET commission_rate = ?, updated_at = ? WHERE id = ?",
            (str(rate), get_now().isoformat(), vendor_id),
        )
        if not changed:
            raise EntityNotFoundError("Vendor", vendor_id)

        logger.info("Vendor %s commission rate -> %s%%", vendor_id, rate)
        return await self.get_or_raise(vendor_id)
