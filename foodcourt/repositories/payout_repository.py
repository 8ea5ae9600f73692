"""
Repository for vendor payout requests
"""

import logging
from datetime import datetime
from decimal import Decimal

import aiosqlite

from foodcourt.core.constants import PayoutStatus
from foodcourt.database.models import PayoutRequest
from foodcourt.repositories.base import BaseRepository
from foodcourt.repositories.exceptions import EntityNotFoundError, StaleWriteError
from foodcourt.utils.helpers import get_now


logger = logging.getLogger(__name__)


class PayoutRepository(BaseRepository[PayoutRequest]):
    """Payout request storage"""

    def _row_to_payout(self, row: aiosqlite.Row) -> PayoutRequest:
        return PayoutRequest(
            id=row["id"],
            vendor_id=row["vendor_id"],
            amount=Decimal(row["amount"]),
            status=row["status"],
            admin_notes=row["admin_notes"],
            processed_by=row["processed_by"],
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
            processed_at=(
                datetime.fromisoformat(row["processed_at"]) if row["processed_at"] else None
            ),
        )

    async def create(self, vendor_id: str, amount: Decimal) -> PayoutRequest:
        """Store a new pending request"""
        created_at = get_now()
        payout_id = await self._execute_commit(
            """
            INSERT INTO payout_requests (vendor_id, amount, status, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (vendor_id, str(amount), PayoutStatus.PENDING, created_at.isoformat()),
        )
        logger.info("Payout request #%s created: vendor=%s amount=%s", payout_id, vendor_id, amount)
        return PayoutRequest(
            id=payout_id,
            vendor_id=vendor_id,
            amount=amount,
            status=PayoutStatus.PENDING,
            created_at=created_at,
        )

    async def get(self, payout_id: int) -> PayoutRequest | None:
        row = await self._fetch_one("SELECT * FROM payout_requests WHERE id = ?", (payout_id,))
        return self._row_to_payout(row) if row else None

    async def list_for_vendor(
        self, vendor_id: str, status: str | None = None
    ) -> list[PayoutRequest]:
        """Requests of a vendor, newest first"""
        if status:
            rows = await self._fetch_all(
                "SELECT * FROM payout_requests WHERE vendor_id = ? AND status = ? "
                "ORDER BY id DESC",
                (vendor_id, status),
            )
        else:
            rows = await self._fetch_all(
                "SELECT * FROM payout_requests WHERE vendor_id = ? ORDER BY id DESC",
                (vendor_id,),
            )
        return [self._row_to_payout(row) for row in rows]

    async def list_all(self, status: str | None = None) -> list[PayoutRequest]:
        if status:
            rows = await self._fetch_all(
                "SELECT * FROM payout_requests WHERE status = ? ORDER BY id", (status,)
            )
        else:
            rows = await self._fetch_all("SELECT * FROM payout_requests ORDER BY id")
        return [self._row_to_payout(row) for row in rows]

    async def sum_amounts(self, vendor_id: str, statuses: list[str]) -> Decimal:
        """Total amount of a vendor's requests in the given statuses"""
        placeholders = ", ".join("?" for _ in statuses)
        rows = await self._fetch_all(
            "SELECT amount FROM payout_requests "
            f"WHERE vendor_id = ? AND status IN ({placeholders})",
            (vendor_id, *statuses),
        )
        return sum((Decimal(row["amount"]) for row in rows), Decimal("0"))

    async def process(
        self, payout_id: int, status: str, processed_by: str, admin_notes: str | None = None
    ) -> PayoutRequest:
        """
        Approve or reject a pending request

        Raises:
            EntityNotFoundError: Request does not exist
            StaleWriteError: Request was already processed
        """
        changed = await self._execute_update(
            """
            UPDATE payout_requests
            SET status = ?, processed_by = ?, admin_notes = ?, processed_at = ?
            WHERE id = ? AND status = ?
            """,
            (
                status,
                processed_by,
                admin_notes or "",
                get_now().isoformat(),
                payout_id,
                PayoutStatus.PENDING,
            ),
        )

        payout = await self.get(payout_id)
        if payout is None:
            raise EntityNotFoundError("Payout request", str(payout_id))
        if not changed:
            raise StaleWriteError(str(payout_id), PayoutStatus.PENDING, payout.status)

        logger.info("Payout request #%s %s by %s", payout_id, status, processed_by)
        return payout
