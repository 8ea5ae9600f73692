"""
Commission / platform fee / net payout split of a settled order

Every view that shows money for an order (vendor statement, admin ledger,
payout balance, presenters) goes through compute_split so the figures are
identical everywhere.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from foodcourt.core.config import Config
from foodcourt.database.models import Order
from foodcourt.domain.exceptions import InvalidAmountError, NotSettledError


HUNDRED = Decimal("100")


@dataclass(frozen=True)
class FinancialSplit:
    """Derived split of a settled total (never stored)"""

    total_amount: Decimal
    commission: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    commission_rate: Decimal
    platform_fee_rate: Decimal

    def as_dict(self) -> dict[str, str]:
        return {
            "total_amount": str(self.total_amount),
            "commission": str(self.commission),
            "platform_fee": str(self.platform_fee),
            "net_amount": str(self.net_amount),
            "commission_rate": str(self.commission_rate),
            "platform_fee_rate": str(self.platform_fee_rate),
        }


def to_decimal(value: Decimal | int | float | str, field: str = "amount") -> Decimal:
    """
    Convert a monetary input to Decimal

    Floats go through str() so 0.1 stays 0.1 rather than its binary expansion.

    Raises:
        InvalidAmountError: Value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise InvalidAmountError(field, value, "boolean is not an amount")
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(value)
        except ArithmeticError as e:
            raise InvalidAmountError(field, value, "not a number") from e

    if not result.is_finite():
        raise InvalidAmountError(field, value, "not a finite number")
    return result


def round_money(value: Decimal, quantum: Decimal | None = None) -> Decimal:
    """Round half-up to the currency quantum"""
    return value.quantize(quantum or Config.CURRENCY_QUANTUM, rounding=ROUND_HALF_UP)


def compute_split(
    total_amount: Decimal | int | float | str,
    commission_rate_percent: Decimal | int | float | str,
    platform_fee_percent: Decimal | int | float | str | None = None,
) -> FinancialSplit:
    """
    Split a settled total into commission, platform fee and vendor net

    commission and platform fee are both percentages of the total (the fee
    is not charged on the commission); net is whatever remains, so the three
    parts always add up to the total exactly.

    Args:
        total_amount: Settled order total
        commission_rate_percent: Vendor commission rate, percent
        platform_fee_percent: Platform fee, percent (Config.PLATFORM_FEE_PERCENT by default)

    Returns:
        FinancialSplit

    Raises:
        InvalidAmountError: Negative total or rates outside 0..100 in sum,
            or a total finer than the currency unit
    """
    total = to_decimal(total_amount, "total_amount")
    rate = to_decimal(commission_rate_percent, "commission_rate")
    fee_rate = to_decimal(
        Config.PLATFORM_FEE_PERCENT if platform_fee_percent is None else platform_fee_percent,
        "platform_fee_rate",
    )

    if total < 0:
        raise InvalidAmountError("total_amount", total, "must not be negative")
    if not 0 <= rate <= HUNDRED:
        raise InvalidAmountError("commission_rate", rate, "must be within 0..100")
    if not 0 <= fee_rate <= HUNDRED:
        raise InvalidAmountError("platform_fee_rate", fee_rate, "must be within 0..100")
    if rate + fee_rate > HUNDRED:
        raise InvalidAmountError(
            "commission_rate", rate, f"commission plus platform fee ({fee_rate}) exceeds 100%"
        )

    if round_money(total) != total:
        raise InvalidAmountError(
            "total_amount", total, f"finer than the currency unit {Config.CURRENCY_QUANTUM}"
        )

    total = round_money(total)
    commission = round_money(total * rate / HUNDRED)
    # Independent half-up rounding of both parts may overshoot a tiny total
    platform_fee = min(round_money(total * fee_rate / HUNDRED), total - commission)
    net_amount = total - commission - platform_fee

    return FinancialSplit(
        total_amount=total,
        commission=commission,
        platform_fee=platform_fee,
        net_amount=net_amount,
        commission_rate=rate,
        platform_fee_rate=fee_rate,
    )


def split_for_order(
    order: Order,
    commission_rate_percent: Decimal | int | float | str,
    platform_fee_percent: Decimal | int | float | str | None = None,
) -> FinancialSplit:
    """
    Split of a stored order

    Args:
        order: Order
        commission_rate_percent: Rate read from the vendor record at call time
        platform_fee_percent: Platform fee override

    Returns:
        FinancialSplit

    Raises:
        NotSettledError: Payment status is not Completed
    """
    if not order.payment.is_settled:
        raise NotSettledError(order.id, order.payment.status)

    return compute_split(order.pricing.total_amount, commission_rate_percent, platform_fee_percent)
