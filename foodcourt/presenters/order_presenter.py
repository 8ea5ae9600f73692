"""
OrderPresenter - formatting orders for display
"""

import html
from decimal import Decimal

from foodcourt.core.constants import OrderStatus, PaymentStatus
from foodcourt.database.models import Order
from foodcourt.domain.exceptions import NotSettledError
from foodcourt.domain.financial import FinancialSplit, split_for_order
from foodcourt.domain.order_state_machine import InvalidTransitionError
from foodcourt.utils.helpers import format_datetime, format_money, truncate_text


NOT_SETTLED_TEXT = "payment not yet settled"


class OrderPresenter:
    """Presenter for orders"""

    # Vendor dashboard vocabulary; Served and Completed both read "collected"
    VENDOR_VOCABULARY: dict[str, str] = {
        OrderStatus.PLACED: "pending",
        OrderStatus.CONFIRMED: "accepted",
        OrderStatus.PREPARING: "preparing",
        OrderStatus.READY: "ready",
        OrderStatus.SERVED: "collected",
        OrderStatus.COMPLETED: "collected",
        OrderStatus.CANCELLED: "cancelled",
    }

    # Reverse mapping; "collected" from the dashboard means the order was handed over
    FROM_VENDOR_VOCABULARY: dict[str, str] = {
        "pending": OrderStatus.PLACED,
        "accepted": OrderStatus.CONFIRMED,
        "preparing": OrderStatus.PREPARING,
        "ready": OrderStatus.READY,
        "collected": OrderStatus.SERVED,
        "cancelled": OrderStatus.CANCELLED,
    }

    @staticmethod
    def status_label(status: str) -> str:
        """Emoji plus display label"""
        return f"{OrderStatus.get_status_emoji(status)} {OrderStatus.get_status_name(status)}"

    @classmethod
    def to_vendor_status(cls, status: str) -> str:
        """
        Canonical status -> vendor dashboard word

        Raises:
            ValueError: Unknown status
        """
        if status not in cls.VENDOR_VOCABULARY:
            raise ValueError(f"Unknown order status: {status}")
        return cls.VENDOR_VOCABULARY[status]

    @classmethod
    def from_vendor_status(cls, vendor_status: str) -> str:
        """
        Vendor dashboard word -> canonical status

        Raises:
            ValueError: Unknown dashboard status
        """
        key = vendor_status.strip().lower()
        if key not in cls.FROM_VENDOR_VOCABULARY:
            raise ValueError(f"Unknown vendor status: {vendor_status}")
        return cls.FROM_VENDOR_VOCABULARY[key]

    @staticmethod
    def format_order_short(order: Order) -> str:
        """
        Short form for lists

        Args:
            order: Order

        Returns:
            e.g. "🛎 #SC104233 - Spice Hub (₹450.00)"
        """
        status_emoji = OrderStatus.get_status_emoji(order.status)
        return (
            f"{status_emoji} #{order.order_number} - {order.restaurant_name or order.restaurant_id}"
            f" ({format_money(order.total_amount)})"
        )

    @staticmethod
    def format_order_list(orders: list[Order], title: str = "Orders") -> str:
        if not orders:
            return f"📭 {title}: no orders"

        text = f"📋 <b>{title}:</b> ({len(orders)})\n\n"
        for order in orders:
            text += f"• {OrderPresenter.format_order_short(order)}\n"
        return text

    @staticmethod
    def format_order_details(
        order: Order,
        commission_rate: Decimal | None = None,
        escape_html: bool = False,
    ) -> str:
        """
        Detailed order card

        Args:
            order: Order
            commission_rate: Vendor's rate; when given, the money split is included
            escape_html: Escape user-supplied text

        Returns:
            Formatted text
        """

        def safe(value: str | None) -> str:
            if value is None:
                return ""
            return html.escape(value) if escape_html else value

        text = (
            f"🧾 <b>Order #{order.order_number}</b>\n\n"
            f"🏪 <b>Restaurant:</b> {safe(order.restaurant_name or order.restaurant_id)}\n"
            f"📊 <b>Status:</b> {OrderPresenter.status_label(order.status)}\n"
        )

        if order.dine_in and order.dine_in.table_number:
            text += (
                f"🪑 <b>Table:</b> {safe(order.dine_in.table_number)}"
                f" ({order.dine_in.guest_count} guests)\n"
            )

        text += "\n🍽 <b>Items:</b>\n"
        for item in order.items:
            extras = f" [{safe(', '.join(item.customizations))}]" if item.customizations else ""
            text += (
                f"• {item.quantity} x {safe(item.name)}{extras} - "
                f"{format_money(item.total_price)}\n"
            )

        pricing = order.pricing
        text += f"\n💵 <b>Subtotal:</b> {format_money(pricing.subtotal)}\n"
        if pricing.taxes:
            text += f"├ Taxes: {format_money(pricing.taxes)}\n"
        if pricing.delivery_fee:
            text += f"├ Service fee: {format_money(pricing.delivery_fee)}\n"
        if pricing.discount:
            text += f"├ Discount: -{format_money(pricing.discount)}\n"
        text += f"└ <b>Total:</b> {format_money(pricing.total_amount)}\n"

        payment = order.payment
        text += f"\n💳 <b>Payment:</b> {payment.method}, {payment.status}"
        if payment.paid_at:
            text += f" ({format_datetime(payment.paid_at)})"
        text += "\n"

        if order.notes:
            text += f"📝 <b>Notes:</b> {safe(truncate_text(order.notes, 200))}\n"

        if order.timing.estimated_ready and order.status in (
            OrderStatus.PLACED,
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
        ):
            text += f"⏰ <b>Ready by:</b> {format_datetime(order.timing.estimated_ready)}\n"

        if commission_rate is not None:
            text += "\n" + OrderPresenter.format_order_split(order, commission_rate) + "\n"

        text += f"\n📅 <b>Placed:</b> {format_datetime(order.created_at)}\n"
        return text

    @staticmethod
    def format_split(split: FinancialSplit) -> str:
        """Commission / platform fee / net payout block"""
        return (
            f"💰 <b>Settlement:</b>\n"
            f"├ Total: {format_money(split.total_amount)}\n"
            f"├ Commission ({split.commission_rate}%): {format_money(split.commission)}\n"
            f"├ Platform fee ({split.platform_fee_rate}%): {format_money(split.platform_fee)}\n"
            f"└ Net payout: <b>{format_money(split.net_amount)}</b>"
        )

    @staticmethod
    def format_order_split(order: Order, commission_rate: Decimal) -> str:
        """Split of an order, or a notice when the payment has not settled"""
        try:
            split = split_for_order(order, commission_rate)
        except NotSettledError:
            if order.payment.status == PaymentStatus.REFUNDED:
                return "💰 <b>Settlement:</b> payment refunded"
            return f"💰 <b>Settlement:</b> {NOT_SETTLED_TEXT}"
        return OrderPresenter.format_split(split)

    @staticmethod
    def format_transition_error(error: InvalidTransitionError) -> str:
        """
        User-facing text of a rejected transition

        Always names the authoritative current status so the caller can
        refresh and retry.
        """
        current = OrderStatus.get_status_name(error.current_status)
        requested = OrderStatus.get_status_name(error.to_state)
        text = f"❌ Cannot change the order to {requested}: current status is {current}."
        if error.reason:
            text += f"\n{error.reason}"
        return text
