"""
Data models
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from foodcourt.core.constants import (
    ActorRole,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PayoutStatus,
    VendorStatus,
)


@dataclass(frozen=True)
class Actor:
    """Resolved caller identity (authentication happens outside the core)"""
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_vendor(self) -> bool:
        return self.role == ActorRole.VENDOR

    @property
    def is_customer(self) -> bool:
        return self.role == ActorRole.CUSTOMER


@dataclass
class OrderItem:
    """Order line item"""
    id: str
    name: str
    unit_price: Decimal
    quantity: int = 1
    category: str | None = None
    customizations: list[str] = field(default_factory=list)

    @property
    def total_price(self) -> Decimal:
        """Line total"""
        return self.unit_price * self.quantity


@dataclass
class Pricing:
    """Order pricing summary, total_amount is the settled value"""
    subtotal: Decimal = Decimal("0")
    taxes: Decimal = Decimal("0")
    delivery_fee: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")

    def expected_total(self) -> Decimal:
        """subtotal + taxes + delivery_fee - discount"""
        return self.subtotal + self.taxes + self.delivery_fee - self.discount

    def is_consistent(self) -> bool:
        """Whether total_amount matches its components"""
        return self.total_amount == self.expected_total()


@dataclass
class Payment:
    """Payment state of an order"""
    method: str = PaymentMethod.CASH
    status: str = PaymentStatus.PENDING
    transaction_id: str | None = None
    paid_at: datetime | None = None

    @property
    def is_settled(self) -> bool:
        return self.status == PaymentStatus.COMPLETED


@dataclass
class Timing:
    """Lifecycle timestamps, each set at most once"""
    order_placed: datetime | None = None
    estimated_ready: datetime | None = None
    actual_ready: datetime | None = None
    served_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass
class DineIn:
    """Table information"""
    table_number: str | None = None
    seating_area: str | None = None
    guest_count: int = 1


@dataclass
class StatusHistoryEntry:
    """One recorded transition"""
    status: str
    timestamp: datetime
    note: str | None = None
    actor_role: str | None = None
    actor_id: str | None = None


@dataclass
class Order:
    """Order document"""
    id: str = ""
    order_number: str = ""
    user_id: str = ""
    restaurant_id: str = ""
    restaurant_name: str = ""
    items: list[OrderItem] = field(default_factory=list)
    pricing: Pricing = field(default_factory=Pricing)
    status: str = OrderStatus.PLACED
    status_history: list[StatusHistoryEntry] = field(default_factory=list)
    payment: Payment = field(default_factory=Payment)
    timing: Timing = field(default_factory=Timing)
    dine_in: DineIn | None = None
    notes: str | None = None
    source: str = "mobile_app"
    created_at: datetime | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None
    sequence: int = 0  # Store write sequence, assigned on every put

    @property
    def total_amount(self) -> Decimal:
        return self.pricing.total_amount

    @property
    def is_settled(self) -> bool:
        return self.payment.is_settled

    @property
    def is_terminal(self) -> bool:
        return self.status in OrderStatus.terminal_statuses()

    @property
    def is_ongoing(self) -> bool:
        return self.status in OrderStatus.ongoing_statuses()

    def last_history_entry(self) -> StatusHistoryEntry | None:
        """Most recent history entry"""
        return self.status_history[-1] if self.status_history else None


@dataclass
class Notification:
    """User-facing message"""
    user_id: str
    title: str
    message: str
    template: str = ""
    related_order_id: str | None = None
    read: bool = False
    created_at: datetime | None = None
    dedupe_key: str = ""
    id: int | None = None


@dataclass
class Vendor:
    """Vendor record (vendor id is also the restaurant id)"""
    id: str
    name: str = ""
    commission_rate: Decimal | None = None  # percent
    status: str = VendorStatus.PENDING
    status_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class PayoutRequest:
    """Vendor payout request"""
    vendor_id: str
    amount: Decimal
    status: str = PayoutStatus.PENDING
    admin_notes: str | None = None
    processed_by: str | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None
    id: int | None = None
