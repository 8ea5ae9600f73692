"""
Application constants - actor roles, order and payment statuses
"""


class ActorRole:
    """Actor roles"""

    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"

    @classmethod
    def all_roles(cls) -> list[str]:
        """List of all roles"""
        return [cls.CUSTOMER, cls.VENDOR, cls.ADMIN]


class OrderStatus:
    """Canonical order lifecycle statuses"""

    PLACED = "Placed"  # Customer placed the order
    CONFIRMED = "Confirmed"  # Vendor accepted it
    PREPARING = "Preparing"  # Kitchen is working on it
    READY = "Ready"  # Ready to serve
    SERVED = "Served"  # Handed over to the customer
    COMPLETED = "Completed"  # Closed
    CANCELLED = "Cancelled"  # Cancelled before completion

    @classmethod
    def all_statuses(cls) -> list[str]:
        """List of all statuses in lifecycle order"""
        return [
            cls.PLACED,
            cls.CONFIRMED,
            cls.PREPARING,
            cls.READY,
            cls.SERVED,
            cls.COMPLETED,
            cls.CANCELLED,
        ]

    @classmethod
    def ongoing_statuses(cls) -> list[str]:
        """Statuses of orders that are still in flight"""
        return [cls.PLACED, cls.CONFIRMED, cls.PREPARING, cls.READY, cls.SERVED]

    @classmethod
    def terminal_statuses(cls) -> list[str]:
        """Statuses no transition can leave"""
        return [cls.COMPLETED, cls.CANCELLED]

    @classmethod
    def get_status_emoji(cls, status: str) -> str:
        """Emoji for a status"""
        emojis = {
            cls.PLACED: "🆕",
            cls.CONFIRMED: "✅",
            cls.PREPARING: "👨‍🍳",
            cls.READY: "🛎",
            cls.SERVED: "🍽",
            cls.COMPLETED: "💰",
            cls.CANCELLED: "❌",
        }
        return emojis.get(status, "")

    @classmethod
    def get_status_name(cls, status: str) -> str:
        """Human readable status label"""
        names = {
            cls.PLACED: "Placed",
            cls.CONFIRMED: "Confirmed",
            cls.PREPARING: "Preparing",
            cls.READY: "Ready to Serve",
            cls.SERVED: "Served",
            cls.COMPLETED: "Completed",
            cls.CANCELLED: "Cancelled",
        }
        return names.get(status, status)


class PaymentStatus:
    """Payment statuses"""

    PENDING = "Pending"
    COMPLETED = "Completed"
    REFUNDED = "Refunded"
    FAILED = "Failed"

    @classmethod
    def all_statuses(cls) -> list[str]:
        """List of all payment statuses"""
        return [cls.PENDING, cls.COMPLETED, cls.REFUNDED, cls.FAILED]


class PaymentMethod:
    """Payment methods"""

    CASH = "Cash"  # Paid at the counter, settles after serving
    CARD = "Card"
    UPI = "UPI"
    WALLET = "Wallet"

    @classmethod
    def all_methods(cls) -> list[str]:
        """List of all payment methods"""
        return [cls.CASH, cls.CARD, cls.UPI, cls.WALLET]

    @classmethod
    def is_cash_on_delivery(cls, method: str) -> bool:
        """Cash orders may be served before the payment settles"""
        return method == cls.CASH


class VendorStatus:
    """Vendor account statuses"""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    SUSPENDED = "suspended"

    @classmethod
    def all_statuses(cls) -> list[str]:
        return [cls.PENDING, cls.APPROVED, cls.REJECTED, cls.ACTIVE, cls.SUSPENDED]

    @classmethod
    def can_receive_orders(cls, status: str) -> bool:
        return status in (cls.APPROVED, cls.ACTIVE)


class PayoutStatus:
    """Payout request statuses"""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def all_statuses(cls) -> list[str]:
        return [cls.PENDING, cls.APPROVED, cls.REJECTED]
