"""Application core - configuration and constants"""

from foodcourt.core.config import Config
from foodcourt.core.constants import (
    ActorRole,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PayoutStatus,
    VendorStatus,
)


__all__ = [
    "ActorRole",
    "Config",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "PayoutStatus",
    "VendorStatus",
]
