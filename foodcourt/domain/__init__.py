"""Domain layer - order lifecycle rules and money arithmetic"""

from foodcourt.domain.exceptions import (
    DispatchFailedError,
    FoodCourtError,
    InvalidAmountError,
    NotSettledError,
    OrderLockedError,
    PermissionDeniedError,
)
from foodcourt.domain.financial import FinancialSplit, compute_split, split_for_order
from foodcourt.domain.order_state_machine import (
    InvalidTransitionError,
    OrderStateMachine,
    OrderStateTransitionResult,
)


__all__ = [
    "DispatchFailedError",
    "FinancialSplit",
    "FoodCourtError",
    "InvalidAmountError",
    "InvalidTransitionError",
    "NotSettledError",
    "OrderLockedError",
    "OrderStateMachine",
    "OrderStateTransitionResult",
    "PermissionDeniedError",
    "compute_split",
    "split_for_order",
]
