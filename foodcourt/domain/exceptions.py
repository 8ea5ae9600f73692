"""
Domain errors
"""

from decimal import Decimal


class FoodCourtError(Exception):
    """Base class for every error the core reports to its callers"""


class NotSettledError(FoodCourtError):
    """
    Financial split requested for an order whose payment has not settled

    Not retryable until the payment status becomes Completed.
    """

    def __init__(self, order_id: str, payment_status: str):
        self.order_id = order_id
        self.payment_status = payment_status
        super().__init__(
            f"Order {order_id}: payment not yet settled (payment status: {payment_status})"
        )


class InvalidAmountError(FoodCourtError, ValueError):
    """Monetary input outside the accepted range"""

    def __init__(self, field: str, value: Decimal | float | int, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} ({value}): {reason}")


class DispatchFailedError(FoodCourtError):
    """
    Notification delivery failed after all attempts

    Never rolls back the transition that triggered it.
    """

    def __init__(self, user_id: str, template: str, attempts: int, cause: Exception | None = None):
        self.user_id = user_id
        self.template = template
        self.attempts = attempts
        self.cause = cause
        message = f"Notification '{template}' for user {user_id} failed after {attempts} attempt(s)"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class PermissionDeniedError(FoodCourtError):
    """Actor is not allowed to perform a non-transition operation"""

    def __init__(self, actor_role: str, action: str):
        self.actor_role = actor_role
        self.action = action
        super().__init__(f"Role '{actor_role}' may not {action}")


class OrderLockedError(FoodCourtError):
    """Order field edit attempted after the field was frozen"""

    def __init__(self, order_id: str, field: str, reason: str):
        self.order_id = order_id
        self.field = field
        self.reason = reason
        super().__init__(f"Order {order_id}: '{field}' can no longer be changed ({reason})")
