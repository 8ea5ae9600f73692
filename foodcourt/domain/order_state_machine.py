"""
State machine validating order status transitions
"""

from dataclasses import dataclass

from foodcourt.core.constants import ActorRole, OrderStatus, PaymentMethod
from foodcourt.database.models import Actor, Order
from foodcourt.domain.exceptions import FoodCourtError


class InvalidTransitionError(FoodCourtError):
    """Requested status change is not permitted"""

    def __init__(self, from_state: str, to_state: str, reason: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        message = f"Invalid transition from '{from_state}' to '{to_state}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)

    @property
    def current_status(self) -> str:
        """The authoritative status the request was validated against"""
        return self.from_state


@dataclass
class OrderStateTransitionResult:
    """Transition validation result"""

    is_valid: bool
    error_message: str | None = None
    required_role: str | None = None
    warnings: list[str] | None = None
    is_noop: bool = False


class OrderStateMachine:
    """
    Order lifecycle state machine

    Transition graph:

    Placed → Confirmed → Preparing → Ready → Served → Completed
      ↓          ↓           ↓          ↓       ↓
    Cancelled  Cancelled  Cancelled Cancelled Cancelled

    Customers and vendors may cancel only while the order is Placed or
    Confirmed; later cancellations are admin overrides.
    """

    TRANSITIONS: dict[str, set[str]] = {
        OrderStatus.PLACED: {
            OrderStatus.CONFIRMED,  # Vendor accepts
            OrderStatus.CANCELLED,
        },
        OrderStatus.CONFIRMED: {
            OrderStatus.PREPARING,
            OrderStatus.CANCELLED,
        },
        OrderStatus.PREPARING: {
            OrderStatus.READY,
            OrderStatus.CANCELLED,  # Admin only
        },
        OrderStatus.READY: {
            OrderStatus.SERVED,
            OrderStatus.CANCELLED,  # Admin only
        },
        OrderStatus.SERVED: {
            OrderStatus.COMPLETED,
            OrderStatus.CANCELLED,  # Admin only
        },
        OrderStatus.COMPLETED: set(),  # Terminal
        OrderStatus.CANCELLED: set(),  # Terminal
    }

    # (from_status, to_status): {allowed_roles}
    ROLE_PERMISSIONS: dict[tuple[str, str], set[str]] = {
        (OrderStatus.PLACED, OrderStatus.CONFIRMED): {ActorRole.VENDOR, ActorRole.ADMIN},
        (OrderStatus.CONFIRMED, OrderStatus.PREPARING): {ActorRole.VENDOR, ActorRole.ADMIN},
        (OrderStatus.PREPARING, OrderStatus.READY): {ActorRole.VENDOR, ActorRole.ADMIN},
        (OrderStatus.READY, OrderStatus.SERVED): {ActorRole.VENDOR, ActorRole.ADMIN},
        (OrderStatus.SERVED, OrderStatus.COMPLETED): {ActorRole.VENDOR, ActorRole.ADMIN},
        (OrderStatus.PLACED, OrderStatus.CANCELLED): {
            ActorRole.CUSTOMER,
            ActorRole.VENDOR,
            ActorRole.ADMIN,
        },
        (OrderStatus.CONFIRMED, OrderStatus.CANCELLED): {
            ActorRole.CUSTOMER,
            ActorRole.VENDOR,
            ActorRole.ADMIN,
        },
        (OrderStatus.PREPARING, OrderStatus.CANCELLED): {ActorRole.ADMIN},
        (OrderStatus.READY, OrderStatus.CANCELLED): {ActorRole.ADMIN},
        (OrderStatus.SERVED, OrderStatus.CANCELLED): {ActorRole.ADMIN},
    }

    # Statuses that require a settled payment unless paid in cash
    PAYMENT_GATED: frozenset[str] = frozenset({OrderStatus.SERVED, OrderStatus.COMPLETED})

    # Timing field stamped when the order enters a status
    TIMING_FIELDS: dict[str, str] = {
        OrderStatus.READY: "actual_ready",
        OrderStatus.SERVED: "served_at",
        OrderStatus.COMPLETED: "completed_at",
    }

    @classmethod
    def can_transition(cls, from_state: str, to_state: str) -> bool:
        """
        Whether the graph has an edge between two statuses

        Args:
            from_state: Current status
            to_state: Target status

        Returns:
            True if the edge exists (same status counts as a no-op edge)
        """
        if from_state == to_state:
            return True

        return to_state in cls.TRANSITIONS.get(from_state, set())

    @staticmethod
    def is_owner(order: Order, actor: Actor) -> bool:
        """
        Whether the actor owns the order on their side

        Customers own orders they placed, vendors own orders of their
        restaurant (vendor id == restaurant id), admins own everything.
        """
        if actor.role == ActorRole.ADMIN:
            return True
        if actor.role == ActorRole.VENDOR:
            return actor.user_id == order.restaurant_id
        if actor.role == ActorRole.CUSTOMER:
            return actor.user_id == order.user_id
        return False

    @classmethod
    def validate_transition(
        cls,
        from_state: str,
        to_state: str,
        actor_role: str | None = None,
        is_owner: bool = True,
        payment_settled: bool = True,
        raise_exception: bool = True,
    ) -> OrderStateTransitionResult:
        """
        Validate a transition including role authority

        Args:
            from_state: Current order status
            to_state: Target status
            actor_role: Role of the actor issuing the request
            is_owner: Whether the actor owns the order
            payment_settled: Whether payment is settled (or cash on delivery)
            raise_exception: Raise instead of returning an invalid result

        Returns:
            OrderStateTransitionResult

        Raises:
            InvalidTransitionError: Transition rejected and raise_exception=True
        """

        def reject(message: str, required_role: str | None = None) -> OrderStateTransitionResult:
            if raise_exception:
                raise InvalidTransitionError(from_state, to_state, message)
            return OrderStateTransitionResult(
                is_valid=False, error_message=message, required_role=required_role
            )

        if to_state not in cls.TRANSITIONS:
            return reject(f"unknown status '{to_state}'")

        if from_state == to_state:
            return OrderStateTransitionResult(
                is_valid=True,
                warnings=["Order is already in the requested status (idempotent)"],
                is_noop=True,
            )

        if cls.is_terminal_state(from_state):
            return reject(
                f"order is already {OrderStatus.get_status_name(from_state)}, "
                "which is a terminal status"
            )

        if not cls.can_transition(from_state, to_state):
            allowed = sorted(
                cls.TRANSITIONS.get(from_state, set()), key=OrderStatus.all_statuses().index
            )
            allowed_names = ", ".join(OrderStatus.get_status_name(s) for s in allowed)
            return reject(
                f"current status is {OrderStatus.get_status_name(from_state)}; "
                f"allowed next statuses: {allowed_names}"
            )

        required_roles = cls.ROLE_PERMISSIONS.get((from_state, to_state), set())
        if actor_role not in required_roles:
            role_names = ", ".join(sorted(required_roles))
            return reject(
                f"role '{actor_role}' may not move an order from "
                f"{OrderStatus.get_status_name(from_state)} to "
                f"{OrderStatus.get_status_name(to_state)}; requires one of: {role_names}",
                required_role=role_names,
            )

        if not is_owner:
            return reject(f"{actor_role} does not own this order")

        if to_state in cls.PAYMENT_GATED and not payment_settled:
            return reject("payment must be completed before the order is served")

        return OrderStateTransitionResult(is_valid=True)

    @classmethod
    def validate_order_transition(
        cls, order: Order, to_state: str, actor: Actor, raise_exception: bool = True
    ) -> OrderStateTransitionResult:
        """
        Validate a transition of a concrete order for a concrete actor

        Args:
            order: Freshly read order
            to_state: Target status
            actor: Actor issuing the request
            raise_exception: Raise instead of returning an invalid result

        Returns:
            OrderStateTransitionResult
        """
        payment_ok = order.payment.is_settled or PaymentMethod.is_cash_on_delivery(
            order.payment.method
        )
        return cls.validate_transition(
            from_state=order.status,
            to_state=to_state,
            actor_role=actor.role,
            is_owner=cls.is_owner(order, actor),
            payment_settled=payment_ok,
            raise_exception=raise_exception,
        )

    @classmethod
    def validate_repeat(cls, order: Order, to_state: str, actor: Actor) -> None:
        """
        Check a request for the status the order already has

        A repeat is answered with the current order only when the actor
        could have made the change that led there: they own the order and
        either hold a role allowed on the recorded edge or made the last
        change themselves.

        Raises:
            InvalidTransitionError: Actor had no part in reaching this status
        """
        if not cls.is_owner(order, actor):
            raise InvalidTransitionError(order.status, to_state, "actor does not own this order")

        if actor.role == ActorRole.ADMIN:
            return

        history = order.status_history
        last_entry = history[-1] if history else None
        if last_entry is not None and last_entry.actor_id == actor.user_id:
            return

        previous = history[-2].status if len(history) > 1 else None
        if previous is not None and actor.role in cls.ROLE_PERMISSIONS.get(
            (previous, order.status), set()
        ):
            return

        raise InvalidTransitionError(
            order.status,
            to_state,
            f"order is already {OrderStatus.get_status_name(order.status)}",
        )

    @classmethod
    def get_available_transitions(
        cls, from_state: str, actor_role: str | None = None
    ) -> list[str]:
        """
        Statuses reachable from the current one

        Args:
            from_state: Current status
            actor_role: Filter by what this role may trigger

        Returns:
            Reachable statuses in lifecycle order
        """
        allowed_states = cls.TRANSITIONS.get(from_state, set())

        available = [
            to_state
            for to_state in allowed_states
            if actor_role is None
            or actor_role in cls.ROLE_PERMISSIONS.get((from_state, to_state), set())
        ]
        return sorted(available, key=OrderStatus.all_statuses().index)

    @classmethod
    def get_transition_description(cls, from_state: str, to_state: str) -> str:
        """Human readable description of a transition"""
        descriptions = {
            (OrderStatus.PLACED, OrderStatus.CONFIRMED): "Vendor confirmed the order",
            (OrderStatus.CONFIRMED, OrderStatus.PREPARING): "Kitchen started preparing",
            (OrderStatus.PREPARING, OrderStatus.READY): "Order is ready to serve",
            (OrderStatus.READY, OrderStatus.SERVED): "Order served",
            (OrderStatus.SERVED, OrderStatus.COMPLETED): "Order completed",
            (OrderStatus.PLACED, OrderStatus.CANCELLED): "Order cancelled before confirmation",
            (OrderStatus.CONFIRMED, OrderStatus.CANCELLED): "Confirmed order cancelled",
        }

        key = (from_state, to_state)
        if key in descriptions:
            return descriptions[key]
        if to_state == OrderStatus.CANCELLED:
            return "Order cancelled by administrator"
        return (
            f"Status changed from {OrderStatus.get_status_name(from_state)} "
            f"to {OrderStatus.get_status_name(to_state)}"
        )

    @classmethod
    def is_terminal_state(cls, state: str) -> bool:
        """
        Whether the status has no outgoing transitions

        Args:
            state: Status to check

        Returns:
            True for Completed and Cancelled
        """
        return state in cls.TRANSITIONS and len(cls.TRANSITIONS[state]) == 0

    @classmethod
    def is_legal_path(cls, statuses: list[str]) -> bool:
        """
        Whether a status sequence is a walk through the graph from Placed

        Args:
            statuses: Statuses in recorded order

        Returns:
            True if every consecutive pair is an edge
        """
        if not statuses or statuses[0] != OrderStatus.PLACED:
            return False
        return all(
            b in cls.TRANSITIONS.get(a, set()) for a, b in zip(statuses, statuses[1:])
        )

    @classmethod
    def transition(
        cls, from_state: str, to_state: str, actor_role: str | None = None
    ) -> OrderStateTransitionResult:
        """
        Shorthand for validate_transition that always raises

        Raises:
            InvalidTransitionError: Transition rejected
        """
        return cls.validate_transition(
            from_state=from_state,
            to_state=to_state,
            actor_role=actor_role,
            raise_exception=True,
        )
