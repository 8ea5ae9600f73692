"""
Tests for OrderStateMachine
"""

import pytest

from foodcourt.core.constants import ActorRole, OrderStatus, PaymentMethod, PaymentStatus
from foodcourt.database.models import Actor, Order, Payment
from foodcourt.domain.order_state_machine import InvalidTransitionError, OrderStateMachine


C, V, A = ActorRole.CUSTOMER, ActorRole.VENDOR, ActorRole.ADMIN

# Every permitted (from, to) edge with the roles allowed to take it
AUTHORITY = {
    (OrderStatus.PLACED, OrderStatus.CONFIRMED): {V, A},
    (OrderStatus.CONFIRMED, OrderStatus.PREPARING): {V, A},
    (OrderStatus.PREPARING, OrderStatus.READY): {V, A},
    (OrderStatus.READY, OrderStatus.SERVED): {V, A},
    (OrderStatus.SERVED, OrderStatus.COMPLETED): {V, A},
    (OrderStatus.PLACED, OrderStatus.CANCELLED): {C, V, A},
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED): {C, V, A},
    (OrderStatus.PREPARING, OrderStatus.CANCELLED): {A},
    (OrderStatus.READY, OrderStatus.CANCELLED): {A},
    (OrderStatus.SERVED, OrderStatus.CANCELLED): {A},
}


def make_order(
    status: str,
    payment_status: str = PaymentStatus.COMPLETED,
    method: str = PaymentMethod.CARD,
) -> Order:
    return Order(
        id="ord_1",
        order_number="SC000001",
        user_id="cust_1",
        restaurant_id="rest_1",
        status=status,
        payment=Payment(method=method, status=payment_status),
    )


class TestTransitionGraph:
    """Tests for the transition graph"""

    def test_happy_path_is_legal(self):
        """Placed → … → Completed is a walk through the graph"""
        path = [
            OrderStatus.PLACED,
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
            OrderStatus.READY,
            OrderStatus.SERVED,
            OrderStatus.COMPLETED,
        ]
        assert OrderStateMachine.is_legal_path(path)

    def test_skipping_a_status_is_not_legal(self):
        path = [OrderStatus.PLACED, OrderStatus.PREPARING]
        assert not OrderStateMachine.is_legal_path(path)

    def test_path_must_start_at_placed(self):
        assert not OrderStateMachine.is_legal_path([OrderStatus.CONFIRMED, OrderStatus.PREPARING])
        assert not OrderStateMachine.is_legal_path([])

    @pytest.mark.parametrize("status", [OrderStatus.COMPLETED, OrderStatus.CANCELLED])
    def test_terminal_states(self, status):
        """Completed and Cancelled have no way out"""
        assert OrderStateMachine.is_terminal_state(status)
        assert OrderStateMachine.get_available_transitions(status) == []

    def test_no_backward_edges(self):
        """Monotonicity: no edge leads to an earlier lifecycle status"""
        order = OrderStatus.all_statuses()
        for from_state, targets in OrderStateMachine.TRANSITIONS.items():
            for to_state in targets:
                if to_state == OrderStatus.CANCELLED:
                    continue
                assert order.index(to_state) > order.index(from_state)

    def test_available_transitions_for_customer(self):
        assert OrderStateMachine.get_available_transitions(OrderStatus.PLACED, C) == [
            OrderStatus.CANCELLED
        ]
        assert OrderStateMachine.get_available_transitions(OrderStatus.PREPARING, C) == []

    def test_available_transitions_in_lifecycle_order(self):
        assert OrderStateMachine.get_available_transitions(OrderStatus.PLACED, V) == [
            OrderStatus.CONFIRMED,
            OrderStatus.CANCELLED,
        ]


class TestAuthority:
    """Authority over the full (from, to, role) product"""

    @pytest.mark.parametrize("from_state", OrderStatus.all_statuses())
    @pytest.mark.parametrize("to_state", OrderStatus.all_statuses())
    @pytest.mark.parametrize("role", ActorRole.all_roles())
    def test_cartesian_product(self, from_state, to_state, role):
        """Allowed exactly when the edge exists and the role holds authority over it"""
        result = OrderStateMachine.validate_transition(
            from_state, to_state, actor_role=role, raise_exception=False
        )

        if from_state == to_state:
            assert result.is_valid
            assert result.is_noop
        else:
            expected = role in AUTHORITY.get((from_state, to_state), set())
            assert result.is_valid is expected
            if not expected:
                assert result.error_message

    def test_unknown_role_is_rejected(self):
        with pytest.raises(InvalidTransitionError):
            OrderStateMachine.transition(OrderStatus.PLACED, OrderStatus.CONFIRMED, "courier")

    def test_unknown_target_status(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            OrderStateMachine.transition(OrderStatus.PLACED, "Delivered", V)
        assert "unknown status" in str(exc_info.value)

    def test_error_carries_current_status(self):
        """The rejection names the authoritative current status"""
        with pytest.raises(InvalidTransitionError) as exc_info:
            OrderStateMachine.transition(OrderStatus.PREPARING, OrderStatus.CANCELLED, C)

        error = exc_info.value
        assert error.current_status == OrderStatus.PREPARING
        assert error.to_state == OrderStatus.CANCELLED

    def test_skip_error_lists_allowed_statuses(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            OrderStateMachine.transition(OrderStatus.PLACED, OrderStatus.READY, A)
        assert "current status is Placed" in str(exc_info.value)
        assert "Confirmed" in str(exc_info.value)


class TestOrderValidation:
    """Tests for validate_order_transition"""

    def test_vendor_of_another_restaurant_is_rejected(self):
        order = make_order(OrderStatus.PLACED)
        actor = Actor(user_id="rest_2", role=V)

        result = OrderStateMachine.validate_order_transition(
            order, OrderStatus.CONFIRMED, actor, raise_exception=False
        )
        assert not result.is_valid
        assert "does not own" in result.error_message

    def test_customer_cannot_cancel_foreign_order(self):
        order = make_order(OrderStatus.PLACED)
        actor = Actor(user_id="cust_2", role=C)

        with pytest.raises(InvalidTransitionError):
            OrderStateMachine.validate_order_transition(order, OrderStatus.CANCELLED, actor)

    def test_admin_owns_everything(self):
        order = make_order(OrderStatus.READY)
        actor = Actor(user_id="admin_1", role=A)
        assert OrderStateMachine.is_owner(order, actor)

    def test_serving_requires_settled_payment(self):
        order = make_order(OrderStatus.READY, payment_status=PaymentStatus.PENDING)
        actor = Actor(user_id="rest_1", role=V)

        with pytest.raises(InvalidTransitionError) as exc_info:
            OrderStateMachine.validate_order_transition(order, OrderStatus.SERVED, actor)
        assert "payment" in exc_info.value.reason

    def test_cash_orders_may_be_served_before_payment(self):
        order = make_order(
            OrderStatus.READY, payment_status=PaymentStatus.PENDING, method=PaymentMethod.CASH
        )
        actor = Actor(user_id="rest_1", role=V)

        result = OrderStateMachine.validate_order_transition(order, OrderStatus.SERVED, actor)
        assert result.is_valid

    def test_cancel_does_not_require_payment(self):
        order = make_order(OrderStatus.PLACED, payment_status=PaymentStatus.PENDING)
        actor = Actor(user_id="cust_1", role=C)

        result = OrderStateMachine.validate_order_transition(order, OrderStatus.CANCELLED, actor)
        assert result.is_valid


class TestTransitionDescription:
    def test_known_edge(self):
        assert (
            OrderStateMachine.get_transition_description(OrderStatus.PLACED, OrderStatus.CONFIRMED)
            == "Vendor confirmed the order"
        )

    def test_late_cancellation_is_admin(self):
        description = OrderStateMachine.get_transition_description(
            OrderStatus.SERVED, OrderStatus.CANCELLED
        )
        assert description == "Order cancelled by administrator"
