"""
Tests for OrderService
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from foodcourt.core.config import Config
from foodcourt.core.constants import OrderStatus, PaymentMethod, PaymentStatus
from foodcourt.domain.exceptions import OrderLockedError, PermissionDeniedError
from foodcourt.domain.order_state_machine import InvalidTransitionError
from foodcourt.repositories import MemoryOrderStore
from foodcourt.repositories.exceptions import EntityNotFoundError, StaleWriteError
from foodcourt.schemas import OrderItemSchema, OrderItemsUpdateSchema, PricingSchema
from foodcourt.services.notification_dispatcher import NotificationTemplate
from foodcourt.services.order_service import OrderService


class InterleavingStore(MemoryOrderStore):
    """Yields to the event loop after every read so concurrent requests interleave"""

    async def get(self, order_id):
        order = await super().get(order_id)
        await asyncio.sleep(0)
        return order


class TestPlaceOrder:
    """Tests for order placement"""

    @pytest.mark.asyncio
    async def test_new_order_starts_placed(self, order_service, customer, make_order_data):
        order = await order_service.place_order(make_order_data(), customer)

        assert order.status == OrderStatus.PLACED
        assert order.user_id == customer.user_id
        assert order.payment.status == PaymentStatus.PENDING
        assert order.total_amount == Decimal("1000.00")
        assert len(order.status_history) == 1
        assert order.status_history[0].note == "Order received"
        assert order.timing.estimated_ready - order.timing.order_placed == timedelta(
            minutes=Config.ESTIMATED_READY_MINUTES
        )
        assert order.sequence > 0

    @pytest.mark.asyncio
    async def test_only_customers_place_orders(self, order_service, vendor, make_order_data):
        with pytest.raises(PermissionDeniedError):
            await order_service.place_order(make_order_data(), vendor)

    @pytest.mark.asyncio
    async def test_order_number_collision_draws_again(
        self, order_service, customer, make_order_data, monkeypatch
    ):
        """A taken order number is replaced by a fresh one"""
        numbers = iter(["SC000001", "SC000001", "SC000002"])
        monkeypatch.setattr(
            "foodcourt.services.order_service.generate_order_number", lambda: next(numbers)
        )

        first = await order_service.place_order(make_order_data(), customer)
        second = await order_service.place_order(make_order_data(), customer)

        assert first.order_number == "SC000001"
        assert second.order_number == "SC000002"


class TestRequestTransition:
    """Tests for status transitions"""

    @pytest.mark.asyncio
    async def test_vendor_confirms(self, order_service, place_order, vendor):
        """Placed → Confirmed by the vendor, history grows to two entries"""
        order = await place_order()

        updated = await order_service.request_transition(order.id, OrderStatus.CONFIRMED, vendor)

        assert updated.status == OrderStatus.CONFIRMED
        assert len(updated.status_history) == 2
        assert updated.status_history[-1].actor_role == vendor.role
        assert (await order_service.get_order(order.id)).status == OrderStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_customer_cannot_skip_to_served(self, order_service, place_order, customer):
        order = await place_order(status=OrderStatus.PREPARING, settled=True)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await order_service.request_transition(order.id, OrderStatus.SERVED, customer)

        assert exc_info.value.current_status == OrderStatus.PREPARING
        assert (await order_service.get_order(order.id)).status == OrderStatus.PREPARING

    @pytest.mark.asyncio
    async def test_admin_cancel_is_terminal(self, order_service, place_order, admin, vendor):
        order = await place_order(status=OrderStatus.CONFIRMED)

        cancelled = await order_service.request_transition(order.id, OrderStatus.CANCELLED, admin)
        assert cancelled.status == OrderStatus.CANCELLED

        with pytest.raises(InvalidTransitionError):
            await order_service.request_transition(order.id, OrderStatus.CONFIRMED, vendor)

    @pytest.mark.asyncio
    async def test_repeated_request_is_a_noop(self, order_service, place_order, vendor):
        """A duplicate request leaves history and sequence untouched"""
        order = await place_order()
        first = await order_service.request_transition(order.id, OrderStatus.CONFIRMED, vendor)
        second = await order_service.request_transition(order.id, OrderStatus.CONFIRMED, vendor)

        assert second.status == OrderStatus.CONFIRMED
        assert len(second.status_history) == 2
        assert second.sequence == first.sequence

    @pytest.mark.asyncio
    async def test_repeat_by_foreign_vendor_is_rejected(
        self, order_service, place_order, other_vendor
    ):
        order = await place_order()

        with pytest.raises(InvalidTransitionError) as exc_info:
            await order_service.request_transition(order.id, OrderStatus.PLACED, other_vendor)
        assert exc_info.value.current_status == OrderStatus.PLACED

    @pytest.mark.asyncio
    async def test_repeat_by_foreign_customer_is_rejected(
        self, order_service, place_order, other_customer
    ):
        order = await place_order(status=OrderStatus.CONFIRMED)

        with pytest.raises(InvalidTransitionError):
            await order_service.request_transition(
                order.id, OrderStatus.CONFIRMED, other_customer
            )

    @pytest.mark.asyncio
    async def test_customer_cannot_recancel_admin_cancel(
        self, order_service, place_order, admin, customer
    ):
        order = await place_order(status=OrderStatus.PREPARING)
        await order_service.request_transition(order.id, OrderStatus.CANCELLED, admin)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await order_service.request_transition(order.id, OrderStatus.CANCELLED, customer)
        assert exc_info.value.current_status == OrderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_customer_repeat_of_own_cancel_is_a_noop(
        self, order_service, place_order, customer
    ):
        order = await place_order(status=OrderStatus.CANCELLED)

        again = await order_service.request_transition(order.id, OrderStatus.CANCELLED, customer)

        assert again.status == OrderStatus.CANCELLED
        assert len(again.status_history) == len(order.status_history)

    @pytest.mark.asyncio
    async def test_outdated_view_is_rejected(self, order_service, place_order, vendor, customer):
        order = await place_order(status=OrderStatus.CONFIRMED)

        with pytest.raises(StaleWriteError) as exc_info:
            await order_service.request_transition(
                order.id, OrderStatus.CANCELLED, customer, expected_status=OrderStatus.PLACED
            )
        assert exc_info.value.current_status == OrderStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_unknown_order(self, order_service, vendor):
        with pytest.raises(EntityNotFoundError):
            await order_service.request_transition("ord_missing", OrderStatus.CONFIRMED, vendor)

    @pytest.mark.asyncio
    async def test_history_is_strictly_ordered_walk(self, place_order):
        order = await place_order(status=OrderStatus.COMPLETED, settled=True)

        timestamps = [entry.timestamp for entry in order.status_history]
        assert timestamps == sorted(timestamps)
        assert len(set(timestamps)) == len(timestamps)
        assert [entry.status for entry in order.status_history] == [
            OrderStatus.PLACED,
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
            OrderStatus.READY,
            OrderStatus.SERVED,
            OrderStatus.COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_timing_fields_stamped(self, place_order):
        order = await place_order(status=OrderStatus.COMPLETED, settled=True)

        assert order.timing.actual_ready == order.status_history[3].timestamp
        assert order.timing.served_at == order.status_history[4].timestamp
        assert order.timing.completed_at == order.status_history[5].timestamp

    @pytest.mark.asyncio
    async def test_card_order_needs_payment_before_serving(
        self, order_service, place_order, vendor
    ):
        order = await place_order(status=OrderStatus.READY)

        with pytest.raises(InvalidTransitionError):
            await order_service.request_transition(order.id, OrderStatus.SERVED, vendor)

        await order_service.record_payment(order.id, vendor)
        served = await order_service.request_transition(order.id, OrderStatus.SERVED, vendor)
        assert served.status == OrderStatus.SERVED

    @pytest.mark.asyncio
    async def test_cash_order_served_before_payment(self, order_service, place_order, vendor):
        order = await place_order(status=OrderStatus.READY, payment_method=PaymentMethod.CASH)

        served = await order_service.request_transition(order.id, OrderStatus.SERVED, vendor)
        assert served.status == OrderStatus.SERVED
        assert served.payment.status == PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_foreign_vendor_rejected(self, order_service, place_order, other_vendor):
        order = await place_order()

        with pytest.raises(InvalidTransitionError):
            await order_service.request_transition(order.id, OrderStatus.CONFIRMED, other_vendor)


class TestConcurrentTransitions:
    """Two requests racing on the same order"""

    @pytest.mark.asyncio
    async def test_ready_versus_cancel(self, order_service, place_order, vendor, admin):
        """Exactly one of Ready / Cancelled wins, the other gets a structured error"""
        order = await place_order(status=OrderStatus.PREPARING)

        results = await asyncio.gather(
            order_service.request_transition(
                order.id, OrderStatus.READY, vendor, expected_status=OrderStatus.PREPARING
            ),
            order_service.request_transition(
                order.id, OrderStatus.CANCELLED, admin, expected_status=OrderStatus.PREPARING
            ),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], (StaleWriteError, InvalidTransitionError))

        stored = await order_service.get_order(order.id)
        assert stored.status == winners[0].status
        assert stored.status in (OrderStatus.READY, OrderStatus.CANCELLED)
        assert len(stored.status_history) == 4

    @pytest.mark.asyncio
    async def test_interleaved_reads(self, dispatcher, customer, vendor, admin, make_order_data):
        """Both requests validate against Preparing; the second write is refused"""
        service = OrderService(InterleavingStore(), dispatcher)
        order = await service.place_order(make_order_data(), customer)
        for status in (OrderStatus.CONFIRMED, OrderStatus.PREPARING):
            order = await service.request_transition(order.id, status, vendor)

        results = await asyncio.gather(
            service.request_transition(order.id, OrderStatus.READY, vendor),
            service.request_transition(order.id, OrderStatus.CANCELLED, admin),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, StaleWriteError)) == 1
        stored = await service.get_order(order.id)
        assert stored.status in (OrderStatus.READY, OrderStatus.CANCELLED)
        assert [e.status for e in stored.status_history][-1] == stored.status
        assert len(stored.status_history) == 4

    @pytest.mark.asyncio
    async def test_payment_and_transition_do_not_lose_updates(
        self, dispatcher, customer, vendor, make_order_data
    ):
        """A concurrent payment write is never overwritten by a status write"""
        service = OrderService(InterleavingStore(), dispatcher)
        order = await service.place_order(make_order_data(), customer)

        results = await asyncio.gather(
            service.record_payment(order.id, vendor),
            service.request_transition(order.id, OrderStatus.CONFIRMED, vendor),
            return_exceptions=True,
        )

        stored = await service.get_order(order.id)
        if isinstance(results[0], Exception):
            assert stored.payment.status == PaymentStatus.PENDING
        else:
            assert stored.payment.status == PaymentStatus.COMPLETED
        if isinstance(results[1], Exception):
            assert stored.status == OrderStatus.PLACED
        else:
            assert stored.status == OrderStatus.CONFIRMED


class TestTransitionNotifications:
    """Notifications triggered by transitions"""

    @pytest.mark.asyncio
    async def test_vendor_transition_notifies_customer(
        self, order_service, dispatcher, sink, place_order, vendor, customer
    ):
        order = await place_order()
        await order_service.request_transition(order.id, OrderStatus.CONFIRMED, vendor)
        await dispatcher.drain()

        received = await sink.list_for_user(customer.user_id)
        assert len(received) == 1
        assert received[0].template == NotificationTemplate.ORDER_STATUS_CHANGED
        assert received[0].related_order_id == order.id
        assert order.order_number in received[0].message
        assert "Confirmed" in received[0].message

    @pytest.mark.asyncio
    async def test_customer_cancel_notifies_restaurant(
        self, order_service, dispatcher, sink, place_order, customer, vendor
    ):
        order = await place_order()
        await order_service.request_transition(order.id, OrderStatus.CANCELLED, customer)
        await dispatcher.drain()

        received = await sink.list_for_user(vendor.user_id)
        assert [n.template for n in received] == [NotificationTemplate.ORDER_STATUS_CHANGED]

    @pytest.mark.asyncio
    async def test_admin_override_notifies_both_parties(
        self, order_service, dispatcher, sink, place_order, admin, customer, vendor
    ):
        order = await place_order(status=OrderStatus.PREPARING)
        await dispatcher.drain()
        sink.notifications.clear()

        await order_service.request_transition(
            order.id, OrderStatus.CANCELLED, admin, note="Kitchen closed"
        )
        await dispatcher.drain()

        recipients = {n.user_id for n in sink.notifications}
        assert recipients == {customer.user_id, vendor.user_id}
        assert all(
            n.template == NotificationTemplate.ORDER_STATUS_OVERRIDDEN for n in sink.notifications
        )
        assert all("(Kitchen closed)" in n.message for n in sink.notifications)

    @pytest.mark.asyncio
    async def test_noop_sends_nothing(self, order_service, dispatcher, sink, place_order, vendor):
        order = await place_order(status=OrderStatus.CONFIRMED)
        await dispatcher.drain()
        before = len(sink.notifications)

        await order_service.request_transition(order.id, OrderStatus.CONFIRMED, vendor)
        await dispatcher.drain()

        assert len(sink.notifications) == before


class TestUpdateItems:
    """Tests for item edits"""

    @staticmethod
    def items_update(quantity: int) -> OrderItemsUpdateSchema:
        subtotal = Decimal("500.00") * quantity
        return OrderItemsUpdateSchema(
            items=[
                OrderItemSchema(
                    id="item_paneer",
                    name="Paneer Tikka",
                    unit_price=Decimal("500.00"),
                    quantity=quantity,
                )
            ],
            pricing=PricingSchema(subtotal=subtotal, total_amount=subtotal),
        )

    @pytest.mark.asyncio
    async def test_customer_edits_placed_order(self, order_service, place_order, customer):
        order = await place_order()

        updated = await order_service.update_items(order.id, self.items_update(3), customer)

        assert updated.items[0].quantity == 3
        assert updated.total_amount == Decimal("1500.00")
        assert updated.status_history == order.status_history

    @pytest.mark.asyncio
    async def test_confirmed_order_is_locked(self, order_service, place_order, customer):
        order = await place_order(status=OrderStatus.CONFIRMED)

        with pytest.raises(OrderLockedError):
            await order_service.update_items(order.id, self.items_update(3), customer)

    @pytest.mark.asyncio
    async def test_settled_order_is_locked(self, order_service, place_order, customer):
        order = await place_order(settled=True)

        with pytest.raises(OrderLockedError) as exc_info:
            await order_service.update_items(order.id, self.items_update(3), customer)
        assert exc_info.value.field == "pricing"

    @pytest.mark.asyncio
    async def test_other_customer_denied(self, order_service, place_order, other_customer):
        order = await place_order()

        with pytest.raises(PermissionDeniedError):
            await order_service.update_items(order.id, self.items_update(3), other_customer)


class TestPayments:
    """Tests for payment settlement"""

    @pytest.mark.asyncio
    async def test_record_payment(self, order_service, place_order, vendor):
        order = await place_order()

        paid = await order_service.record_payment(order.id, vendor, transaction_id="txn_42")

        assert paid.payment.status == PaymentStatus.COMPLETED
        assert paid.payment.transaction_id == "txn_42"
        assert paid.payment.paid_at is not None
        assert paid.status == OrderStatus.PLACED

    @pytest.mark.asyncio
    async def test_record_payment_is_idempotent(self, order_service, place_order, vendor):
        order = await place_order(settled=True)

        again = await order_service.record_payment(order.id, vendor, transaction_id="txn_other")

        assert again.sequence == order.sequence
        assert again.payment.transaction_id == "txn_1"

    @pytest.mark.asyncio
    async def test_customer_cannot_record_payment(self, order_service, place_order, customer):
        order = await place_order()

        with pytest.raises(PermissionDeniedError):
            await order_service.record_payment(order.id, customer)

    @pytest.mark.asyncio
    async def test_foreign_vendor_cannot_record_payment(
        self, order_service, place_order, other_vendor
    ):
        order = await place_order()

        with pytest.raises(PermissionDeniedError):
            await order_service.record_payment(order.id, other_vendor)

    @pytest.mark.asyncio
    async def test_cancelled_order_cannot_be_paid(self, order_service, place_order, admin):
        order = await place_order(status=OrderStatus.CANCELLED)

        with pytest.raises(OrderLockedError):
            await order_service.record_payment(order.id, admin)

    @pytest.mark.asyncio
    async def test_mark_payment_failed(self, order_service, place_order, vendor):
        order = await place_order()

        failed = await order_service.mark_payment_failed(order.id, vendor)
        assert failed.payment.status == PaymentStatus.FAILED

        paid = await order_service.record_payment(order.id, vendor)
        assert paid.payment.status == PaymentStatus.COMPLETED

        with pytest.raises(OrderLockedError):
            await order_service.mark_payment_failed(order.id, vendor)

    @pytest.mark.asyncio
    async def test_refund(self, order_service, place_order, admin, vendor):
        order = await place_order(status=OrderStatus.COMPLETED, settled=True)

        with pytest.raises(PermissionDeniedError):
            await order_service.refund_payment(order.id, vendor)

        refunded = await order_service.refund_payment(order.id, admin)
        assert refunded.payment.status == PaymentStatus.REFUNDED

        with pytest.raises(OrderLockedError):
            await order_service.record_payment(order.id, admin)

    @pytest.mark.asyncio
    async def test_unsettled_payment_cannot_be_refunded(self, order_service, place_order, admin):
        order = await place_order()

        with pytest.raises(OrderLockedError):
            await order_service.refund_payment(order.id, admin)


class TestQueries:
    """Tests for order queries"""

    @pytest.mark.asyncio
    async def test_customer_orders_newest_first(self, order_service, place_order, customer):
        first = await place_order()
        second = await place_order(status=OrderStatus.CANCELLED)

        orders = await order_service.get_customer_orders(customer.user_id)
        assert [o.id for o in orders] == [second.id, first.id]

        active = await order_service.get_customer_orders(
            customer.user_id, statuses=[OrderStatus.PLACED]
        )
        assert [o.id for o in active] == [first.id]

    @pytest.mark.asyncio
    async def test_restaurant_orders(self, order_service, place_order, vendor):
        mine = await place_order()
        await place_order(restaurant_id="rest_other")

        orders = await order_service.get_restaurant_orders(vendor.user_id)
        assert [o.id for o in orders] == [mine.id]

    @pytest.mark.asyncio
    async def test_ongoing_and_past(self, order_service, place_order, customer):
        await place_order(status=OrderStatus.PREPARING)
        await place_order(status=OrderStatus.CANCELLED)

        orders = await order_service.get_customer_orders(customer.user_id)
        assert [o.status for o in OrderService.get_ongoing_orders(orders)] == [
            OrderStatus.PREPARING
        ]
        assert [o.status for o in OrderService.get_past_orders(orders)] == [
            OrderStatus.CANCELLED
        ]

    @pytest.mark.asyncio
    async def test_available_transitions(self, order_service, place_order, vendor, customer):
        order = await place_order()
        assert await order_service.get_available_transitions(order.id, vendor) == [
            OrderStatus.CONFIRMED,
            OrderStatus.CANCELLED,
        ]
        assert await order_service.get_available_transitions(order.id, customer) == [
            OrderStatus.CANCELLED
        ]

    @pytest.mark.asyncio
    async def test_available_transitions_respect_payment(
        self, order_service, place_order, vendor
    ):
        order = await place_order(status=OrderStatus.READY)
        assert await order_service.get_available_transitions(order.id, vendor) == []
