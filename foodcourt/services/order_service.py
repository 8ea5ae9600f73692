"""
Order service (business logic)
"""

import logging
from datetime import timedelta

from foodcourt.core.config import Config
from foodcourt.core.constants import ActorRole, OrderStatus, PaymentStatus
from foodcourt.database.models import (
    Actor,
    DineIn,
    Order,
    OrderItem,
    Payment,
    Pricing,
    StatusHistoryEntry,
    Timing,
)
from foodcourt.domain.exceptions import OrderLockedError, PermissionDeniedError
from foodcourt.domain.order_state_machine import OrderStateMachine
from foodcourt.repositories.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    StaleWriteError,
)
from foodcourt.repositories.order_store import OrderFilter, OrderStore
from foodcourt.schemas.order import (
    OrderCreateSchema,
    OrderItemSchema,
    OrderItemsUpdateSchema,
    PricingSchema,
)
from foodcourt.services.notification_dispatcher import NotificationDispatcher, NotificationTemplate
from foodcourt.utils.helpers import (
    generate_order_id,
    generate_order_number,
    get_now,
    next_timestamp,
)


logger = logging.getLogger(__name__)

# Fresh order numbers drawn before giving up on a collision
ORDER_NUMBER_ATTEMPTS = 5


def _to_items(items: list[OrderItemSchema]) -> list[OrderItem]:
    return [
        OrderItem(
            id=item.id,
            name=item.name,
            unit_price=item.unit_price,
            quantity=item.quantity,
            category=item.category,
            customizations=list(item.customizations),
        )
        for item in items
    ]


def _to_pricing(pricing: PricingSchema) -> Pricing:
    return Pricing(
        subtotal=pricing.subtotal,
        taxes=pricing.taxes,
        delivery_fee=pricing.delivery_fee,
        discount=pricing.discount,
        total_amount=pricing.total_amount,
    )


class OrderService:
    """
    Order lifecycle service

    Every mutation reads the current record from the store, validates
    against it and writes conditionally, so a decision is never based on a
    snapshot the caller happened to hold.
    """

    def __init__(
        self,
        store: OrderStore,
        dispatcher: NotificationDispatcher | None = None,
        state_machine: OrderStateMachine | None = None,
    ):
        """
        Initialise the service

        Args:
            store: Order store
            dispatcher: Notification dispatcher (no notifications when None)
            state_machine: State machine validating transitions
        """
        self.store = store
        self.dispatcher = dispatcher
        self.state_machine = state_machine or OrderStateMachine()

    async def _get_or_raise(self, order_id: str) -> Order:
        order = await self.store.get(order_id)
        if order is None:
            raise EntityNotFoundError("Order", order_id)
        return order

    async def place_order(self, data: OrderCreateSchema, actor: Actor) -> Order:
        """
        Create a new order in Placed

        Args:
            data: Validated order input
            actor: Customer placing the order

        Returns:
            Stored order

        Raises:
            PermissionDeniedError: Actor is not a customer
            DuplicateEntityError: No free order number after several draws
            StoreUnavailableError: Storage failed
        """
        if actor.role != ActorRole.CUSTOMER:
            raise PermissionDeniedError(actor.role, "place orders")

        now = get_now()
        order = Order(
            id=generate_order_id(),
            order_number=generate_order_number(),
            user_id=actor.user_id,
            restaurant_id=data.restaurant_id,
            restaurant_name=data.restaurant_name,
            items=_to_items(data.items),
            pricing=_to_pricing(data.pricing),
            status=OrderStatus.PLACED,
            status_history=[
                StatusHistoryEntry(
                    status=OrderStatus.PLACED,
                    timestamp=now,
                    note="Order received",
                    actor_role=actor.role,
                    actor_id=actor.user_id,
                )
            ],
            payment=Payment(method=data.payment_method, status=PaymentStatus.PENDING),
            timing=Timing(
                order_placed=now,
                estimated_ready=now + timedelta(minutes=Config.ESTIMATED_READY_MINUTES),
            ),
            dine_in=(
                DineIn(
                    table_number=data.dine_in.table_number,
                    seating_area=data.dine_in.seating_area,
                    guest_count=data.dine_in.guest_count,
                )
                if data.dine_in
                else None
            ),
            notes=data.notes,
            source=data.source,
            created_at=now,
            updated_at=now,
            updated_by=actor.user_id,
        )

        for _ in range(ORDER_NUMBER_ATTEMPTS):
            try:
                created = await self.store.create(order)
            except DuplicateEntityError as e:
                if e.entity_type != "Order number":
                    raise
                logger.warning("Order number %s taken, drawing another", order.order_number)
                order.order_number = generate_order_number()
                continue

            logger.info(
                "Order %s (#%s) placed by customer %s at restaurant %s",
                created.id,
                created.order_number,
                actor.user_id,
                created.restaurant_id,
            )
            return created

        raise DuplicateEntityError("Order number", order.order_number)

    async def request_transition(
        self,
        order_id: str,
        target_status: str,
        actor: Actor,
        expected_status: str | None = None,
        note: str | None = None,
    ) -> Order:
        """
        Move an order to another status

        Args:
            order_id: Order id
            target_status: Requested status
            actor: Resolved caller identity
            expected_status: Status the caller's view showed; a request made
                against an outdated view is rejected instead of applied
            note: Optional history note

        Returns:
            Updated order (or the current one when it already has target_status)

        Raises:
            EntityNotFoundError: Order does not exist
            InvalidTransitionError: Edge not allowed for this actor and state
            StaleWriteError: Order changed after the caller's view or during the write
            StoreUnavailableError: Storage failed
        """
        order = await self._get_or_raise(order_id)

        if order.status == target_status:
            # Duplicate of a request that already went through
            self.state_machine.validate_repeat(order, target_status, actor)
            logger.info("Order %s already %s, nothing to do", order_id, target_status)
            return order

        if expected_status is not None and order.status != expected_status:
            raise StaleWriteError(order_id, expected_status, order.status)

        self.state_machine.validate_order_transition(order, target_status, actor)

        previous_status = order.status
        read_sequence = order.sequence
        last_entry = order.last_history_entry()
        now = next_timestamp(last_entry.timestamp if last_entry else None)

        order.status = target_status
        order.status_history.append(
            StatusHistoryEntry(
                status=target_status,
                timestamp=now,
                note=note or self.state_machine.get_transition_description(
                    previous_status, target_status
                ),
                actor_role=actor.role,
                actor_id=actor.user_id,
            )
        )
        timing_field = self.state_machine.TIMING_FIELDS.get(target_status)
        if timing_field and getattr(order.timing, timing_field) is None:
            setattr(order.timing, timing_field, now)
        order.updated_at = now
        order.updated_by = actor.user_id

        updated = await self.store.put(
            order, expected_status=previous_status, expected_sequence=read_sequence
        )

        logger.info(
            "Order %s: %s -> %s by %s %s",
            order_id,
            previous_status,
            target_status,
            actor.role,
            actor.user_id,
        )
        self._notify_transition(updated, actor, note)
        return updated

    def _notify_transition(self, order: Order, actor: Actor, note: str | None) -> None:
        """Queue a notification for the counter-party of the actor"""
        if self.dispatcher is None:
            return

        context = {
            "order_number": order.order_number,
            "status_label": OrderStatus.get_status_name(order.status),
            "note": note,
            "event_id": f"{order.id}:{len(order.status_history)}",
        }

        if actor.role == ActorRole.ADMIN:
            recipients = [order.user_id, order.restaurant_id]
            template = NotificationTemplate.ORDER_STATUS_OVERRIDDEN
        elif actor.role == ActorRole.VENDOR:
            recipients = [order.user_id]
            template = NotificationTemplate.ORDER_STATUS_CHANGED
        else:
            recipients = [order.restaurant_id]
            template = NotificationTemplate.ORDER_STATUS_CHANGED

        for user_id in recipients:
            self.dispatcher.dispatch_later(user_id, template, context, related_order_id=order.id)

    async def update_items(
        self, order_id: str, data: OrderItemsUpdateSchema, actor: Actor
    ) -> Order:
        """
        Replace the items of an order that is still Placed

        Raises:
            PermissionDeniedError: Actor is not the ordering customer
            OrderLockedError: Order left Placed or its payment is settled
            StaleWriteError: Order changed during the update
        """
        order = await self._get_or_raise(order_id)

        if actor.role != ActorRole.CUSTOMER or actor.user_id != order.user_id:
            raise PermissionDeniedError(actor.role, "edit the items of this order")
        if order.status != OrderStatus.PLACED:
            raise OrderLockedError(
                order_id, "items", f"order is already {OrderStatus.get_status_name(order.status)}"
            )
        if order.payment.is_settled:
            raise OrderLockedError(order_id, "pricing", "payment is already settled")

        read_sequence = order.sequence
        order.items = _to_items(data.items)
        order.pricing = _to_pricing(data.pricing)
        order.updated_at = get_now()
        order.updated_by = actor.user_id

        updated = await self.store.put(
            order, expected_status=OrderStatus.PLACED, expected_sequence=read_sequence
        )
        logger.info("Order %s items updated (%d items)", order_id, len(updated.items))
        return updated

    def _check_payment_actor(self, order: Order, actor: Actor, action: str) -> None:
        if actor.role == ActorRole.ADMIN:
            return
        if actor.role == ActorRole.VENDOR and actor.user_id == order.restaurant_id:
            return
        raise PermissionDeniedError(actor.role, action)

    async def _put_payment(self, order: Order, read_sequence: int, actor: Actor) -> Order:
        order.updated_at = get_now()
        order.updated_by = actor.user_id
        return await self.store.put(
            order, expected_status=order.status, expected_sequence=read_sequence
        )

    async def record_payment(
        self, order_id: str, actor: Actor, transaction_id: str | None = None
    ) -> Order:
        """
        Mark the payment of an order as Completed

        Repeating the call on a settled order returns it unchanged.

        Raises:
            PermissionDeniedError: Actor is neither admin nor the owning vendor
            OrderLockedError: Payment was refunded or the order was cancelled
        """
        order = await self._get_or_raise(order_id)
        self._check_payment_actor(order, actor, "record payments for this order")

        if order.payment.status == PaymentStatus.COMPLETED:
            return order
        if order.payment.status == PaymentStatus.REFUNDED:
            raise OrderLockedError(order_id, "payment", "payment was refunded")
        if order.status == OrderStatus.CANCELLED:
            raise OrderLockedError(order_id, "payment", "order is cancelled")

        read_sequence = order.sequence
        order.payment.status = PaymentStatus.COMPLETED
        order.payment.transaction_id = transaction_id or order.payment.transaction_id
        order.payment.paid_at = get_now()

        updated = await self._put_payment(order, read_sequence, actor)
        logger.info("Order %s payment settled (%s)", order_id, updated.payment.method)
        return updated

    async def mark_payment_failed(self, order_id: str, actor: Actor) -> Order:
        """
        Mark a pending payment as Failed

        Raises:
            PermissionDeniedError: Actor is neither admin nor the owning vendor
            OrderLockedError: Payment is not pending
        """
        order = await self._get_or_raise(order_id)
        self._check_payment_actor(order, actor, "update payments for this order")

        if order.payment.status == PaymentStatus.FAILED:
            return order
        if order.payment.status != PaymentStatus.PENDING:
            raise OrderLockedError(order_id, "payment", f"payment is {order.payment.status}")

        read_sequence = order.sequence
        order.payment.status = PaymentStatus.FAILED
        updated = await self._put_payment(order, read_sequence, actor)
        logger.warning("Order %s payment failed", order_id)
        return updated

    async def refund_payment(self, order_id: str, actor: Actor) -> Order:
        """
        Refund a settled payment (admin only)

        Raises:
            PermissionDeniedError: Actor is not an admin
            OrderLockedError: Payment is not settled
        """
        if actor.role != ActorRole.ADMIN:
            raise PermissionDeniedError(actor.role, "refund payments")

        order = await self._get_or_raise(order_id)
        if order.payment.status == PaymentStatus.REFUNDED:
            return order
        if order.payment.status != PaymentStatus.COMPLETED:
            raise OrderLockedError(order_id, "payment", "only settled payments can be refunded")

        read_sequence = order.sequence
        order.payment.status = PaymentStatus.REFUNDED
        updated = await self._put_payment(order, read_sequence, actor)
        logger.info("Order %s payment refunded by %s", order_id, actor.user_id)
        return updated

    async def get_order(self, order_id: str) -> Order | None:
        """
        Current order record

        Args:
            order_id: Order id

        Returns:
            Order or None
        """
        return await self.store.get(order_id)

    async def get_customer_orders(
        self, user_id: str, statuses: list[str] | None = None
    ) -> list[Order]:
        """Orders of a customer, newest first"""
        return await self.store.query(OrderFilter.for_customer(user_id, statuses))

    async def get_restaurant_orders(
        self, restaurant_id: str, statuses: list[str] | None = None
    ) -> list[Order]:
        """Orders of a restaurant, newest first"""
        return await self.store.query(OrderFilter.for_restaurant(restaurant_id, statuses))

    @staticmethod
    def get_ongoing_orders(orders: list[Order]) -> list[Order]:
        return [o for o in orders if o.is_ongoing]

    @staticmethod
    def get_past_orders(orders: list[Order]) -> list[Order]:
        return [o for o in orders if o.is_terminal]

    async def get_available_transitions(self, order_id: str, actor: Actor) -> list[str]:
        """
        Statuses this actor could move the order to right now

        Returns:
            Statuses in lifecycle order
        """
        order = await self._get_or_raise(order_id)
        return [
            status
            for status in self.state_machine.get_available_transitions(order.status, actor.role)
            if self.state_machine.validate_order_transition(
                order, status, actor, raise_exception=False
            ).is_valid
        ]

