"""
Pytest fixtures and configuration
"""
from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio

from foodcourt.core.constants import ActorRole, OrderStatus, PaymentMethod
from foodcourt.database import Database
from foodcourt.database.models import Actor, Order
from foodcourt.repositories import MemoryNotificationSink, MemoryOrderStore
from foodcourt.schemas import OrderCreateSchema, OrderItemSchema, PricingSchema
from foodcourt.services.notification_dispatcher import NotificationDispatcher
from foodcourt.services.order_service import OrderService
from foodcourt.services.service_factory import ServiceFactory


RESTAURANT_ID = "rest_spice_hub"
CUSTOMER_ID = "cust_anita"

# Happy path through the lifecycle, in order
LIFECYCLE = [
    OrderStatus.PLACED,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.SERVED,
    OrderStatus.COMPLETED,
]


def build_order_data(
    restaurant_id: str = RESTAURANT_ID,
    unit_price: str = "500.00",
    quantity: int = 2,
    payment_method: str = PaymentMethod.CARD,
    notes: str | None = None,
) -> OrderCreateSchema:
    """Valid order input whose total is unit_price * quantity"""
    subtotal = Decimal(unit_price) * quantity
    return OrderCreateSchema(
        restaurant_id=restaurant_id,
        restaurant_name="Spice Hub",
        items=[
            OrderItemSchema(
                id="item_paneer",
                name="Paneer Tikka",
                unit_price=Decimal(unit_price),
                quantity=quantity,
            )
        ],
        pricing=PricingSchema(subtotal=subtotal, total_amount=subtotal),
        payment_method=payment_method,
        notes=notes,
    )


@pytest.fixture
def customer() -> Actor:
    """
    Customer who places the orders
    """
    return Actor(user_id=CUSTOMER_ID, role=ActorRole.CUSTOMER)


@pytest.fixture
def other_customer() -> Actor:
    return Actor(user_id="cust_other", role=ActorRole.CUSTOMER)


@pytest.fixture
def vendor() -> Actor:
    """
    Vendor owning RESTAURANT_ID
    """
    return Actor(user_id=RESTAURANT_ID, role=ActorRole.VENDOR)


@pytest.fixture
def other_vendor() -> Actor:
    return Actor(user_id="rest_other", role=ActorRole.VENDOR)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin_1", role=ActorRole.ADMIN)


@pytest.fixture
def store() -> MemoryOrderStore:
    """
    In-memory order store
    """
    return MemoryOrderStore()


@pytest.fixture
def sink() -> MemoryNotificationSink:
    """
    In-memory notification sink
    """
    return MemoryNotificationSink()


@pytest.fixture
def dispatcher(sink: MemoryNotificationSink) -> NotificationDispatcher:
    """
    Dispatcher without backoff delays
    """
    return NotificationDispatcher(sink, max_attempts=3, base_delay=0, max_delay=0)


@pytest.fixture
def order_service(store: MemoryOrderStore, dispatcher: NotificationDispatcher) -> OrderService:
    return OrderService(store, dispatcher)


@pytest.fixture
def place_order(order_service: OrderService, customer: Actor):
    """
    Factory placing an order and walking it to a status

    The owning vendor drives the transitions; settled=True records the
    payment first so the order can pass Served.
    """

    async def _place(
        status: str = OrderStatus.PLACED,
        settled: bool = False,
        actor: Actor | None = None,
        **data_kwargs,
    ) -> Order:
        order = await order_service.place_order(build_order_data(**data_kwargs), actor or customer)
        owner = Actor(user_id=order.restaurant_id, role=ActorRole.VENDOR)

        if settled:
            order = await order_service.record_payment(order.id, owner, transaction_id="txn_1")

        if status == OrderStatus.CANCELLED:
            return await order_service.request_transition(
                order.id, OrderStatus.CANCELLED, actor or customer
            )

        for target in LIFECYCLE[1 : LIFECYCLE.index(status) + 1]:
            order = await order_service.request_transition(order.id, target, owner)
        return order

    return _place


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[Database, None]:
    """
    Test database (in-memory)
    """
    database = Database(":memory:")
    await database.connect()
    await database.init_db()
    yield database
    await database.disconnect()


@pytest.fixture
def make_order_data():
    """
    Factory of valid OrderCreateSchema instances
    """
    return build_order_data


@pytest.fixture
def services(db: Database) -> ServiceFactory:
    """
    Services wired onto the test database (background deliveries without delay)
    """
    factory = db.services
    factory.dispatcher.base_delay = 0
    factory.dispatcher.max_delay = 0
    return factory


@pytest.fixture
def sold_order(services: ServiceFactory, customer: Actor):
    """
    Factory placing an order on the SQLite store, settled by its vendor by default
    """

    async def _sell(
        restaurant_id: str = RESTAURANT_ID,
        unit_price: str = "500.00",
        quantity: int = 2,
        settled: bool = True,
    ) -> Order:
        service = services.order_service
        order = await service.place_order(
            build_order_data(restaurant_id, unit_price=unit_price, quantity=quantity), customer
        )
        if settled:
            owner = Actor(user_id=restaurant_id, role=ActorRole.VENDOR)
            order = await service.record_payment(order.id, owner, transaction_id="txn")
        return order

    return _sell
