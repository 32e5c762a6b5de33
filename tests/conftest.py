import pytest
import pytest_asyncio
from decimal import Decimal
from tortoise import Tortoise

from tuckshop.core.db import MODELS_MODULES
from tuckshop.consumers.sinks import LoggingNotificationSink, set_notification_sink
from tuckshop.models.inventory import InventoryItem, ItemCategory
from tuckshop.schemas.stock import OrderLine
from tuckshop.services.transitions import Caller, Role


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database per test."""
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODELS_MODULES})
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
def make_item(db):
    """Factory for stock records; status is derived like any other mutation."""
    async def _make(name="Orange Juice", price="2.50", quantity=10, threshold=10, category=ItemCategory.DRINK):
        item = InventoryItem(
            name=name,
            category=category,
            price=Decimal(price),
            cost_price=Decimal("1.00"),
            min_stock_threshold=threshold,
        )
        item.apply_stock_level(quantity, "test")
        await item.save()
        return item
    return _make


def line(item, quantity, price=None):
    return OrderLine(item_id=item.id, name=item.name, quantity=quantity, price_at_purchase=price)


@pytest.fixture
def customer():
    return Caller(uid="cust-1", role=Role.CUSTOMER)


@pytest.fixture
def other_customer():
    return Caller(uid="cust-2", role=Role.CUSTOMER)


@pytest.fixture
def employee():
    return Caller(uid="emp-1", role=Role.EMPLOYEE)


@pytest.fixture
def owner():
    return Caller(uid="owner-1", role=Role.OWNER)


@pytest.fixture(autouse=True)
def reset_notification_sink():
    yield
    set_notification_sink(LoggingNotificationSink())
