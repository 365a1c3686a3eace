"""共有 DB ストア（SQLite で代用）"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from services.common.database import create_session_factory, init_schema
from services.inventory.app.store import InsufficientStock, ItemExists, SqlInventoryStore
from services.orders.app.models import Order, OrderItem, OrderStatus
from services.orders.app.store import SqlOrderStore
from services.users.app.store import SqlUserStore


@pytest_asyncio.fixture
async def async_session(tmp_path):
    engine, async_session = create_session_factory(
        f"sqlite+aiosqlite:///{tmp_path / 'microservices.db'}"
    )
    await init_schema(async_session)
    yield async_session
    await engine.dispose()


@pytest.mark.asyncio
async def test_schema_is_seeded_once(async_session):
    await init_schema(async_session)

    users = await SqlUserStore(async_session).list_users()
    items = await SqlInventoryStore(async_session).list_items()

    assert [u["id"] for u in users] == ["1", "2", "3"]
    assert len(items) == 4
    assert (await SqlInventoryStore(async_session).get_item("ITEM001"))["quantity"] == 50


@pytest.mark.asyncio
async def test_user_crud(async_session):
    store = SqlUserStore(async_session)

    user = await store.create_user("Eve", "eve@example.com")
    fetched = await store.get_user(user["id"])

    assert fetched["name"] == "Eve"
    assert fetched["created_at"] is not None
    assert await store.delete_user(user["id"]) is True
    assert await store.get_user(user["id"]) is None
    await store.ping()


@pytest.mark.asyncio
async def test_reserve_is_conditional(async_session):
    store = SqlInventoryStore(async_session)

    item = await store.reserve("ITEM003", 20)
    assert item["quantity"] == 5

    with pytest.raises(InsufficientStock) as exc_info:
        await store.reserve("ITEM003", 6)
    assert exc_info.value.available == 5

    assert await store.reserve("NOPE", 1) is None
    assert (await store.restock("ITEM003", 10))["quantity"] == 15

    with pytest.raises(ItemExists):
        await store.create_item("ITEM003", "Dup", 1, 1.0)


@pytest.mark.asyncio
async def test_order_roundtrip_and_cascade(async_session):
    orders = SqlOrderStore(async_session)
    users = SqlUserStore(async_session)
    inventory = SqlInventoryStore(async_session)
    order = Order(
        id="ORDABC123",
        user_id="1",
        items=[OrderItem(item_id="ITEM001", quantity=2), OrderItem(item_id="ITEM004", quantity=1)],
        created_at=datetime.now(timezone.utc),
    )

    await orders.create_order(order)

    loaded = await orders.get_order("ORDABC123")
    assert loaded.status is OrderStatus.PENDING
    assert [i.item_id for i in loaded.items] == ["ITEM001", "ITEM004"]
    assert await users.has_orders("1") is True
    assert await inventory.is_referenced_by_orders("ITEM001") is True

    assert await orders.update_status("ORDABC123", OrderStatus.PROCESSING) is True
    assert (await orders.list_orders())[0].status is OrderStatus.PROCESSING

    assert await orders.delete_order("ORDABC123") is True
    assert await orders.get_order("ORDABC123") is None
    assert await inventory.is_referenced_by_orders("ITEM001") is False
    assert await orders.delete_order("ORDABC123") is False
