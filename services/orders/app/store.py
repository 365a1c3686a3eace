"""
Orders Service - ストア

注文本体(orders)と明細(order_items)を保存する。
削除時は明細も一緒に消す。
"""

import logging

from sqlalchemy import DateTime, text
from sqlalchemy.orm import sessionmaker

from ...common.database import ping, timestamp_param
from .models import Order, OrderItem, OrderStatus

logger = logging.getLogger(__name__)


class InMemoryOrderStore:
    def __init__(self) -> None:
        self.orders: dict[str, Order] = {}

    async def ping(self) -> None:
        return None

    async def list_orders(self) -> list[Order]:
        return sorted(self.orders.values(), key=lambda o: o.created_at, reverse=True)

    async def get_order(self, order_id: str) -> Order | None:
        return self.orders.get(order_id)

    async def create_order(self, order: Order) -> Order:
        self.orders[order.id] = order
        return order

    async def update_status(self, order_id: str, status: OrderStatus) -> bool:
        order = self.orders.get(order_id)
        if order is None:
            return False
        self.orders[order_id] = order.model_copy(update={"status": status})
        return True

    async def delete_order(self, order_id: str) -> bool:
        return self.orders.pop(order_id, None) is not None


class SqlOrderStore:
    def __init__(self, async_session: sessionmaker) -> None:
        self.async_session = async_session

    async def ping(self) -> None:
        await ping(self.async_session)

    async def list_orders(self) -> list[Order]:
        async with self.async_session() as session:
            result = await session.execute(
                text(
                    "SELECT id, user_id, status, created_at FROM orders "
                    "ORDER BY created_at DESC"
                ).columns(created_at=DateTime)
            )
            rows = result.fetchall()
            return [await _load_order(session, row) for row in rows]

    async def get_order(self, order_id: str) -> Order | None:
        async with self.async_session() as session:
            result = await session.execute(
                text(
                    "SELECT id, user_id, status, created_at FROM orders WHERE id = :id"
                ).columns(created_at=DateTime),
                {"id": order_id},
            )
            row = result.fetchone()
            if not row:
                return None
            return await _load_order(session, row)

    async def create_order(self, order: Order) -> Order:
        async with self.async_session() as session:
            await session.execute(
                text(
                    "INSERT INTO orders (id, user_id, status, created_at) "
                    "VALUES (:id, :user_id, :status, :created_at)"
                ).bindparams(timestamp_param("created_at")),
                {
                    "id": order.id,
                    "user_id": order.user_id,
                    "status": order.status.value,
                    "created_at": order.created_at,
                },
            )
            await session.execute(
                text(
                    "INSERT INTO order_items (order_id, item_id, quantity) "
                    "VALUES (:order_id, :item_id, :quantity)"
                ),
                [
                    {"order_id": order.id, "item_id": i.item_id, "quantity": i.quantity}
                    for i in order.items
                ],
            )
            await session.commit()
        logger.debug("Inserted order %s with %d items", order.id, len(order.items))
        return order

    async def update_status(self, order_id: str, status: OrderStatus) -> bool:
        async with self.async_session() as session:
            result = await session.execute(
                text("UPDATE orders SET status = :status WHERE id = :id"),
                {"id": order_id, "status": status.value},
            )
            await session.commit()
            return result.rowcount > 0

    async def delete_order(self, order_id: str) -> bool:
        async with self.async_session() as session:
            await session.execute(
                text("DELETE FROM order_items WHERE order_id = :id"), {"id": order_id}
            )
            result = await session.execute(
                text("DELETE FROM orders WHERE id = :id"), {"id": order_id}
            )
            await session.commit()
            return result.rowcount > 0


async def _load_order(session, row) -> Order:
    result = await session.execute(
        text("SELECT item_id, quantity FROM order_items WHERE order_id = :id"),
        {"id": row.id},
    )
    return Order(
        id=row.id,
        user_id=row.user_id,
        status=OrderStatus(row.status),
        created_at=row.created_at,
        items=[
            OrderItem(item_id=i.item_id, quantity=i.quantity)
            for i in result.fetchall()
        ],
    )
