"""
Inventory Service - ストア

在庫数の参照・更新・引き当て(Reserve)・補充(Restock)を扱う。
引き当ては「在庫が足りる場合のみ減らす」を 1 行の更新で行うため、
ストア単体では在庫がマイナスにならない。
"""

import logging

from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from ...common.database import ping, timestamp_param, utcnow
from ...common.seed import SEED_INVENTORY

logger = logging.getLogger(__name__)


class ItemExists(Exception):
    pass


class InsufficientStock(Exception):
    def __init__(self, available: int):
        super().__init__(f"Insufficient stock: available={available}")
        self.available = available


class InMemoryInventoryStore:
    def __init__(self, seed: bool = True) -> None:
        self.items: dict[str, dict] = {}
        if seed:
            for item in SEED_INVENTORY:
                self.items[item["id"]] = dict(item)

    async def ping(self) -> None:
        return None

    async def list_items(self) -> list[dict]:
        return sorted((dict(i) for i in self.items.values()), key=lambda i: i["name"])

    async def get_item(self, item_id: str) -> dict | None:
        item = self.items.get(item_id)
        return dict(item) if item else None

    async def create_item(self, item_id: str, name: str, quantity: int, price: float) -> dict:
        if item_id in self.items:
            raise ItemExists(item_id)
        item = {"id": item_id, "name": name, "quantity": quantity, "price": price}
        self.items[item_id] = item
        return dict(item)

    async def update_item(
        self, item_id: str, quantity: int | None, price: float | None
    ) -> dict | None:
        item = self.items.get(item_id)
        if item is None:
            return None
        if quantity is not None:
            item["quantity"] = quantity
        if price is not None:
            item["price"] = price
        return dict(item)

    async def reserve(self, item_id: str, quantity: int) -> dict | None:
        """在庫を quantity だけ減らす。足りなければ InsufficientStock。"""
        item = self.items.get(item_id)
        if item is None:
            return None
        if item["quantity"] < quantity:
            raise InsufficientStock(item["quantity"])
        item["quantity"] -= quantity
        return dict(item)

    async def restock(self, item_id: str, quantity: int) -> dict | None:
        item = self.items.get(item_id)
        if item is None:
            return None
        item["quantity"] += quantity
        return dict(item)

    async def is_referenced_by_orders(self, item_id: str) -> bool:
        return False

    async def delete_item(self, item_id: str) -> bool:
        return self.items.pop(item_id, None) is not None


class SqlInventoryStore:
    def __init__(self, async_session: sessionmaker) -> None:
        self.async_session = async_session

    async def ping(self) -> None:
        await ping(self.async_session)

    async def list_items(self) -> list[dict]:
        async with self.async_session() as session:
            result = await session.execute(
                text("SELECT id, name, quantity, price FROM inventory ORDER BY name")
            )
            return [_item_row(row) for row in result.fetchall()]

    async def get_item(self, item_id: str) -> dict | None:
        async with self.async_session() as session:
            return await _select_item(session, item_id)

    async def create_item(self, item_id: str, name: str, quantity: int, price: float) -> dict:
        async with self.async_session() as session:
            result = await session.execute(
                text("SELECT COUNT(*) FROM inventory WHERE id = :id"), {"id": item_id}
            )
            if result.scalar_one() > 0:
                raise ItemExists(item_id)
            await session.execute(
                text(
                    "INSERT INTO inventory (id, name, quantity, price, updated_at) "
                    "VALUES (:id, :name, :quantity, :price, :now)"
                ).bindparams(timestamp_param("now")),
                {
                    "id": item_id,
                    "name": name,
                    "quantity": quantity,
                    "price": price,
                    "now": utcnow(),
                },
            )
            await session.commit()
        return {"id": item_id, "name": name, "quantity": quantity, "price": price}

    async def update_item(
        self, item_id: str, quantity: int | None, price: float | None
    ) -> dict | None:
        async with self.async_session() as session:
            item = await _select_item(session, item_id)
            if item is None:
                return None
            item["quantity"] = item["quantity"] if quantity is None else quantity
            item["price"] = item["price"] if price is None else price
            await session.execute(
                text(
                    "UPDATE inventory SET quantity = :quantity, price = :price, "
                    "updated_at = :now WHERE id = :id"
                ).bindparams(timestamp_param("now")),
                {
                    "id": item_id,
                    "quantity": item["quantity"],
                    "price": item["price"],
                    "now": utcnow(),
                },
            )
            await session.commit()
            return item

    async def reserve(self, item_id: str, quantity: int) -> dict | None:
        async with self.async_session() as session:
            result = await session.execute(
                text(
                    "UPDATE inventory SET quantity = quantity - :qty, updated_at = :now "
                    "WHERE id = :id AND quantity >= :qty"
                ).bindparams(timestamp_param("now")),
                {"id": item_id, "qty": quantity, "now": utcnow()},
            )
            if result.rowcount == 0:
                item = await _select_item(session, item_id)
                await session.rollback()
                if item is None:
                    return None
                raise InsufficientStock(item["quantity"])
            item = await _select_item(session, item_id)
            await session.commit()
            logger.debug("Reserved %d of %s", quantity, item_id)
            return item

    async def restock(self, item_id: str, quantity: int) -> dict | None:
        async with self.async_session() as session:
            result = await session.execute(
                text(
                    "UPDATE inventory SET quantity = quantity + :qty, updated_at = :now "
                    "WHERE id = :id"
                ).bindparams(timestamp_param("now")),
                {"id": item_id, "qty": quantity, "now": utcnow()},
            )
            if result.rowcount == 0:
                await session.rollback()
                return None
            item = await _select_item(session, item_id)
            await session.commit()
            return item

    async def is_referenced_by_orders(self, item_id: str) -> bool:
        async with self.async_session() as session:
            result = await session.execute(
                text("SELECT COUNT(*) FROM order_items WHERE item_id = :id"),
                {"id": item_id},
            )
            return result.scalar_one() > 0

    async def delete_item(self, item_id: str) -> bool:
        async with self.async_session() as session:
            result = await session.execute(
                text("DELETE FROM inventory WHERE id = :id"), {"id": item_id}
            )
            await session.commit()
            return result.rowcount > 0


async def _select_item(session, item_id: str) -> dict | None:
    result = await session.execute(
        text("SELECT id, name, quantity, price FROM inventory WHERE id = :id"),
        {"id": item_id},
    )
    row = result.fetchone()
    return _item_row(row) if row else None


def _item_row(row) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "quantity": row.quantity,
        "price": float(row.price),
    }
