"""
Users Service - ストア

インメモリ版（デモ用シード入り）と共有 DB 版の 2 実装。
どちらも同じ非同期インターフェースを持つ。
"""

import logging
from uuid import uuid4

from sqlalchemy import DateTime, text
from sqlalchemy.orm import sessionmaker

from ...common.database import iso, ping, timestamp_param, utcnow
from ...common.seed import SEED_USERS

logger = logging.getLogger(__name__)


def new_user_id() -> str:
    return uuid4().hex[:8]


def default_email(name: str) -> str:
    return f"{name.lower().replace(' ', '.')}@example.com"


class InMemoryUserStore:
    def __init__(self, seed: bool = True) -> None:
        self.users: dict[str, dict] = {}
        if seed:
            now = utcnow().isoformat()
            for user in SEED_USERS:
                self.users[user["id"]] = {**user, "created_at": now}

    async def ping(self) -> None:
        return None

    async def list_users(self) -> list[dict]:
        return sorted(self.users.values(), key=lambda u: u["created_at"])

    async def get_user(self, user_id: str) -> dict | None:
        return self.users.get(user_id)

    async def create_user(self, name: str, email: str) -> dict:
        user = {
            "id": new_user_id(),
            "name": name,
            "email": email,
            "created_at": utcnow().isoformat(),
        }
        self.users[user["id"]] = user
        return user

    async def has_orders(self, user_id: str) -> bool:
        # 注文は別プロセスのストアにあるので参照できない
        return False

    async def delete_user(self, user_id: str) -> bool:
        return self.users.pop(user_id, None) is not None


class SqlUserStore:
    def __init__(self, async_session: sessionmaker) -> None:
        self.async_session = async_session

    async def ping(self) -> None:
        await ping(self.async_session)

    async def list_users(self) -> list[dict]:
        async with self.async_session() as session:
            result = await session.execute(
                text(
                    "SELECT id, name, email, created_at FROM users ORDER BY created_at, id"
                ).columns(created_at=DateTime)
            )
            return [_user_row(row) for row in result.fetchall()]

    async def get_user(self, user_id: str) -> dict | None:
        async with self.async_session() as session:
            result = await session.execute(
                text(
                    "SELECT id, name, email, created_at FROM users WHERE id = :id"
                ).columns(created_at=DateTime),
                {"id": user_id},
            )
            row = result.fetchone()
            return _user_row(row) if row else None

    async def create_user(self, name: str, email: str) -> dict:
        now = utcnow()
        user_id = new_user_id()
        async with self.async_session() as session:
            await session.execute(
                text(
                    "INSERT INTO users (id, name, email, created_at) "
                    "VALUES (:id, :name, :email, :now)"
                ).bindparams(timestamp_param("now")),
                {"id": user_id, "name": name, "email": email, "now": now},
            )
            await session.commit()
        logger.debug("Inserted user %s", user_id)
        return {"id": user_id, "name": name, "email": email, "created_at": now.isoformat()}

    async def has_orders(self, user_id: str) -> bool:
        async with self.async_session() as session:
            result = await session.execute(
                text("SELECT COUNT(*) FROM orders WHERE user_id = :id"),
                {"id": user_id},
            )
            return result.scalar_one() > 0

    async def delete_user(self, user_id: str) -> bool:
        async with self.async_session() as session:
            result = await session.execute(
                text("DELETE FROM users WHERE id = :id"), {"id": user_id}
            )
            await session.commit()
            return result.rowcount > 0


def _user_row(row) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "email": row.email,
        "created_at": iso(row.created_at),
    }
