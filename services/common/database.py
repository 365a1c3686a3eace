"""
共有リレーショナルストア - エンジン・スキーマ・ヘルスチェック

users / inventory / orders の各サービスは同じ DB を共有する。
各サービスは起動時に init_schema() を呼び、足りないテーブルだけを作る。
空のテーブルにはデモ用データを投入する。
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from .seed import SEED_INVENTORY, SEED_USERS

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS inventory (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        quantity INTEGER NOT NULL DEFAULT 0,
        price NUMERIC(10, 2) NOT NULL DEFAULT 0,
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id),
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TIMESTAMP WITH TIME ZONE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS order_items (
        order_id TEXT NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
        item_id TEXT NOT NULL REFERENCES inventory(id),
        quantity INTEGER NOT NULL
    )
    """,
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_param(name: str):
    """DateTime 型のバインドパラメータ（ドライバ間の差を吸収する）"""
    return bindparam(name, type_=DateTime(timezone=True))


def iso(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def create_session_factory(database_url: str) -> tuple[AsyncEngine, sessionmaker]:
    engine = create_async_engine(database_url, echo=False)
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine, async_session


async def init_schema(async_session: sessionmaker) -> None:
    """テーブルを作成し、空ならデモ用データを投入する。"""
    async with async_session() as session:
        for statement in SCHEMA:
            await session.execute(text(statement))

        result = await session.execute(text("SELECT COUNT(*) FROM users"))
        if result.scalar_one() == 0:
            await session.execute(
                text(
                    "INSERT INTO users (id, name, email, created_at) "
                    "VALUES (:id, :name, :email, :now)"
                ).bindparams(timestamp_param("now")),
                [{**user, "now": utcnow()} for user in SEED_USERS],
            )
            logger.info("Seeded %d users", len(SEED_USERS))

        result = await session.execute(text("SELECT COUNT(*) FROM inventory"))
        if result.scalar_one() == 0:
            await session.execute(
                text(
                    "INSERT INTO inventory (id, name, quantity, price, updated_at) "
                    "VALUES (:id, :name, :quantity, :price, :now)"
                ).bindparams(timestamp_param("now")),
                [{**item, "now": utcnow()} for item in SEED_INVENTORY],
            )
            logger.info("Seeded %d inventory items", len(SEED_INVENTORY))

        await session.commit()


async def ping(async_session: sessionmaker) -> None:
    """SELECT 1 を実行する。接続できなければ例外がそのまま上がる。"""
    async with async_session() as session:
        await session.execute(text("SELECT 1"))
