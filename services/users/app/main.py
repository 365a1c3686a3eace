"""
Users Service - FastAPI エントリーポイント

ユーザーの登録・参照・削除を提供する。
Orders Service は注文作成時に GET /users/{user_id} で存在確認を行う。
"""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ...common.config import database_url_from_env
from ...common.database import create_session_factory, init_schema
from ...common.errors import install_error_handlers
from ...common.log import setup_logging
from .store import InMemoryUserStore, SqlUserStore, default_email

SERVICE_NAME = "users"

logger = logging.getLogger(__name__)
router = APIRouter()


# ── Request Models ───────────────────────────────

class CreateUserRequest(BaseModel):
    name: str | None = None
    email: str | None = None


# ── Endpoints ────────────────────────────────────

@router.get("/health")
async def health(request: Request):
    """ストアへの疎通も含めたヘルスチェック"""
    try:
        await request.app.state.store.ping()
    except Exception as e:
        logger.exception("Health check failed")
        return JSONResponse(
            {
                "service": SERVICE_NAME,
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e),
            },
            status_code=503,
        )
    return {"service": SERVICE_NAME, "status": "healthy", "database": "connected"}


@router.get("/users")
async def list_users(request: Request):
    users = await request.app.state.store.list_users()
    return {"service": "users-service", "users": users, "count": len(users)}


@router.get("/users/{user_id}")
async def get_user(user_id: str, request: Request):
    user = await request.app.state.store.get_user(user_id)
    if not user:
        raise HTTPException(404, "User not found")
    return user


@router.post("/users", status_code=201)
async def create_user(req: CreateUserRequest, request: Request):
    if not req.name:
        raise HTTPException(400, "Name is required")
    user = await request.app.state.store.create_user(
        req.name, req.email or default_email(req.name)
    )
    logger.info("Created user %s (%s)", user["id"], user["name"])
    return user


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, request: Request):
    store = request.app.state.store
    if await store.has_orders(user_id):
        raise HTTPException(400, "Cannot delete user with existing orders")
    if not await store.delete_user(user_id):
        raise HTTPException(404, "User not found")
    logger.info("Deleted user %s", user_id)
    return {"message": "User deleted"}


# ── App Factory ──────────────────────────────────

def create_app(store=None, database_url: str | None = None) -> FastAPI:
    """
    store を渡さなければ DATABASE_URL から決める。
    未設定ならシード入りのインメモリストアで動く。
    """
    setup_logging(SERVICE_NAME)
    engine = None
    async_session = None
    if store is None:
        database_url = database_url or database_url_from_env()
        if database_url:
            engine, async_session = create_session_factory(database_url)
            store = SqlUserStore(async_session)
        else:
            store = InMemoryUserStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if async_session is not None:
            await init_schema(async_session)
        logger.info("Users service ready (store=%s)", type(store).__name__)
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(title="Users Service", lifespan=lifespan)
    app.state.store = store
    install_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()
