"""
Inventory Service - FastAPI エントリーポイント

在庫管理サービス。
Orders Service は注文作成時に以下の 2 段階でこのサービスを呼ぶ:
  1. GET  /inventory/{item_id}          在庫数の確認（読み取りのみ）
  2. POST /inventory/{item_id}/reserve  在庫の引き当て（在庫を減らす）
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
from .store import InMemoryInventoryStore, InsufficientStock, ItemExists, SqlInventoryStore

SERVICE_NAME = "inventory"

logger = logging.getLogger(__name__)
router = APIRouter()


# ── Request Models ───────────────────────────────

class CreateItemRequest(BaseModel):
    id: str | None = None
    name: str | None = None
    quantity: int | None = None
    price: float | None = None


class UpdateItemRequest(BaseModel):
    quantity: int | None = None
    price: float | None = None


class ReserveRequest(BaseModel):
    quantity: int | None = None


class RestockRequest(BaseModel):
    quantity: int | None = None


# ── Query Endpoints ──────────────────────────────

@router.get("/health")
async def health(request: Request):
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


@router.get("/inventory")
async def list_items(request: Request):
    items = await request.app.state.store.list_items()
    return {"service": "inventory-service", "items": items, "count": len(items)}


@router.get("/inventory/{item_id}")
async def get_item(item_id: str, request: Request):
    item = await request.app.state.store.get_item(item_id)
    if not item:
        raise HTTPException(404, "Item not found")
    return item


# ── Command Endpoints ────────────────────────────

@router.post("/inventory", status_code=201)
async def create_item(req: CreateItemRequest, request: Request):
    if not req.id or not req.name:
        raise HTTPException(400, "id and name are required")
    try:
        item = await request.app.state.store.create_item(
            req.id, req.name, req.quantity or 0, req.price or 0.0
        )
    except ItemExists:
        raise HTTPException(400, "Item ID already exists")
    logger.info("Created item %s (%s)", item["id"], item["name"])
    return item


@router.put("/inventory/{item_id}")
async def update_item(item_id: str, req: UpdateItemRequest, request: Request):
    item = await request.app.state.store.update_item(item_id, req.quantity, req.price)
    if not item:
        raise HTTPException(404, "Item not found")
    return item


@router.post("/inventory/{item_id}/reserve")
async def reserve(item_id: str, request: Request, req: ReserveRequest | None = None):
    """在庫引き当て（在庫数を減らす）"""
    quantity = req.quantity if req and req.quantity is not None else 1
    try:
        item = await request.app.state.store.reserve(item_id, quantity)
    except InsufficientStock as e:
        logger.info("Reserve rejected for %s: requested=%d available=%d",
                    item_id, quantity, e.available)
        raise HTTPException(400, {"error": "Insufficient stock", "available": e.available})
    if not item:
        raise HTTPException(404, "Item not found")
    logger.info("Reserved %d units of %s, remaining=%d", quantity, item_id, item["quantity"])
    return {
        "message": f"Reserved {quantity} units of {item['name']}",
        "remaining": item["quantity"],
    }


@router.post("/inventory/{item_id}/restock")
async def restock(item_id: str, request: Request, req: RestockRequest | None = None):
    """在庫補充"""
    quantity = req.quantity if req and req.quantity is not None else 10
    item = await request.app.state.store.restock(item_id, quantity)
    if not item:
        raise HTTPException(404, "Item not found")
    logger.info("Restocked %d units of %s", quantity, item_id)
    return {
        "message": f"Restocked {quantity} units of {item['name']}",
        "new_quantity": item["quantity"],
    }


@router.delete("/inventory/{item_id}")
async def delete_item(item_id: str, request: Request):
    store = request.app.state.store
    if await store.is_referenced_by_orders(item_id):
        raise HTTPException(400, "Cannot delete item that appears in orders")
    if not await store.delete_item(item_id):
        raise HTTPException(404, "Item not found")
    return {"message": "Item deleted"}


# ── App Factory ──────────────────────────────────

def create_app(store=None, database_url: str | None = None) -> FastAPI:
    setup_logging(SERVICE_NAME)
    engine = None
    async_session = None
    if store is None:
        database_url = database_url or database_url_from_env()
        if database_url:
            engine, async_session = create_session_factory(database_url)
            store = SqlInventoryStore(async_session)
        else:
            store = InMemoryInventoryStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if async_session is not None:
            await init_schema(async_session)
        logger.info("Inventory service ready (store=%s)", type(store).__name__)
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(title="Inventory Service", lifespan=lifespan)
    app.state.store = store
    install_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()
