"""
Orders Service - FastAPI エントリーポイント

注文の参照・作成・状態更新・削除を提供する。
POST /orders は OrderOrchestrator に委譲し、
Users / Inventory Service を順番に呼び出してから注文を保存する。
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from ...common.client import ServiceClient, Success, segment
from ...common.config import ServiceEndpoints, database_url_from_env
from ...common.database import create_session_factory, init_schema
from ...common.errors import install_error_handlers
from ...common.log import setup_logging
from .models import CreateOrderRequest, Order, OrderStatus, UpdateStatusRequest
from .orchestrator import OrderCreationError, OrderOrchestrator
from .store import InMemoryOrderStore, SqlOrderStore

SERVICE_NAME = "orders"
VALID_STATUSES = [s.value for s in OrderStatus]

logger = logging.getLogger(__name__)
router = APIRouter()


def _order_json(order: Order) -> dict:
    return order.model_dump(mode="json")


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


@router.get("/orders")
async def list_orders(request: Request):
    orders = await request.app.state.store.list_orders()
    return {
        "service": "orders-service",
        "orders": [_order_json(o) for o in orders],
        "count": len(orders),
    }


@router.get("/orders/{order_id}")
async def get_order(order_id: str, request: Request):
    """注文詳細。ユーザー情報は Users Service から取得して付け加える。"""
    order = await request.app.state.store.get_order(order_id)
    if not order:
        raise HTTPException(404, "Order not found")

    user = None
    outcome = await request.app.state.client.get("users", f"/users/{segment(order.user_id)}")
    if isinstance(outcome, Success):
        try:
            user = outcome.json()
        except ValueError:
            logger.warning("Unreadable user payload for %s", order.user_id)

    body = _order_json(order)
    body["user"] = user or {"error": "Could not fetch user data"}
    return body


# ── Command Endpoints ────────────────────────────

@router.post("/orders", status_code=201)
async def create_order(req: CreateOrderRequest, request: Request):
    order = await request.app.state.orchestrator.create_order(req)
    return JSONResponse(
        _order_json(order),
        status_code=201,
        headers={"Location": f"/orders/{order.id}"},
    )


@router.put("/orders/{order_id}/status")
async def update_status(order_id: str, req: UpdateStatusRequest, request: Request):
    if not req.status:
        raise HTTPException(400, "status is required")
    status = req.status.lower()
    if status not in VALID_STATUSES:
        raise HTTPException(
            400, f"Invalid status. Valid values: {', '.join(VALID_STATUSES)}"
        )
    if not await request.app.state.store.update_status(order_id, OrderStatus(status)):
        raise HTTPException(404, "Order not found")
    logger.info("Order %s status -> %s", order_id, status)
    return {"message": "Order status updated", "status": status}


@router.delete("/orders/{order_id}")
async def delete_order(order_id: str, request: Request):
    if not await request.app.state.store.delete_order(order_id):
        raise HTTPException(404, "Order not found")
    logger.info("Deleted order %s", order_id)
    return {"message": "Order deleted"}


async def order_creation_error_handler(
    request: Request, exc: OrderCreationError
) -> JSONResponse:
    return JSONResponse({"error": exc.reason}, status_code=exc.status_code)


# ── App Factory ──────────────────────────────────

def create_app(
    endpoints: ServiceEndpoints | None = None,
    http: httpx.AsyncClient | None = None,
    store=None,
    database_url: str | None = None,
) -> FastAPI:
    """
    endpoints / http / store はテストから差し替えられる。
    渡されなければ環境変数から組み立てる。
    """
    setup_logging(SERVICE_NAME)
    endpoints = endpoints or ServiceEndpoints.from_env()
    owns_http = http is None
    http = http or httpx.AsyncClient()

    engine = None
    async_session = None
    if store is None:
        database_url = database_url or database_url_from_env()
        if database_url:
            engine, async_session = create_session_factory(database_url)
            store = SqlOrderStore(async_session)
        else:
            store = InMemoryOrderStore()

    client = ServiceClient(endpoints, http)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if async_session is not None:
            await init_schema(async_session)
        logger.info(
            "Orders service ready (store=%s, users=%s, inventory=%s)",
            type(store).__name__, endpoints.users, endpoints.inventory,
        )
        yield
        if owns_http:
            await http.aclose()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(title="Orders Service", lifespan=lifespan)
    app.state.store = store
    app.state.client = client
    app.state.orchestrator = OrderOrchestrator(client, store)
    install_error_handlers(app)
    app.add_exception_handler(OrderCreationError, order_creation_error_handler)
    app.include_router(router)
    return app


app = create_app()
