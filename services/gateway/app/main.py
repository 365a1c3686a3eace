"""
API Gateway - FastAPI エントリーポイント

フロントエンドが知っている唯一の入口。
  ┌──────────┐     ┌─────────┐     ┌───────────────────┐
  │ Frontend │────▶│ Gateway │────▶│ Users Service     │
  │          │     │         │────▶│ Orders Service    │
  │          │     │         │────▶│ Inventory Service │
  └──────────┘     └─────────┘     └───────────────────┘

/health 以外のルートはすべて対応するサービスへそのまま転送する。
注文作成 (POST /orders) のオーケストレーションは Orders Service 側で行う。
"""

import json
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ...common.client import ServiceClient, segment
from ...common.config import ServiceEndpoints
from ...common.errors import install_error_handlers
from ...common.log import setup_logging
from .health import HEALTHY, HealthAggregator
from .proxy import GatewayProxy

SERVICE_NAME = "gateway"

logger = logging.getLogger(__name__)
router = APIRouter()


async def _read_json(request: Request):
    raw = await request.body()
    return json.loads(raw) if raw else None


async def _proxy(request: Request, service: str, path: str) -> JSONResponse:
    """受け取ったリクエストをメソッド・ボディごと転送する。"""
    try:
        body = await _read_json(request)
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=500)
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return await request.app.state.proxy.forward(request.method, service, path, body)


@router.get("/")
async def index():
    return {
        "service": "API Gateway",
        "version": "2.0",
        "endpoints": ["/users", "/orders", "/inventory", "/health"],
        "message": "Welcome to the Microservices Demo!",
    }


@router.get("/health")
async def health(request: Request):
    overall, services = await request.app.state.health.aggregate()
    return JSONResponse(
        {"status": overall, "services": services},
        status_code=200 if overall == HEALTHY else 503,
    )


# ── Users ────────────────────────────────────────

@router.get("/users")
@router.post("/users")
async def users(request: Request):
    return await _proxy(request, "users", "/users")


@router.get("/users/{user_id}")
@router.delete("/users/{user_id}")
async def user(user_id: str, request: Request):
    return await _proxy(request, "users", f"/users/{segment(user_id)}")


# ── Orders ───────────────────────────────────────

@router.get("/orders")
@router.post("/orders")
async def orders(request: Request):
    return await _proxy(request, "orders", "/orders")


@router.get("/orders/{order_id}")
@router.delete("/orders/{order_id}")
async def order(order_id: str, request: Request):
    return await _proxy(request, "orders", f"/orders/{segment(order_id)}")


@router.put("/orders/{order_id}/status")
async def order_status(order_id: str, request: Request):
    return await _proxy(request, "orders", f"/orders/{segment(order_id)}/status")


# ── Inventory ────────────────────────────────────

@router.get("/inventory")
@router.post("/inventory")
async def inventory(request: Request):
    return await _proxy(request, "inventory", "/inventory")


@router.get("/inventory/{item_id}")
@router.put("/inventory/{item_id}")
@router.delete("/inventory/{item_id}")
async def inventory_item(item_id: str, request: Request):
    return await _proxy(request, "inventory", f"/inventory/{segment(item_id)}")


@router.post("/inventory/{item_id}/reserve")
async def reserve(item_id: str, request: Request):
    return await _proxy(request, "inventory", f"/inventory/{segment(item_id)}/reserve")


@router.post("/inventory/{item_id}/restock")
async def restock(item_id: str, request: Request):
    return await _proxy(request, "inventory", f"/inventory/{segment(item_id)}/restock")


# ── App Factory ──────────────────────────────────

def create_app(
    endpoints: ServiceEndpoints | None = None,
    http: httpx.AsyncClient | None = None,
) -> FastAPI:
    setup_logging(SERVICE_NAME)
    endpoints = endpoints or ServiceEndpoints.from_env()
    owns_http = http is None
    http = http or httpx.AsyncClient()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Gateway ready, services=%s", endpoints.as_dict())
        yield
        if owns_http:
            await http.aclose()

    app = FastAPI(title="API Gateway", lifespan=lifespan)

    # CORS 設定（静的フロントエンドからのアクセスを許可）
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    client = ServiceClient(endpoints, http)
    install_error_handlers(app)
    app.state.proxy = GatewayProxy(client)
    app.state.health = HealthAggregator(client)
    app.include_router(router)
    return app


app = create_app()
