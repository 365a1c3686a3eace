"""
テスト用のサービス構成

本物の users / inventory / orders / gateway アプリを 1 プロセス内で組み立てる。
下流呼び出しはホスト名で ASGITransport に振り分け、
down に入れたホスト（と未登録のホスト）は接続拒否になる。
"""

import httpx
import pytest_asyncio

from services.common.config import ServiceEndpoints
from services.gateway.app import main as gateway_main
from services.inventory.app import main as inventory_main
from services.inventory.app.store import InMemoryInventoryStore
from services.orders.app import main as orders_main
from services.orders.app.store import InMemoryOrderStore
from services.users.app import main as users_main
from services.users.app.store import InMemoryUserStore

USERS_HOST = "users-service"
ORDERS_HOST = "orders-service"
INVENTORY_HOST = "inventory-service"


class Topology:
    def __init__(self) -> None:
        self.endpoints = ServiceEndpoints()
        self.users_store = InMemoryUserStore()
        self.inventory_store = InMemoryInventoryStore()
        self.order_store = InMemoryOrderStore()
        self.calls: list[tuple[str, str, str]] = []
        self.down: set[str] = set()

        self.http = httpx.AsyncClient(transport=httpx.MockTransport(self._route))
        self.orders_app = orders_main.create_app(
            endpoints=self.endpoints, http=self.http, store=self.order_store
        )
        self.gateway_app = gateway_main.create_app(endpoints=self.endpoints, http=self.http)
        self._transports = {
            USERS_HOST: httpx.ASGITransport(app=users_main.create_app(store=self.users_store)),
            INVENTORY_HOST: httpx.ASGITransport(
                app=inventory_main.create_app(store=self.inventory_store)
            ),
            ORDERS_HOST: httpx.ASGITransport(app=self.orders_app, raise_app_exceptions=False),
        }

    async def _route(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.calls.append((request.method, host, request.url.path))
        if host in self.down or host not in self._transports:
            raise httpx.ConnectError("Connection refused", request=request)
        return await self._transports[host].handle_async_request(request)

    def calls_to(self, host: str) -> list[tuple[str, str]]:
        return [(method, path) for method, h, path in self.calls if h == host]

    def client_for(self, app) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app, raise_app_exceptions=False),
            base_url="http://test",
        )


@pytest_asyncio.fixture
async def topology():
    topo = Topology()
    yield topo
    await topo.http.aclose()


@pytest_asyncio.fixture
async def orders_client(topology):
    async with topology.client_for(topology.orders_app) as client:
        yield client


@pytest_asyncio.fixture
async def gateway_client(topology):
    async with topology.client_for(topology.gateway_app) as client:
        yield client
