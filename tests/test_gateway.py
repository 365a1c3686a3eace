import httpx
import pytest

from conftest import INVENTORY_HOST, ORDERS_HOST, USERS_HOST
from services.common.client import ServiceClient
from services.common.config import ServiceEndpoints
from services.gateway.app import main as gateway_main
from services.gateway.app.health import HealthAggregator
from services.gateway.app.proxy import GatewayProxy


def _client_with(handler) -> ServiceClient:
    return ServiceClient(
        ServiceEndpoints(), httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


# ── Proxy ────────────────────────────────────────

@pytest.mark.asyncio
async def test_get_is_relayed_verbatim(gateway_client):
    resp = await gateway_client.get("/inventory/ITEM001")

    assert resp.status_code == 200
    assert resp.json() == {
        "id": "ITEM001",
        "name": "Docker Handbook",
        "quantity": 50,
        "price": 29.99,
    }


@pytest.mark.asyncio
async def test_downstream_error_status_is_relayed(gateway_client):
    resp = await gateway_client.get("/users/does-not-exist")

    assert resp.status_code == 404
    assert resp.json() == {"error": "User not found"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "host, path",
    [
        (USERS_HOST, "/users"),
        (ORDERS_HOST, "/orders/ORD123456"),
        (INVENTORY_HOST, "/inventory/ITEM001"),
    ],
)
async def test_unreachable_service_returns_uniform_503(topology, gateway_client, host, path):
    topology.down.add(host)

    resp = await gateway_client.get(path)

    assert resp.status_code == 503
    assert resp.json() == {"error": "Service unavailable"}


@pytest.mark.asyncio
async def test_order_creation_through_gateway(topology, gateway_client):
    resp = await gateway_client.post(
        "/orders", json={"user_id": "3", "items": [{"item_id": "ITEM002", "quantity": 10}]}
    )

    assert resp.status_code == 201
    order_id = resp.json()["id"]
    assert topology.inventory_store.items["ITEM002"]["quantity"] == 190

    resp = await gateway_client.put(f"/orders/{order_id}/status", json={"status": "Completed"})
    assert resp.status_code == 200
    assert resp.json() == {"message": "Order status updated", "status": "completed"}

    resp = await gateway_client.get(f"/orders/{order_id}")
    assert resp.json()["status"] == "completed"
    assert resp.json()["user"]["name"] == "Charlie"

    resp = await gateway_client.delete(f"/orders/{order_id}")
    assert resp.status_code == 200
    assert (await gateway_client.get(f"/orders/{order_id}")).status_code == 404


@pytest.mark.asyncio
async def test_reserve_and_restock_are_forwarded(topology, gateway_client):
    resp = await gateway_client.post("/inventory/ITEM003/reserve", json={"quantity": 5})
    assert resp.json() == {"message": "Reserved 5 units of Kubernetes Mug", "remaining": 20}

    resp = await gateway_client.post("/inventory/ITEM003/restock", json={"quantity": 30})
    assert resp.json() == {"message": "Restocked 30 units of Kubernetes Mug", "new_quantity": 50}

    resp = await gateway_client.post("/inventory/ITEM003/reserve", json={"quantity": 500})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Insufficient stock", "available": 50}


@pytest.mark.asyncio
async def test_malformed_downstream_body_returns_500():
    proxy = GatewayProxy(_client_with(lambda req: httpx.Response(200, text="<html>oops")))

    resp = await proxy.forward("GET", "users", "/users")

    assert resp.status_code == 500
    assert b"error" in resp.body


@pytest.mark.asyncio
async def test_invalid_inbound_json_returns_500(gateway_client):
    resp = await gateway_client.post(
        "/users", content=b"{not json", headers={"content-type": "application/json"}
    )

    assert resp.status_code == 500
    assert "error" in resp.json()


@pytest.mark.asyncio
async def test_path_parameters_are_forwarded_as_single_segments(topology, gateway_client):
    resp = await gateway_client.get("/users/1%3Fx")

    assert resp.status_code == 404
    assert resp.json() == {"error": "User not found"}
    assert topology.calls_to(USERS_HOST) == [("GET", "/users/1?x")]


@pytest.mark.asyncio
async def test_unexpected_downstream_failure_is_relayed(topology, gateway_client):
    async def failing_create_order(order):
        raise RuntimeError("db write failed")

    topology.order_store.create_order = failing_create_order

    resp = await gateway_client.post(
        "/orders", json={"user_id": "1", "items": [{"item_id": "ITEM001", "quantity": 1}]}
    )

    assert resp.status_code == 500
    assert resp.json() == {"error": "db write failed"}


# ── Health ───────────────────────────────────────

@pytest.mark.asyncio
async def test_health_all_healthy(gateway_client):
    resp = await gateway_client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {
        "status": "healthy",
        "services": {
            "gateway": "healthy",
            "users": "healthy",
            "orders": "healthy",
            "inventory": "healthy",
        },
    }


@pytest.mark.asyncio
async def test_health_degraded_when_one_service_unreachable(topology, gateway_client):
    topology.down.add(INVENTORY_HOST)

    resp = await gateway_client.get("/health")

    assert resp.status_code == 503
    body = resp.json()
    assert body["status"] == "degraded"
    assert body["services"]["inventory"] == "unreachable"
    assert body["services"]["gateway"] == "healthy"
    assert body["services"]["users"] == "healthy"


@pytest.mark.asyncio
async def test_health_classifies_each_service():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == USERS_HOST:
            return httpx.Response(503, json={"status": "unhealthy", "database": "disconnected"})
        if request.url.host == ORDERS_HOST:
            return httpx.Response(200, json={"status": "healthy"})
        raise httpx.ConnectTimeout("timed out", request=request)

    overall, services = await HealthAggregator(_client_with(handler)).aggregate()

    assert overall == "degraded"
    assert services == {
        "gateway": "healthy",
        "users": "unhealthy",
        "orders": "degraded",
        "inventory": "unreachable",
    }


@pytest.mark.asyncio
async def test_index_lists_endpoints():
    app = gateway_main.create_app(endpoints=ServiceEndpoints())
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        resp = await client.get("/")

    assert resp.status_code == 200
    assert resp.json()["endpoints"] == ["/users", "/orders", "/inventory", "/health"]
