"""Tests for the HTTP API."""

import pytest
from httpx import AsyncClient

from orderflow.models.product import Product
from orderflow.models.user import User

CUSTOMER = {"X-User-Id": "customer-1", "X-User-Role": "customer"}
SELLER = {"X-User-Id": "seller-1", "X-User-Role": "seller"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
AGENT = {"X-User-Id": "agent-1", "X-User-Role": "delivery_agent"}
OTHER_AGENT = {"X-User-Id": "agent-2", "X-User-Role": "delivery_agent"}

ORDER_BODY = {
    "items": [{"product_id": "coffee", "quantity": 2}],
    "delivery_address": {"street": "Jugol Gate 5", "city": "Harar"},
}


async def place_order(client: AsyncClient) -> dict:
    response = await client.post("/api/v1/orders", json=ORDER_BODY, headers=CUSTOMER)
    assert response.status_code == 201
    return response.json()["data"]


async def make_ready(client: AsyncClient, order_id: str) -> None:
    for status in ("accepted", "preparing", "ready_for_pickup"):
        response = await client.put(
            f"/api/v1/orders/{order_id}/status", json={"status": status}, headers=SELLER
        )
        assert response.status_code == 200


@pytest.mark.asyncio
async def test_health_check(test_client: AsyncClient) -> None:
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "orderflow"}


@pytest.mark.asyncio
async def test_missing_identity_headers(test_client: AsyncClient) -> None:
    response = await test_client.get("/api/v1/orders/mine")

    assert response.status_code == 401
    assert response.json()["error"] == "not_authenticated"

    response = await test_client.get(
        "/api/v1/orders/mine", headers={"X-User-Id": "u", "X-User-Role": "wizard"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_order_envelope(
    test_client: AsyncClient, catalog: dict[str, Product], people: dict[str, User]
) -> None:
    response = await test_client.post("/api/v1/orders", json=ORDER_BODY, headers=CUSTOMER)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Order created successfully"
    assert body["data"]["order_status"] == "pending"
    assert body["data"]["total_amount"] == "200"
    assert body["data"]["delivery_fee"] == "50"
    assert body["data"]["final_amount"] == "250"
    assert body["data"]["order_number"].startswith("EL")


@pytest.mark.asyncio
async def test_request_validation_uses_error_envelope(test_client: AsyncClient) -> None:
    response = await test_client.post(
        "/api/v1/orders",
        json={"items": [], "delivery_address": {"street": "Jugol Gate 5", "city": "Harar"}},
        headers=CUSTOMER,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "validation_error"
    assert body["message"].startswith("items")


@pytest.mark.asyncio
async def test_business_errors_map_to_status_codes(
    test_client: AsyncClient, catalog: dict[str, Product], people: dict[str, User]
) -> None:
    response = await test_client.post(
        "/api/v1/orders",
        json={**ORDER_BODY, "items": [{"product_id": "spice", "quantity": 50}]},
        headers=CUSTOMER,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "insufficient_stock"

    response = await test_client.get("/api/v1/orders/EL000000000", headers=ADMIN)
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"

    order = await place_order(test_client)
    response = await test_client.put(
        f"/api/v1/orders/{order['id']}/status", json={"status": "delivered"}, headers=ADMIN
    )
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state_transition"

    response = await test_client.get("/api/v1/orders", headers=CUSTOMER)
    assert response.status_code == 403
    assert response.json()["error"] == "not_authorized"


@pytest.mark.asyncio
async def test_delivery_flow_over_http(
    test_client: AsyncClient, catalog: dict[str, Product], people: dict[str, User]
) -> None:
    order = await place_order(test_client)
    order_id = order["id"]
    await make_ready(test_client, order_id)

    available = await test_client.get("/api/v1/delivery/available", headers=AGENT)
    assert available.json()["data"]["total"] == 1

    accepted = await test_client.post(f"/api/v1/delivery/{order_id}/accept", headers=AGENT)
    assert accepted.status_code == 200
    assert accepted.json()["data"]["order_status"] == "dispatched"

    taken = await test_client.post(f"/api/v1/delivery/{order_id}/accept", headers=OTHER_AGENT)
    assert taken.status_code == 409
    assert taken.json()["error"] == "already_assigned"

    moved = await test_client.put(
        f"/api/v1/delivery/{order_id}/location",
        json={"latitude": 9.31, "longitude": 42.12},
        headers=AGENT,
    )
    assert moved.json()["data"]["tracking_updates"][-1]["status"] == "location_update"

    picked = await test_client.put(
        f"/api/v1/delivery/{order_id}/status", json={"status": "picked_up"}, headers=AGENT
    )
    assert picked.json()["data"]["order_status"] == "in_transit"

    completed = await test_client.post(
        f"/api/v1/delivery/{order_id}/complete",
        json={"delivery_notes": "Left at the gate"},
        headers=AGENT,
    )
    assert completed.status_code == 200
    assert completed.json()["data"]["payment_status"] == "paid"

    earnings = await test_client.get("/api/v1/delivery/earnings", headers=AGENT)
    assert earnings.json()["data"] == {"total": "40.00", "deliveries": 1}

    tracking = await test_client.get(f"/api/v1/orders/{order_id}/tracking", headers=CUSTOMER)
    data = tracking.json()["data"]
    assert data["current_status"] == "delivered"
    assert data["delivery_agent"]["name"] == "Yonas"


@pytest.mark.asyncio
async def test_cancel_over_http(
    test_client: AsyncClient, catalog: dict[str, Product], people: dict[str, User]
) -> None:
    order = await place_order(test_client)

    response = await test_client.put(
        f"/api/v1/orders/{order['order_number']}/cancel",
        json={"reason": "changed mind"},
        headers=CUSTOMER,
    )
    assert response.status_code == 200
    assert response.json()["data"]["order_status"] == "cancelled"

    again = await test_client.put(
        f"/api/v1/orders/{order['id']}/cancel", json={"reason": "again"}, headers=CUSTOMER
    )
    assert again.status_code == 409
    assert again.json()["error"] == "not_cancellable"


@pytest.mark.asyncio
async def test_stale_version_is_a_conflict(
    test_client: AsyncClient, catalog: dict[str, Product], people: dict[str, User]
) -> None:
    order = await place_order(test_client)

    response = await test_client.put(
        f"/api/v1/orders/{order['id']}/status",
        json={"status": "accepted", "expected_version": order["version"] + 1},
        headers=SELLER,
    )

    assert response.status_code == 409
    assert response.json()["error"] == "version_conflict"


@pytest.mark.asyncio
async def test_admin_override_and_inventory(
    test_client: AsyncClient, catalog: dict[str, Product], people: dict[str, User]
) -> None:
    order = await place_order(test_client)

    response = await test_client.post(
        f"/api/v1/admin/orders/{order['id']}/override",
        json={"status": "cancelled", "reason": "Fraud check failed"},
        headers=ADMIN,
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Order status overridden to cancelled"

    response = await test_client.post(
        "/api/v1/admin/inventory/update",
        json={"product_id": "coffee", "quantity": 5, "operation": "add"},
        headers=ADMIN,
    )
    assert response.status_code == 200
    assert response.json()["data"]["stock"] == 15


@pytest.mark.asyncio
async def test_notifications_endpoints(
    test_client: AsyncClient, catalog: dict[str, Product], people: dict[str, User]
) -> None:
    await place_order(test_client)

    listing = await test_client.get("/api/v1/notifications", headers=SELLER)
    data = listing.json()["data"]
    assert data["unread_count"] == 1
    notification_id = data["notifications"][0]["id"]

    marked = await test_client.put(
        f"/api/v1/notifications/{notification_id}/read", headers=SELLER
    )
    assert marked.status_code == 200

    missing = await test_client.put("/api/v1/notifications/unknown/read", headers=SELLER)
    assert missing.status_code == 404

    deleted = await test_client.delete(f"/api/v1/notifications/{notification_id}", headers=SELLER)
    assert deleted.status_code == 200
    listing = await test_client.get("/api/v1/notifications", headers=SELLER)
    assert listing.json()["data"]["notifications"] == []


@pytest.mark.asyncio
async def test_cart_checkout_over_http(
    test_client: AsyncClient, catalog: dict[str, Product], people: dict[str, User]
) -> None:
    added = await test_client.post(
        "/api/v1/cart/items", json={"product_id": "coffee", "quantity": 3}, headers=CUSTOMER
    )
    assert added.status_code == 201
    assert added.json()["data"]["total_items"] == 3

    checkout = await test_client.post(
        "/api/v1/cart/checkout",
        json={"delivery_address": {"street": "Jugol Gate 5", "city": "Harar"}},
        headers=CUSTOMER,
    )
    assert checkout.status_code == 201
    assert checkout.json()["data"]["final_amount"] == "350"

    cart = await test_client.get("/api/v1/cart", headers=CUSTOMER)
    assert cart.json()["data"]["items"] == []


@pytest.mark.asyncio
async def test_dashboard_dispatches_by_role(
    test_client: AsyncClient, catalog: dict[str, Product], people: dict[str, User]
) -> None:
    await place_order(test_client)

    seller = await test_client.get("/api/v1/dashboard", headers=SELLER)
    assert seller.json()["data"]["role"] == "seller"
    assert seller.json()["data"]["pending_orders"] == 1

    admin = await test_client.get("/api/v1/dashboard", headers=ADMIN)
    assert admin.json()["data"]["orders_by_status"]["pending"] == 1
