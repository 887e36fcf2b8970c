"""
HTTP API tests.

Requests go through the full FastAPI application (middleware, dependency
injection, exception handlers) with the services wired to the per-test
SQLite database and in-memory Redis. A small test middleware plays the part
of the upstream auth layer: X-Test-User and X-Test-Admin headers become
request.state.user_id and request.state.admin_id.
"""

from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from shopcore.api import deps
from shopcore.core.config import get_settings
from shopcore.main import create_app

GUEST_HEADERS = {"X-Cart-Session": "api-guest-session"}
USER_HEADERS = {"X-Test-User": "42"}
ADMIN_HEADERS = {"X-Test-Admin": "3"}


@pytest.fixture
async def client(
    settings, session_factory, redis_client, activity
) -> AsyncGenerator[AsyncClient, None]:
    app = create_app()

    @app.middleware("http")
    async def test_auth(request, call_next):
        if "X-Test-User" in request.headers:
            request.state.user_id = request.headers["X-Test-User"]
        if "X-Test-Admin" in request.headers:
            request.state.admin_id = request.headers["X-Test-Admin"]
        return await call_next(request)

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[deps.get_db_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_redis] = lambda: redis_client
    app.dependency_overrides[deps.get_activity_recorder] = lambda: activity

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as async_client:
        yield async_client


async def add_item(client, headers, product_id, variant_id, quantity=1):
    return await client.post(
        "/api/v1/cart/items",
        json={
            "product_id": str(product_id),
            "variant_id": str(variant_id),
            "quantity": quantity,
        },
        headers=headers,
    )


async def checkout(client, headers, address, payment_method="online"):
    return await client.post(
        "/api/v1/orders/checkout",
        json={"shipping_address": address, "payment_method": payment_method},
        headers=headers,
    )


# ============================================================================
# Health
# ============================================================================


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == "healthy"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_health_check_reports_redis_outage(client, fake_redis, monkeypatch):
    monkeypatch.setattr(
        fake_redis, "ping", AsyncMock(side_effect=RedisConnectionError("down"))
    )

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["redis"] == "unhealthy"


# ============================================================================
# Cart Endpoints
# ============================================================================


class TestCartEndpoints:
    """Tests for /api/v1/cart."""

    @pytest.mark.asyncio
    async def test_new_guest_gets_session_cookie(self, client):
        response = await client.get("/api/v1/cart")

        assert response.status_code == 200
        assert "cart_session_id=" in response.headers["set-cookie"]
        assert response.json()["items"] == []
        assert response.json()["owner"].startswith("guest:")

    @pytest.mark.asyncio
    async def test_add_item(self, client, seeded):
        response = await add_item(
            client, GUEST_HEADERS, seeded.shirt_id, seeded.shirt_medium_id, 2
        )

        assert response.status_code == 201
        body = response.json()
        assert body["owner"] == "guest:api-guest-session"
        assert body["item_count"] == 2
        assert Decimal(body["items"][0]["unit_price"]) == Decimal("40.00")
        assert Decimal(body["totals"]["total"]) == Decimal("98.00")

    @pytest.mark.asyncio
    async def test_add_unknown_product(self, client, seeded):
        response = await add_item(
            client, GUEST_HEADERS, seeded.tote_id, seeded.shirt_medium_id
        )

        assert response.status_code == 404
        assert response.json()["code"] == "PRODUCT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_add_beyond_stock(self, client, seeded):
        response = await add_item(
            client, GUEST_HEADERS, seeded.shirt_id, seeded.shirt_large_id, 2
        )

        assert response.status_code == 409
        assert response.json()["code"] == "OUT_OF_STOCK"
        assert response.json()["details"]["available"] == 1

    @pytest.mark.asyncio
    async def test_add_zero_quantity(self, client, seeded):
        response = await add_item(
            client, GUEST_HEADERS, seeded.shirt_id, seeded.shirt_medium_id, 0
        )

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_QUANTITY"

    @pytest.mark.asyncio
    async def test_malformed_request(self, client):
        response = await client.post(
            "/api/v1/cart/items", json={"quantity": 1}, headers=GUEST_HEADERS
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_update_and_remove_item(self, client, seeded):
        await add_item(client, GUEST_HEADERS, seeded.shirt_id, seeded.shirt_medium_id)
        path = f"/api/v1/cart/items/{seeded.shirt_id}/{seeded.shirt_medium_id}"

        updated = await client.patch(path, json={"quantity": 4}, headers=GUEST_HEADERS)
        removed = await client.delete(path, headers=GUEST_HEADERS)
        missing = await client.delete(path, headers=GUEST_HEADERS)

        assert updated.json()["items"][0]["quantity"] == 4
        assert removed.json()["items"] == []
        assert missing.status_code == 404
        assert missing.json()["code"] == "CART_ITEM_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_clear_cart(self, client, seeded):
        await add_item(client, GUEST_HEADERS, seeded.shirt_id, seeded.shirt_medium_id)

        response = await client.delete("/api/v1/cart", headers=GUEST_HEADERS)

        assert response.status_code == 200
        assert response.json()["items"] == []

    @pytest.mark.asyncio
    async def test_merge_guest_cart_on_login(self, client, seeded):
        await add_item(client, GUEST_HEADERS, seeded.tote_id, seeded.tote_variant_id, 2)

        response = await client.post(
            "/api/v1/cart/merge", headers={**GUEST_HEADERS, **USER_HEADERS}
        )

        assert response.status_code == 200
        assert response.json()["owner"] == "user:42"
        assert response.json()["items"][0]["quantity"] == 2
        guest_cart = await client.get("/api/v1/cart", headers=GUEST_HEADERS)
        assert guest_cart.json()["items"] == []

    @pytest.mark.asyncio
    async def test_merge_requires_login(self, client):
        response = await client.post("/api/v1/cart/merge", headers=GUEST_HEADERS)
        assert response.status_code == 401


# ============================================================================
# Order Endpoints
# ============================================================================


class TestOrderEndpoints:
    """Tests for /api/v1/orders."""

    @pytest.mark.asyncio
    async def test_checkout(self, client, seeded, address, ledger):
        await add_item(client, GUEST_HEADERS, seeded.shirt_id, seeded.shirt_medium_id, 2)

        response = await checkout(client, GUEST_HEADERS, address)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert Decimal(body["total"]) == Decimal("98.00")
        assert len(body["items"]) == 1
        assert await ledger.available_quantity(seeded.shirt_medium_id) == 8

    @pytest.mark.asyncio
    async def test_checkout_empty_cart(self, client, address):
        response = await checkout(client, GUEST_HEADERS, address)

        assert response.status_code == 400
        assert response.json()["code"] == "EMPTY_CART"

    @pytest.mark.asyncio
    async def test_checkout_invalid_items(self, client, seeded, address, ledger):
        await add_item(client, GUEST_HEADERS, seeded.shirt_id, seeded.shirt_large_id)
        await ledger.adjust(seeded.shirt_large_id, -1, "admin:1")

        response = await checkout(client, GUEST_HEADERS, address)

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "INVALID_CART_ITEMS"
        assert body["details"]["invalid_items"][0]["reason"] == "insufficient_stock"

    @pytest.mark.asyncio
    async def test_get_own_order_only(self, client, seeded, address):
        await add_item(client, GUEST_HEADERS, seeded.tote_id, seeded.tote_variant_id)
        order_id = (await checkout(client, GUEST_HEADERS, address)).json()["order_id"]

        own = await client.get(f"/api/v1/orders/{order_id}", headers=GUEST_HEADERS)
        other = await client.get(
            f"/api/v1/orders/{order_id}", headers={"X-Cart-Session": "someone-else"}
        )

        assert own.status_code == 200
        assert own.json()["status_history"][0]["status"] == "pending"
        assert other.status_code == 404

    @pytest.mark.asyncio
    async def test_list_orders_requires_login(self, client):
        response = await client.get("/api/v1/orders", headers=GUEST_HEADERS)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_list_my_orders(self, client, seeded, address):
        await add_item(client, USER_HEADERS, seeded.tote_id, seeded.tote_variant_id)
        await checkout(client, USER_HEADERS, address, "cod")

        response = await client.get("/api/v1/orders", headers=USER_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["orders"][0]["payment_method"] == "cod"
        assert Decimal(body["orders"][0]["shipping_amount"]) == Decimal("49.00")


# ============================================================================
# Administration Endpoints
# ============================================================================


class TestAdminEndpoints:
    """Tests for /api/v1/admin."""

    @pytest.fixture
    async def order_id(self, client, seeded, address) -> str:
        await add_item(client, GUEST_HEADERS, seeded.shirt_id, seeded.shirt_medium_id, 2)
        return (await checkout(client, GUEST_HEADERS, address)).json()["order_id"]

    @pytest.mark.asyncio
    async def test_requires_admin(self, client, order_id):
        response = await client.get(f"/api/v1/admin/orders/{order_id}", headers=USER_HEADERS)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_get_order_with_allowed_transitions(self, client, order_id):
        response = await client.get(f"/api/v1/admin/orders/{order_id}", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json()["allowed_transitions"] == [
            "processing",
            "shipped",
            "delivered",
            "cancelled",
        ]

    @pytest.mark.asyncio
    async def test_cancel_order_returns_stock(self, client, order_id, seeded, ledger):
        response = await client.post(
            f"/api/v1/admin/orders/{order_id}/status",
            json={"status": "cancelled", "note": "Customer request"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["credited_items"] == 1
        assert await ledger.available_quantity(seeded.shirt_medium_id) == 10

        history = await client.get(
            "/api/v1/admin/inventory/history",
            params={"variant_id": str(seeded.shirt_medium_id)},
            headers=ADMIN_HEADERS,
        )
        latest = history.json()["entries"][0]
        assert latest["reason"] == "cancellation_return"
        assert latest["actor"] == "admin:3"

    @pytest.mark.asyncio
    async def test_illegal_transition(self, client, order_id):
        response = await client.post(
            f"/api/v1/admin/orders/{order_id}/status",
            json={"status": "refunded"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 409
        assert response.json()["code"] == "ILLEGAL_TRANSITION"

    @pytest.mark.asyncio
    async def test_unknown_status(self, client, order_id):
        response = await client.post(
            f"/api/v1/admin/orders/{order_id}/status",
            json={"status": "lost"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_STATUS"

    @pytest.mark.asyncio
    async def test_unknown_order(self, client, seeded):
        response = await client.post(
            f"/api/v1/admin/orders/{seeded.shirt_id}/status",
            json={"status": "processing"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 404
        assert response.json()["code"] == "ORDER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_adjust_stock_and_reconcile(self, client, seeded):
        base = f"/api/v1/admin/inventory/{seeded.tote_variant_id}"

        adjusted = await client.post(
            f"{base}/adjustments",
            json={"delta": -2, "note": "Damaged"},
            headers=ADMIN_HEADERS,
        )
        reconciled = await client.get(f"{base}/reconciliation", headers=ADMIN_HEADERS)

        assert adjusted.status_code == 201
        assert adjusted.json()["stock_quantity"] == 3
        assert reconciled.json()["is_consistent"] is True
        assert reconciled.json()["ledger_total"] == 3

    @pytest.mark.asyncio
    async def test_adjustment_below_zero_rejected(self, client, seeded):
        response = await client.post(
            f"/api/v1/admin/inventory/{seeded.tote_variant_id}/adjustments",
            json={"delta": -9},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INSUFFICIENT_STOCK"

    @pytest.mark.asyncio
    async def test_zero_adjustment_rejected(self, client, seeded):
        response = await client.post(
            f"/api/v1/admin/inventory/{seeded.tote_variant_id}/adjustments",
            json={"delta": 0},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_low_stock_report(self, client, seeded):
        response = await client.get("/api/v1/admin/inventory/low-stock", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert [item["variant_id"] for item in response.json()] == [
            str(seeded.shirt_large_id)
        ]
