"""End-to-end tests for the storefront HTTP API over the in-memory stores."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

from storefront.cache.keys import CacheKeys

USER = {"X-User-Id": "user-1"}

PRODUCT_BODY: dict[str, Any] = {
    "name": "Nebula 15 Gaming Laptop",
    "description": "RTX graphics, 165Hz display",
    "price": 1499.0,
    "category": "GAMING_LAPTOP",
    "brand": "Nebula",
    "image_url": "https://img.test/nebula15.png",
    "stock": 10,
}

ADDRESS = {"street": "221B Baker St", "city": "Pune", "state": "MH", "pincode": "411001"}


async def create_product(client: AsyncClient, **overrides: Any) -> dict[str, Any]:
    response = await client.post("/api/products", json=PRODUCT_BODY | overrides)
    assert response.status_code == 201
    return response.json()["data"]


class TestHealth:
    """Liveness and readiness probes."""

    @pytest.mark.asyncio
    async def test_live(self, app_client: AsyncClient) -> None:
        response = await app_client.get("/health/live")

        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_ready_healthy(self, app_client: AsyncClient) -> None:
        response = await app_client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_ready_degraded_without_cache(self, app_client, fake_redis) -> None:
        """An unreachable cache degrades readiness without failing it."""
        fake_redis.down = True

        response = await app_client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_metrics_endpoint(self, app_client: AsyncClient) -> None:
        response = await app_client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")


class TestProductsApi:
    """Product endpoints."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, app_client, fake_redis) -> None:
        created = await create_product(app_client)

        response = await app_client.get(f"/api/products/{created['id']}")

        body = response.json()
        assert body["success"] is True
        assert body["data"]["price"] == 1499.0
        assert fake_redis.raw(CacheKeys.product(created["id"])) is not None

    @pytest.mark.asyncio
    async def test_price_update_is_served_fresh(self, app_client) -> None:
        created = await create_product(app_client)
        await app_client.get(f"/api/products/{created['id']}")

        await app_client.patch(f"/api/products/{created['id']}", json={"price": 1299.0})
        response = await app_client.get(f"/api/products/{created['id']}")

        assert response.json()["data"]["price"] == 1299.0

    @pytest.mark.asyncio
    async def test_missing_product(self, app_client: AsyncClient) -> None:
        response = await app_client.get("/api/products/missing")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "code": "NotFound",
            "message": "Product not found",
        }

    @pytest.mark.asyncio
    async def test_invalid_body(self, app_client: AsyncClient) -> None:
        response = await app_client.post("/api/products", json=PRODUCT_BODY | {"price": -1})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "ValidationFailed"
        assert body["errors"][0]["field"] == "price"

    @pytest.mark.asyncio
    async def test_set_stock_and_delete(self, app_client: AsyncClient) -> None:
        created = await create_product(app_client)

        stock = await app_client.put(f"/api/products/{created['id']}/stock", json={"stock": 3})
        deleted = await app_client.delete(f"/api/products/{created['id']}")
        missing = await app_client.get(f"/api/products/{created['id']}")

        assert stock.json()["data"]["stock"] == 3
        assert deleted.status_code == 200
        assert missing.status_code == 404


class TestSearchApi:
    """Search endpoint."""

    @pytest.mark.asyncio
    async def test_search_with_facets(self, app_client: AsyncClient) -> None:
        await create_product(app_client)
        await create_product(app_client, name="Vortex Mouse", category="MOUSE", brand="Vortex")

        response = await app_client.get("/api/search", params={"q": "nebula", "maxPrice": 2000})

        data = response.json()["data"]
        assert data["total_results"] == 1
        assert data["facets"]["brands"] == [{"value": "Nebula", "count": 1}]

    @pytest.mark.asyncio
    async def test_suggestions(self, app_client: AsyncClient) -> None:
        await create_product(app_client)

        response = await app_client.get("/api/search", params={"q": "neb", "suggest": "true"})

        assert response.json()["data"]["suggestions"] == ["Nebula 15 Gaming Laptop"]

    @pytest.mark.asyncio
    async def test_query_required(self, app_client: AsyncClient) -> None:
        response = await app_client.get("/api/search")

        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("suggest", ["false", "true"])
    async def test_blank_query_rejected(
        self, app_client: AsyncClient, fake_redis, suggest: str
    ) -> None:
        """Whitespace-only text would match the whole catalog."""
        await create_product(app_client)

        response = await app_client.get("/api/search", params={"q": "   ", "suggest": suggest})

        assert response.status_code == 400
        assert response.json()["code"] == "ValidationFailed"
        assert not [k for k in fake_redis.keys() if k.startswith(("search:", "suggestions:"))]


class TestCartApi:
    """Cart endpoints act on the X-User-Id user."""

    @pytest.mark.asyncio
    async def test_requires_user(self, app_client: AsyncClient) -> None:
        response = await app_client.get("/api/cart")

        assert response.status_code == 401
        assert response.json()["code"] == "Unauthorized"

    @pytest.mark.asyncio
    async def test_cart_flow(self, app_client: AsyncClient) -> None:
        product = await create_product(app_client)

        added = await app_client.post(
            "/api/cart", json={"product_id": product["id"], "quantity": 2}, headers=USER
        )
        updated = await app_client.put(
            f"/api/cart/{product['id']}", json={"quantity": 3}, headers=USER
        )
        fetched = await app_client.get("/api/cart", headers=USER)
        removed = await app_client.delete(f"/api/cart/{product['id']}", headers=USER)

        assert added.json()["data"]["total_amount"] == 2 * 1499.0
        assert updated.json()["data"]["items"][0]["quantity"] == 3
        assert fetched.json()["data"]["total_items"] == 1
        assert removed.json()["data"]["items"] == []

    @pytest.mark.asyncio
    async def test_insufficient_stock(self, app_client: AsyncClient) -> None:
        product = await create_product(app_client, stock=1)

        response = await app_client.post(
            "/api/cart", json={"product_id": product["id"], "quantity": 5}, headers=USER
        )

        assert response.status_code == 400
        assert response.json()["message"] == f"Insufficient stock for product: {product['id']}"

    @pytest.mark.asyncio
    async def test_update_item_not_in_cart(self, app_client: AsyncClient) -> None:
        product = await create_product(app_client)

        response = await app_client.put(
            f"/api/cart/{product['id']}", json={"quantity": 1}, headers=USER
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Product not found in cart"


class TestOrdersApi:
    """Orders, payment confirmation and the payment webhook."""

    async def _place_order(self, client: AsyncClient, quantity: int = 2) -> dict[str, Any]:
        product = await create_product(client, stock=5)
        await client.post(
            "/api/cart", json={"product_id": product["id"], "quantity": quantity}, headers=USER
        )
        response = await client.post(
            "/api/orders", json={"shipping_address": ADDRESS}, headers=USER
        )
        assert response.status_code == 201
        return response.json()["data"] | {"product_id": product["id"]}

    @pytest.mark.asyncio
    async def test_empty_cart(self, app_client: AsyncClient) -> None:
        response = await app_client.post(
            "/api/orders", json={"shipping_address": ADDRESS}, headers=USER
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Cart is empty"

    @pytest.mark.asyncio
    async def test_order_flow(self, app_client: AsyncClient) -> None:
        order = await self._place_order(app_client)

        assert order["client_secret"]
        assert order["payment_status"] == "pending"

        confirmed = await app_client.post(
            "/api/orders/payment-success", json={"order_id": order["id"]}
        )
        again = await app_client.post(
            "/api/orders/payment-success", json={"order_id": order["id"]}
        )
        product = await app_client.get(f"/api/products/{order['product_id']}")
        listed = await app_client.get("/api/orders", headers=USER)

        assert confirmed.json()["data"] == {"confirmed": True}
        assert again.json()["data"] == {"confirmed": False}
        assert product.json()["data"]["stock"] == 3
        assert [o["id"] for o in listed.json()["data"]] == [order["id"]]

    @pytest.mark.asyncio
    async def test_webhook_redelivery(self, app_client: AsyncClient) -> None:
        """The same event delivered twice is acknowledged once as processed."""
        order = await self._place_order(app_client)
        event = {
            "id": "evt_123",
            "type": "payment_intent.succeeded",
            "data": {
                "object": {
                    "id": order["payment_intent_id"],
                    "metadata": {"orderId": order["id"]},
                }
            },
        }

        first = await app_client.post("/api/webhooks/payment", json=event)
        second = await app_client.post("/api/webhooks/payment", json=event)
        product = await app_client.get(f"/api/products/{order['product_id']}")

        assert first.json() == {"received": True, "status": "processed"}
        assert second.json() == {"received": True, "status": "duplicate"}
        assert product.json()["data"]["stock"] == 3

    @pytest.mark.asyncio
    async def test_webhook_failure_answers_400(self, app_client: AsyncClient) -> None:
        order = await self._place_order(app_client)
        await app_client.put(f"/api/products/{order['product_id']}/stock", json={"stock": 0})
        event = {
            "id": "evt_789",
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": order["payment_intent_id"]}},
        }

        response = await app_client.post("/api/webhooks/payment", json=event)

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_payment_failed(self, app_client: AsyncClient) -> None:
        order = await self._place_order(app_client)

        response = await app_client.post(
            "/api/orders/payment-failed", json={"order_id": order["id"]}
        )

        assert response.json()["data"]["payment_status"] == "failed"

    @pytest.mark.asyncio
    async def test_other_users_order_is_hidden(self, app_client: AsyncClient) -> None:
        order = await self._place_order(app_client)

        response = await app_client.get(
            f"/api/orders/{order['id']}", headers={"X-User-Id": "user-2"}
        )

        assert response.status_code == 404
