"""
Integration tests for order management API endpoints.

Requests go through the real FastAPI app with gateway identity headers;
the tests check status codes, the response envelopes and the common
error body that domain failures are mapped to.
"""

from uuid import uuid4

import pytest
from fastapi import status
from httpx import AsyncClient

ORDERS_URL = "/api/v1/orders"


# ============================================================================
# Test Data Factories
# ============================================================================


def order_payload(product_id, quantity=2, **overrides) -> dict:
    """Create order request data."""
    payload = {
        "product_id": str(product_id),
        "quantity": quantity,
        "shipping_address": "12 Mill Road, Lahore",
        "phone_number": "+92 300 1234567",
        "payment_type": "cashOnDelivery",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def place(async_client: AsyncClient, auth_headers):
    """Place an order over HTTP and return the order body."""

    async def _place(caller, product_id, quantity=2, **overrides) -> dict:
        response = await async_client.post(
            f"{ORDERS_URL}/",
            json=order_payload(product_id, quantity, **overrides),
            headers=auth_headers(caller),
        )
        assert response.status_code == status.HTTP_201_CREATED, response.text
        return response.json()["order"]

    return _place


# ============================================================================
# Authentication Tests
# ============================================================================


class TestIdentityHeaders:
    """Test gateway identity handling."""

    @pytest.mark.asyncio
    async def test_missing_headers_returns_401(
        self, async_client: AsyncClient, product
    ) -> None:
        response = await async_client.post(f"{ORDERS_URL}/", json=order_payload(product.id))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_malformed_headers_return_401(
        self, async_client: AsyncClient
    ) -> None:
        response = await async_client.get(
            f"{ORDERS_URL}/my-orders",
            headers={"X-User-Id": "someone", "X-User-Role": "buyer"},
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

        response = await async_client.get(
            f"{ORDERS_URL}/my-orders",
            headers={"X-User-Id": str(uuid4()), "X-User-Role": "supplier"},
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_wrong_role_returns_403(
        self, async_client: AsyncClient, auth_headers, buyer
    ) -> None:
        response = await async_client.get(
            f"{ORDERS_URL}/manager/pending", headers=auth_headers(buyer)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "UNAUTHORIZED"


# ============================================================================
# Order Creation Tests
# ============================================================================


class TestCreateOrderEndpoint:
    """Test POST /orders/."""

    @pytest.mark.asyncio
    async def test_create_order_success(
        self, async_client: AsyncClient, auth_headers, buyer, product, stock_of
    ) -> None:
        response = await async_client.post(
            f"{ORDERS_URL}/",
            json=order_payload(product.id, quantity=3),
            headers=auth_headers(buyer),
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Order placed successfully"
        assert body["order"]["status"] == "pending"
        assert body["order"]["quantity"] == 3
        assert body["order"]["tracking"][0]["status"] == "Order Placed"
        assert await stock_of(product.id) == 7

    @pytest.mark.asyncio
    async def test_quantity_as_string(
        self, async_client: AsyncClient, auth_headers, buyer, product
    ) -> None:
        response = await async_client.post(
            f"{ORDERS_URL}/",
            json=order_payload(product.id, quantity="2"),
            headers=auth_headers(buyer),
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["order"]["quantity"] == 2

    @pytest.mark.asyncio
    async def test_missing_fields_returns_400(
        self, async_client: AsyncClient, auth_headers, buyer
    ) -> None:
        response = await async_client.post(
            f"{ORDERS_URL}/", json={"quantity": 1}, headers=auth_headers(buyer)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["message"].startswith("Missing required fields: product_id")

    @pytest.mark.asyncio
    async def test_invalid_quantity_returns_400(
        self, async_client: AsyncClient, auth_headers, buyer, product
    ) -> None:
        response = await async_client.post(
            f"{ORDERS_URL}/",
            json=order_payload(product.id, quantity="lots"),
            headers=auth_headers(buyer),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Invalid quantity"

    @pytest.mark.asyncio
    async def test_invalid_total_returns_400(
        self, async_client: AsyncClient, auth_headers, buyer, product, stock_of
    ) -> None:
        response = await async_client.post(
            f"{ORDERS_URL}/",
            json=order_payload(product.id, total_amount="lots"),
            headers=auth_headers(buyer),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["message"] == "Invalid total amount"
        assert await stock_of(product.id) == 10

    @pytest.mark.asyncio
    async def test_numeric_total_is_used(
        self, async_client: AsyncClient, auth_headers, buyer, product
    ) -> None:
        response = await async_client.post(
            f"{ORDERS_URL}/",
            json=order_payload(product.id, total_amount=25.5),
            headers=auth_headers(buyer),
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["order"]["total_amount"] == 25.5

    @pytest.mark.asyncio
    async def test_insufficient_stock_returns_400(
        self, async_client: AsyncClient, auth_headers, buyer, product, stock_of
    ) -> None:
        response = await async_client.post(
            f"{ORDERS_URL}/",
            json=order_payload(product.id, quantity=25),
            headers=auth_headers(buyer),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["error"] == "INSUFFICIENT_STOCK"
        assert body["message"] == "Only 10 units available in stock"
        assert await stock_of(product.id) == 10

    @pytest.mark.asyncio
    async def test_below_minimum_returns_400(
        self, async_client: AsyncClient, auth_headers, buyer, product_factory
    ) -> None:
        item = await product_factory(min_order=5)

        response = await async_client.post(
            f"{ORDERS_URL}/",
            json=order_payload(item.id, quantity=2),
            headers=auth_headers(buyer),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "BELOW_MINIMUM_ORDER"

    @pytest.mark.asyncio
    async def test_unknown_product_returns_404(
        self, async_client: AsyncClient, auth_headers, buyer
    ) -> None:
        response = await async_client.post(
            f"{ORDERS_URL}/",
            json=order_payload(uuid4()),
            headers=auth_headers(buyer),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["message"] == "Product not found"

    @pytest.mark.asyncio
    async def test_manager_cannot_place_order(
        self, async_client: AsyncClient, auth_headers, manager, product
    ) -> None:
        response = await async_client.post(
            f"{ORDERS_URL}/",
            json=order_payload(product.id),
            headers=auth_headers(manager),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


# ============================================================================
# Lifecycle Tests
# ============================================================================


class TestLifecycleEndpoints:
    """Test approve, reject, status, tracking and cancel routes."""

    @pytest.mark.asyncio
    async def test_approve_then_approve_again(
        self, async_client: AsyncClient, auth_headers, place, buyer, manager, product
    ) -> None:
        order = await place(buyer, product.id)

        first = await async_client.put(
            f"{ORDERS_URL}/{order['id']}/approve", headers=auth_headers(manager)
        )
        second = await async_client.put(
            f"{ORDERS_URL}/{order['id']}/approve", headers=auth_headers(manager)
        )

        assert first.status_code == status.HTTP_200_OK
        assert first.json()["order"]["status"] == "approved"
        assert second.status_code == status.HTTP_400_BAD_REQUEST
        body = second.json()
        assert body["success"] is False
        assert body["error"] == "INVALID_TRANSITION"
        assert body["message"] == "Order cannot be approved. Current status: approved"
        assert "request_id" in body

    @pytest.mark.asyncio
    async def test_reject_with_reason_restores_stock(
        self,
        async_client: AsyncClient,
        auth_headers,
        place,
        buyer,
        manager,
        product,
        stock_of,
    ) -> None:
        order = await place(buyer, product.id, quantity=4)

        response = await async_client.put(
            f"{ORDERS_URL}/{order['id']}/reject",
            json={"reason": "Size chart mismatch"},
            headers=auth_headers(manager),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["order"]["tracking"][-1]["note"] == "Size chart mismatch"
        assert await stock_of(product.id) == 10

    @pytest.mark.asyncio
    async def test_reject_without_body(
        self, async_client: AsyncClient, auth_headers, place, buyer, admin, product
    ) -> None:
        order = await place(buyer, product.id)

        response = await async_client.put(
            f"{ORDERS_URL}/{order['id']}/reject", headers=auth_headers(admin)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["order"]["status"] == "rejected"

    @pytest.mark.asyncio
    async def test_status_updates_through_delivery(
        self, async_client: AsyncClient, auth_headers, place, buyer, manager, product
    ) -> None:
        order = await place(buyer, product.id)
        url = f"{ORDERS_URL}/{order['id']}"

        await async_client.put(f"{url}/approve", headers=auth_headers(manager))
        for target in ("processing", "SHIPPED", "delivered"):
            response = await async_client.put(
                f"{url}/status",
                json={"status": target},
                headers=auth_headers(manager),
            )
            assert response.status_code == status.HTTP_200_OK, response.text

        assert response.json()["order"]["status"] == "delivered"

    @pytest.mark.asyncio
    async def test_status_skip_returns_400(
        self, async_client: AsyncClient, auth_headers, place, buyer, manager, product
    ) -> None:
        order = await place(buyer, product.id)

        response = await async_client.put(
            f"{ORDERS_URL}/{order['id']}/status",
            json={"status": "delivered"},
            headers=auth_headers(manager),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "INVALID_TRANSITION"

    @pytest.mark.asyncio
    async def test_status_required(
        self, async_client: AsyncClient, auth_headers, place, buyer, manager, product
    ) -> None:
        order = await place(buyer, product.id)

        response = await async_client.put(
            f"{ORDERS_URL}/{order['id']}/status",
            json={},
            headers=auth_headers(manager),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Status is required"

    @pytest.mark.asyncio
    async def test_add_tracking(
        self, async_client: AsyncClient, auth_headers, place, buyer, manager, product
    ) -> None:
        order = await place(buyer, product.id)

        response = await async_client.post(
            f"{ORDERS_URL}/{order['id']}/tracking",
            json={"status": "Quality checked", "location": "Faisalabad"},
            headers=auth_headers(manager),
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["message"] == "Tracking updated successfully"
        assert body["order"]["tracking"][-1]["location"] == "Faisalabad"

    @pytest.mark.asyncio
    async def test_owner_cancel(
        self,
        async_client: AsyncClient,
        auth_headers,
        place,
        buyer,
        product,
        stock_of,
    ) -> None:
        order = await place(buyer, product.id, quantity=6)

        response = await async_client.put(
            f"{ORDERS_URL}/{order['id']}/cancel", headers=auth_headers(buyer)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["order"]["status"] == "cancelled"
        assert await stock_of(product.id) == 10

    @pytest.mark.asyncio
    async def test_non_owner_cancel_returns_403(
        self, async_client: AsyncClient, auth_headers, place, buyer, other_buyer, product
    ) -> None:
        order = await place(buyer, product.id)

        response = await async_client.put(
            f"{ORDERS_URL}/{order['id']}/cancel", headers=auth_headers(other_buyer)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["message"] == "Not authorized to cancel this order"

    @pytest.mark.asyncio
    async def test_invalid_order_id_returns_400(
        self, async_client: AsyncClient, auth_headers, manager
    ) -> None:
        response = await async_client.put(
            f"{ORDERS_URL}/not-an-id/approve", headers=auth_headers(manager)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Invalid order ID"

    @pytest.mark.asyncio
    async def test_unknown_order_returns_404(
        self, async_client: AsyncClient, auth_headers, manager
    ) -> None:
        response = await async_client.get(
            f"{ORDERS_URL}/{uuid4()}", headers=auth_headers(manager)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["message"] == "Order not found"


# ============================================================================
# Listing Tests
# ============================================================================


class TestListingEndpoints:
    """Test the read routes."""

    @pytest.mark.asyncio
    async def test_my_orders(
        self, async_client: AsyncClient, auth_headers, place, buyer, other_buyer, product
    ) -> None:
        await place(buyer, product.id)
        await place(other_buyer, product.id)

        response = await async_client.get(
            f"{ORDERS_URL}/my-orders", headers=auth_headers(buyer)
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["count"] == 1
        assert body["orders"][0]["buyer_id"] == str(buyer.user_id)

    @pytest.mark.asyncio
    async def test_get_order_for_owner_and_other_buyer(
        self, async_client: AsyncClient, auth_headers, place, buyer, other_buyer, product
    ) -> None:
        order = await place(buyer, product.id)

        own = await async_client.get(
            f"{ORDERS_URL}/{order['id']}", headers=auth_headers(buyer)
        )
        other = await async_client.get(
            f"{ORDERS_URL}/{order['id']}", headers=auth_headers(other_buyer)
        )

        assert own.status_code == status.HTTP_200_OK
        assert other.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_admin_list_with_status_filter(
        self,
        async_client: AsyncClient,
        auth_headers,
        place,
        buyer,
        manager,
        admin,
        product,
    ) -> None:
        first = await place(buyer, product.id)
        await place(buyer, product.id)
        await async_client.put(
            f"{ORDERS_URL}/{first['id']}/approve", headers=auth_headers(manager)
        )

        response = await async_client.get(
            f"{ORDERS_URL}/admin/all",
            params={"status": "pending", "limit": 10},
            headers=auth_headers(admin),
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["total"] == 1
        assert body["count"] == 1
        assert body["limit"] == 10

    @pytest.mark.asyncio
    async def test_admin_list_forbidden_for_manager(
        self, async_client: AsyncClient, auth_headers, manager
    ) -> None:
        response = await async_client.get(
            f"{ORDERS_URL}/admin/all", headers=auth_headers(manager)
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_manager_queues(
        self, async_client: AsyncClient, auth_headers, place, buyer, manager, product
    ) -> None:
        first = await place(buyer, product.id)
        await place(buyer, product.id)
        await async_client.put(
            f"{ORDERS_URL}/{first['id']}/approve", headers=auth_headers(manager)
        )

        pending = await async_client.get(
            f"{ORDERS_URL}/manager/pending", headers=auth_headers(manager)
        )
        approved = await async_client.get(
            f"{ORDERS_URL}/manager/approved", headers=auth_headers(manager)
        )

        assert pending.json()["count"] == 1
        assert approved.json()["count"] == 1
        assert approved.json()["orders"][0]["id"] == first["id"]

    @pytest.mark.asyncio
    async def test_admin_stats(
        self, async_client: AsyncClient, auth_headers, place, buyer, admin, product
    ) -> None:
        await place(buyer, product.id, quantity=3)

        response = await async_client.get(
            f"{ORDERS_URL}/admin/stats", headers=auth_headers(admin)
        )

        assert response.status_code == status.HTTP_200_OK
        stats = response.json()["stats"]
        assert stats["total_orders"] == 1
        assert stats["total_revenue"] == 0.0
        assert stats["by_status"]["pending"] == {"count": 1, "revenue": 30.0}

    @pytest.mark.asyncio
    async def test_dashboard_stats(
        self, async_client: AsyncClient, auth_headers, place, buyer, product
    ) -> None:
        await place(buyer, product.id)

        response = await async_client.get(
            "/api/v1/dashboard/stats", headers=auth_headers(buyer)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["stats"] == {"total_products": 1, "total_orders": 1}
