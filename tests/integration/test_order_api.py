"""Integration tests for the public order endpoints and the staff back office."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.orders.models import Order
from modules.products.models import ProductStatus

pytestmark = pytest.mark.integration


def _create_payload(*products, email="Buyer@Example.com", quantity=1):
    return {
        "customer_email": email,
        "customer_name": "Ana Buyer",
        "payment_method": "stripe",
        "items": [{"product_id": str(p.id), "quantity": quantity} for p in products],
    }


class TestCreateOrder:
    def test_creates_pending_order(self, api_client, make_product):
        product = make_product()

        response = api_client.post(
            "/api/v1/orders/",
            _create_payload(product, quantity=2),
            format="json",
            HTTP_USER_AGENT="pytest-agent",
        )

        assert response.status_code == 201
        data = response.json()
        assert data["order_number"].startswith("DS")
        assert data["customer_email"] == "buyer@example.com"
        assert data["payment_status"] == "pending"
        assert data["status"] == "pending"
        assert data["items"][0]["product_name"] == product.name
        assert data["items"][0]["quantity"] == 2
        assert "id" not in data
        assert "downloads" not in data

        order = Order.objects.get(order_number=data["order_number"])
        assert order.user_agent == "pytest-agent"

    def test_inactive_product_400(self, api_client, make_product):
        draft = make_product(status=ProductStatus.DRAFT)

        response = api_client.post("/api/v1/orders/", _create_payload(draft), format="json")

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_item"
        assert not Order.objects.exists()

    def test_unknown_product_400(self, api_client):
        payload = _create_payload()
        payload["items"] = [{"product_id": str(uuid4()), "quantity": 1}]

        response = api_client.post("/api/v1/orders/", payload, format="json")

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_item"

    def test_empty_items_400(self, api_client):
        response = api_client.post("/api/v1/orders/", _create_payload(), format="json")
        assert response.status_code == 400

    def test_bad_email_400(self, api_client, make_product):
        response = api_client.post(
            "/api/v1/orders/", _create_payload(make_product(), email="nope"), format="json"
        )
        assert response.status_code == 400

    def test_unknown_payment_method_400(self, api_client, make_product):
        payload = _create_payload(make_product())
        payload["payment_method"] = "cash"
        assert api_client.post("/api/v1/orders/", payload, format="json").status_code == 400

    def test_huge_quantity_400(self, api_client, make_product):
        response = api_client.post(
            "/api/v1/orders/", _create_payload(make_product(), quantity=10**12), format="json"
        )

        assert response.status_code == 400
        assert not Order.objects.exists()

    def test_total_too_large_400(self, api_client, make_product):
        pricey = make_product(price=Decimal("99999999.00"))

        response = api_client.post(
            "/api/v1/orders/", _create_payload(pricey, quantity=2), format="json"
        )

        assert response.status_code == 400
        assert response.json()["code"] == "order_amount_too_large"
        assert not Order.objects.exists()


class TestOrderLookup:
    def test_matching_email(self, api_client, paid_order):
        response = api_client.get(
            f"/api/v1/orders/{paid_order.order_number}/", {"email": "BUYER@example.com"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == "completed"
        token = paid_order.downloads.get().token
        assert token not in response.content.decode()

    def test_wrong_email_403(self, api_client, paid_order):
        response = api_client.get(
            f"/api/v1/orders/{paid_order.order_number}/", {"email": "someone@example.com"}
        )
        assert response.status_code == 403
        assert response.json()["code"] == "order_access_denied"

    def test_unknown_number_404(self, api_client):
        response = api_client.get("/api/v1/orders/DS-19990101-0000/", {"email": "a@example.com"})
        assert response.status_code == 404

    def test_email_required(self, api_client, paid_order):
        assert api_client.get(f"/api/v1/orders/{paid_order.order_number}/").status_code == 400


class TestAdminOrders:
    def test_requires_staff(self, api_client):
        assert api_client.get("/api/v1/admin/orders/").status_code == 401

    def test_list_and_filter(self, staff_client, make_product, make_order, paid_order):
        make_order([make_product()], email="other@example.com")

        everything = staff_client.get("/api/v1/admin/orders/").json()
        completed = staff_client.get("/api/v1/admin/orders/?payment_status=completed").json()

        assert everything["count"] == 2
        assert completed["count"] == 1
        assert completed["results"][0]["order_number"] == paid_order.order_number

    def test_retrieve_shows_download_usage_without_token(self, staff_client, paid_order):
        response = staff_client.get(f"/api/v1/admin/orders/{paid_order.id}/")

        assert response.status_code == 200
        data = response.json()
        assert data["transaction_reference"] == "pi_test_1"
        download = data["downloads"][0]
        assert download["download_count"] == 0
        assert download["max_downloads"] == 5
        assert download["state"] == "valid_unused"
        assert "token" not in download
        assert paid_order.downloads.get().token not in response.content.decode()

    def test_retrieve_unknown_404(self, staff_client):
        assert staff_client.get(f"/api/v1/admin/orders/{uuid4()}/").status_code == 404

    def test_manual_confirmation_issues_entitlements(self, staff_client, make_product, make_order):
        order = make_order([make_product(files=1)])

        response = staff_client.patch(
            f"/api/v1/admin/orders/{order.id}/", {"payment_status": "completed"}, format="json"
        )

        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == "completed"
        assert len(data["downloads"]) == 1

    def test_refund_requires_payment(self, staff_client, make_product, make_order):
        order = make_order([make_product()])

        response = staff_client.patch(
            f"/api/v1/admin/orders/{order.id}/", {"payment_status": "refunded"}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_status_update"

    def test_refund_paid_order(self, staff_client, paid_order):
        response = staff_client.patch(
            f"/api/v1/admin/orders/{paid_order.id}/",
            {"payment_status": "refunded", "notes": "Customer request"},
            format="json",
        )

        assert response.status_code == 200
        assert response.json()["payment_status"] == "refunded"
        assert response.json()["notes"] == "Customer request"

    def test_rejected_patch_leaves_order_untouched(self, staff_client, make_product, make_order):
        order = make_order([make_product()])

        response = staff_client.patch(
            f"/api/v1/admin/orders/{order.id}/",
            {"payment_status": "failed", "status": "completed"},
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_status_update"
        order.refresh_from_db()
        assert (order.payment_status, order.status) == ("pending", "pending")

    def test_cancelling_paid_order_400(self, staff_client, paid_order):
        response = staff_client.patch(
            f"/api/v1/admin/orders/{paid_order.id}/",
            {"payment_status": "completed", "status": "cancelled"},
            format="json",
        )

        assert response.status_code == 400
        paid_order.refresh_from_db()
        assert paid_order.status == "completed"


class TestDashboard:
    def test_summary(self, staff_client, paid_order, make_product, make_order):
        make_order([make_product()])

        response = staff_client.get("/api/v1/admin/dashboard/")

        assert response.status_code == 200
        data = response.json()
        assert data["orders"]["total"] == 2
        assert data["orders"]["completed"] == 1
        assert data["orders"]["pending"] == 1
        assert data["currency"] == "EUR"
        assert Decimal(data["revenue"]) == paid_order.total
        assert len(data["recent_orders"]) == 2

    def test_requires_staff(self, api_client):
        assert api_client.get("/api/v1/admin/dashboard/").status_code == 401
