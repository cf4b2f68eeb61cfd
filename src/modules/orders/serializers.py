"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.  Token strings are never serialized:
buyers receive them by e-mail only.
"""

from __future__ import annotations

from django.utils import timezone
from rest_framework import serializers

from modules.downloads.models import DownloadToken
from modules.orders.constants import MAX_ITEM_QUANTITY, OrderStatus, PaymentMethod, PaymentStatus
from modules.orders.models import Order, OrderItem
from modules.products.models import Product

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    """Validates a single item in an order creation request."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_ITEM_QUANTITY, default=1)


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload."""

    customer_email = serializers.EmailField()
    customer_name = serializers.CharField(max_length=200)
    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class UpdateOrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    payment_status = serializers.ChoiceField(choices=PaymentStatus.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class OrderLookupSerializer(serializers.Serializer):
    email = serializers.EmailField()


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for order items with the purchase-time snapshot."""

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "quantity",
            "unit_price",
            "subtotal",
        ]
        read_only_fields = fields


class DownloadSummarySerializer(serializers.ModelSerializer):
    """Entitlement usage without the bearer token."""

    product_name = serializers.CharField(source="product.name", read_only=True)
    state = serializers.SerializerMethodField()

    class Meta:
        model = DownloadToken
        fields = [
            "id",
            "product_id",
            "product_name",
            "download_count",
            "max_downloads",
            "expires_at",
            "last_downloaded_at",
            "state",
        ]
        read_only_fields = fields

    def get_state(self, obj: DownloadToken) -> str:
        return obj.state(timezone.now())


class OrderSerializer(serializers.ModelSerializer):
    """Customer-facing order representation."""

    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "order_number",
            "customer_email",
            "customer_name",
            "items",
            "subtotal",
            "tax",
            "total",
            "currency",
            "payment_method",
            "payment_status",
            "status",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields


class AdminOrderSerializer(OrderSerializer):
    """Staff order representation with payment details and download usage."""

    downloads = DownloadSummarySerializer(many=True, read_only=True)

    class Meta(OrderSerializer.Meta):
        fields = ["id"] + OrderSerializer.Meta.fields + [
            "transaction_reference",
            "provider_reference",
            "failure_reason",
            "notes",
            "ip_address",
            "user_agent",
            "downloads",
            "updated_at",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_email",
            "customer_name",
            "total",
            "currency",
            "payment_method",
            "payment_status",
            "status",
            "created_at",
        ]
        read_only_fields = fields


class TopProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ["id", "name", "category", "price", "sales_count"]
        read_only_fields = fields


class DashboardSerializer(serializers.Serializer):
    products = serializers.DictField(child=serializers.IntegerField())
    orders = serializers.DictField(child=serializers.IntegerField())
    revenue = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    recent_orders = OrderListSerializer(many=True)
    top_products = TopProductSerializer(many=True)
