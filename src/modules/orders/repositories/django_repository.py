"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
All write operations are wrapped in ``transaction.atomic()`` to ensure
the Order aggregate (Order + OrderItems) is persisted atomically, and
pending domain events are written to the outbox in the same transaction.

Concurrency control on the payment path uses ``select_for_update()``
on the order row.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q, QuerySet, Sum

from modules.core.models import OutboxEvent
from modules.orders.constants import OUTBOX_TOPIC, PaymentStatus
from modules.orders.models import Order, OrderItem
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_ORDER_FIELDS = (
    "customer_email",
    "customer_name",
    "payment_method",
    "currency",
    "subtotal",
    "tax",
    "total",
    "notes",
    "ip_address",
    "user_agent",
)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically."""
        order = Order(**{field: data[field] for field in _ORDER_FIELDS if field in data})
        order.save()

        items = data.get("items", [])
        for item_data in items:
            OrderItem(
                order=order,
                product_id=item_data["product_id"],
                product_name=item_data["product_name"],
                quantity=item_data["quantity"],
                unit_price=item_data["unit_price"],
            ).save()

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            order_number=order.order_number,
            item_count=len(items),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _base_queryset(self) -> QuerySet[Order]:
        return Order.objects.alive().prefetch_related("items", "downloads__product")

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return self._base_queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Eager-loads items so the caller can iterate over them while the
        row is locked.  Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.select_for_update()
                .filter(id=id, deleted_at__isnull=True)
                .prefetch_related("items")
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_by_number(self, order_number: str) -> Optional[Order]:
        return (
            self._base_queryset()
            .filter(order_number=(order_number or "").strip().upper())
            .first()
        )

    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet[Order]:
        """List orders with optional filters and eager-loaded relations.

        Supported filter keys are any Order look-ups, e.g.:
        - ``payment_status``
        - ``customer_email``
        - ``created_at__range``
        """
        queryset = self._base_queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def aggregate_stats(self) -> Dict[str, Any]:
        stats = Order.objects.alive().aggregate(
            total=Count("id"),
            completed=Count("id", filter=Q(payment_status=PaymentStatus.COMPLETED)),
            pending=Count("id", filter=Q(payment_status=PaymentStatus.PENDING)),
            failed=Count("id", filter=Q(payment_status=PaymentStatus.FAILED)),
            refunded=Count("id", filter=Q(payment_status=PaymentStatus.REFUNDED)),
            revenue=Sum("total", filter=Q(payment_status=PaymentStatus.COMPLETED)),
        )
        stats["revenue"] = stats["revenue"] or Decimal("0.00")
        return stats

    # ------------------------------------------------------------------
    # Save (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and drain its domain events into the outbox."""
        entity.save()

        events = entity.pull_domain_events()
        for event in events:
            OutboxEvent.record(event, topic=OUTBOX_TOPIC)

        logger.info("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity
