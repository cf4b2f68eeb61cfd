"""Order and OrderItem models.

Business rules implemented:
- ``total == subtotal + tax``, fixed at creation time.
- OrderItem snapshots product name and price at creation time, so later
  catalog edits never change a historical order.
- OrderItem subtotal is always ``quantity * unit_price`` (calculated on save).
- Order number auto-generated as ``<prefix><YY><MM><digits>``; collisions
  are retried and the random suffix widens once the retry budget is spent.
  A unique constraint backs the check.
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel) is never
  used by the normal flow.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel, SoftDeleteModel
from modules.orders.constants import (
    ORDER_NUMBER_DIGITS,
    ORDER_NUMBER_MAX_RETRIES,
    ORDER_NUMBER_WIDE_DIGITS,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


class Order(DomainEventMixin, SoftDeleteModel):
    """Order aggregate root.

    ``order_number`` is the human-readable identifier shown to customers;
    the UUIDv7 ``id`` is used for all internal references and admin
    lookups.  Download tokens hang off the order as ``order.downloads``.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    customer_email: models.EmailField = models.EmailField()
    customer_name: models.CharField = models.CharField(max_length=200)
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    tax: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    total: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    currency: models.CharField = models.CharField(max_length=3, default="EUR")
    payment_method: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
    )
    payment_status: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    transaction_reference: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    provider_reference: models.CharField = models.CharField(
        max_length=255, blank=True, default="", db_index=True
    )
    paid_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    failure_reason: models.TextField = models.TextField(blank=True, default="")
    notes: models.TextField = models.TextField(blank=True, default="")
    ip_address: models.GenericIPAddressField = models.GenericIPAddressField(
        null=True, blank=True
    )
    user_agent: models.CharField = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["payment_status"], name="orders_payment_status_idx"),
            models.Index(fields=["customer_email"], name="orders_email_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(total__gte=0),
                name="orders_total_non_negative",
            ),
        ]

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number(digits: int = ORDER_NUMBER_DIGITS) -> str:
        """Generate a human-readable order number, e.g. ``DS26104821``."""
        now = timezone.now()
        prefix = getattr(settings, "ORDER_NUMBER_PREFIX", "DS")
        suffix = secrets.randbelow(10**digits)
        return f"{prefix}{now:%y%m}{suffix:0{digits}d}"

    def _assign_order_number(self) -> None:
        for digits in (ORDER_NUMBER_DIGITS, ORDER_NUMBER_WIDE_DIGITS):
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number(digits)
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    return
            logger.warning("order.number_space_crowded", digits=digits)
        raise RuntimeError(
            f"Failed to generate unique order_number after "
            f"{2 * ORDER_NUMBER_MAX_RETRIES} attempts"
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            self._assign_order_number()
        self.customer_email = (self.customer_email or "").strip().lower()
        self.currency = (self.currency or "").upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.payment_status}/{self.status})"


class OrderItem(BaseModel):
    """Line item linking an Order to a Product.

    ``product_name`` and ``unit_price`` are **snapshots** of the catalog at
    the time of purchase.  ``subtotal`` is always ``quantity * unit_price``,
    recalculated on every save.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product: models.ForeignKey = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    product_name: models.CharField = models.CharField(max_length=200)
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        editable=False,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        if self.unit_price is None:
            raise ValidationError({"unit_price": "Unit price snapshot is required."})
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity} ({self.subtotal})"
