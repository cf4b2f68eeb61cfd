"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: input for a single order line item.
- ``CreateOrderDTO``: input for order creation (nested items).
- ``UpdateOrderStatusDTO``: staff status change.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from modules.orders.constants import MAX_ITEM_QUANTITY, OrderStatus, PaymentMethod, PaymentStatus

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """Immutable DTO for a single order item in a creation request.

    The frontend sends ``product_id`` and ``quantity``.
    ``unit_price`` and ``product_name`` are resolved by the Service Layer
    from the product catalog.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int = 1

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_in_range(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        if v > MAX_ITEM_QUANTITY:
            raise ValueError(f"Quantity cannot exceed {MAX_ITEM_QUANTITY}.")
        return v


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - ``customer_email`` is a well-formed address (stored lower-cased).
    - ``items`` must contain at least one item.
    - Each item quantity must be positive.
    """

    model_config = ConfigDict(frozen=True)

    customer_email: str
    customer_name: str
    items: List[CreateOrderItemDTO]
    payment_method: PaymentMethod
    notes: Optional[str] = ""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = ""

    @field_validator("customer_email")
    @classmethod
    def email_must_be_valid(cls, v: str) -> str:
        value = (v or "").strip().lower()
        try:
            validate_email(value)
        except DjangoValidationError as exc:
            raise ValueError("Enter a valid e-mail address.") from exc
        return value

    @field_validator("customer_name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Customer name must not be empty.")
        return v.strip()

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v


class UpdateOrderStatusDTO(BaseModel):
    """Staff update of an order's lifecycle and/or payment status."""

    model_config = ConfigDict(frozen=True)

    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def something_must_change(self):
        if self.status is None and self.payment_status is None and self.notes is None:
            raise ValueError("Provide 'status', 'payment_status' or 'notes'.")
        return self
