"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderPlaced(DomainEvent):
    """Raised when an order is created."""

    order_number: str = ""
    total: Decimal = Decimal("0.00")
    payment_method: str = ""


@dataclass(frozen=True)
class PaymentConfirmed(DomainEvent):
    """Raised the first time an order's payment is confirmed."""

    transaction_reference: str = ""


@dataclass(frozen=True)
class PaymentFailed(DomainEvent):
    """Raised when a pending order's payment fails."""

    reason: str = ""


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when staff change an order's status by hand."""

    old_status: str = ""
    new_status: str = ""
    old_payment_status: str = ""
    new_payment_status: str = ""
