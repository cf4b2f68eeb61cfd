"""Provider-neutral payment types.

A gateway turns an order into a ``CheckoutHandle`` the browser can be
redirected to, and turns provider callbacks into ``PaymentNotification``
values.  The payment service is the only thing that acts on them.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum


class PaymentOutcome(str, Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    PENDING = "pending"


@dataclass(frozen=True)
class CheckoutHandle:
    reference: str
    redirect_url: str


@dataclass(frozen=True)
class PaymentNotification:
    outcome: PaymentOutcome
    order_id: str
    transaction_reference: str = ""
    provider_reference: str = ""
    reason: str = ""
    provider_status: str = ""


def to_minor_units(amount: Decimal) -> int:
    """``Decimal("9.99")`` -> ``999``."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
