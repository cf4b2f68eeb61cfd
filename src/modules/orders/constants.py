"""Order domain constants.

Payment status and lifecycle status move together: an order is created
``pending/pending`` and the payment path moves it, once, to either
``completed/completed`` or ``failed/cancelled``.
"""

from decimal import Decimal

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class PaymentMethod(models.TextChoices):
    STRIPE = "stripe", "Stripe"
    PAYPAL = "paypal", "PayPal"


# Payment statuses from which a confirmation is accepted.
CONFIRMABLE_PAYMENT_STATES: set[str] = {PaymentStatus.PENDING, PaymentStatus.FAILED}

ORDER_NUMBER_DIGITS = 4
ORDER_NUMBER_WIDE_DIGITS = 6
ORDER_NUMBER_MAX_RETRIES = 5

OUTBOX_TOPIC = "orders"

MAX_ITEM_QUANTITY = 1000
# Largest amount the 10-digit, 2-decimal money columns can hold.
MAX_ORDER_AMOUNT = Decimal("99999999.99")
