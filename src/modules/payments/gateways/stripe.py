"""Stripe Checkout adapter (``stripe`` SDK).

The order id travels in the session's ``client_reference_id`` and in the
metadata of both the session and its payment intent, so a
``payment_intent.payment_failed`` event can be tied back to the order
without a lookup on our side.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

import stripe
import structlog

from modules.core.exceptions import CollaboratorTimeout
from modules.payments.exceptions import InvalidWebhook, PaymentProviderError
from modules.payments.gateways.base import (
    CheckoutHandle,
    PaymentNotification,
    PaymentOutcome,
    to_minor_units,
)

if TYPE_CHECKING:
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
PAYMENT_FAILED = "payment_intent.payment_failed"


def _field(obj: Any, *path: str, default: Any = None) -> Any:
    for key in path:
        try:
            obj = obj[key]
        except (KeyError, TypeError, AttributeError):
            return default
        if obj is None:
            return default
    return obj


class StripeGateway:
    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self._api_key = api_key
        self._webhook_secret = webhook_secret

    def create_checkout_handle(
        self, order: Order, success_url: str, cancel_url: str
    ) -> CheckoutHandle:
        metadata = {"order_id": str(order.id), "order_number": order.order_number}
        line_items = [
            {
                "price_data": {
                    "currency": order.currency.lower(),
                    "product_data": {"name": item.product_name},
                    "unit_amount": to_minor_units(item.unit_price),
                },
                "quantity": item.quantity,
            }
            for item in order.items.all()
        ]
        try:
            session = stripe.checkout.Session.create(
                api_key=self._api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=line_items,
                customer_email=order.customer_email,
                client_reference_id=str(order.id),
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
                success_url=f"{success_url}&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=cancel_url,
                idempotency_key=f"checkout-{order.id}-{int(order.updated_at.timestamp())}",
            )
        except stripe.APIConnectionError as exc:
            raise CollaboratorTimeout("Stripe did not respond.") from exc
        except stripe.StripeError as exc:
            logger.error("stripe.checkout_failed", order_id=str(order.id), error=str(exc))
            raise PaymentProviderError("Stripe rejected the checkout request.") from exc

        logger.info("stripe.checkout_created", order_id=str(order.id), session_id=session["id"])
        return CheckoutHandle(reference=session["id"], redirect_url=session["url"])

    def parse_webhook(self, payload: bytes, signature: str) -> Optional[PaymentNotification]:
        """Verify and translate a webhook; ``None`` for events we ignore."""
        if not signature:
            raise InvalidWebhook("Missing Stripe-Signature header.")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except ValueError as exc:
            raise InvalidWebhook("Invalid webhook payload.") from exc
        except stripe.SignatureVerificationError as exc:
            raise InvalidWebhook("Webhook signature verification failed.") from exc

        event_type = event["type"]
        obj = event["data"]["object"]
        log = logger.bind(event_type=event_type, event_id=_field(event, "id"))

        if event_type == SESSION_COMPLETED:
            order_id = _field(obj, "client_reference_id") or _field(obj, "metadata", "order_id")
            if not order_id:
                log.warning("stripe.webhook_without_order")
                return None
            return PaymentNotification(
                outcome=PaymentOutcome.CONFIRMED,
                order_id=order_id,
                transaction_reference=_field(obj, "id", default=""),
                provider_reference=_field(obj, "payment_intent", default=""),
                provider_status=_field(obj, "payment_status", default=""),
            )

        if event_type == PAYMENT_FAILED:
            order_id = _field(obj, "metadata", "order_id")
            if not order_id:
                log.warning("stripe.webhook_without_order")
                return None
            return PaymentNotification(
                outcome=PaymentOutcome.FAILED,
                order_id=order_id,
                provider_reference=_field(obj, "id", default=""),
                reason=_field(obj, "last_payment_error", "message", default="Payment failed"),
            )

        log.info("stripe.webhook_ignored")
        return None


def build_stripe_gateway(settings: Any) -> Optional[StripeGateway]:
    """Return a configured gateway, or ``None`` without keys."""
    api_key = getattr(settings, "STRIPE_SECRET_KEY", "")
    webhook_secret = getattr(settings, "STRIPE_WEBHOOK_SECRET", "")
    if not (api_key and webhook_secret):
        logger.warning("stripe.not_configured")
        return None
    return StripeGateway(api_key, webhook_secret)
