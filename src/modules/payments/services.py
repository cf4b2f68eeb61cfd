"""Payment service layer (Use Cases).

Sits between the provider gateways and the order ledger.  Gateways only
translate provider traffic into ``PaymentNotification`` values; this
service decides what the order ledger does with them.

Business rules enforced:
- An unconfigured provider answers ``PaymentProviderUnavailable``.
- A paid (or refunded) order cannot start another checkout.
- Provider callbacks for unknown orders are logged and acknowledged, so
  the provider stops retrying them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Optional
from urllib.parse import urlencode
from uuid import UUID

import structlog
from django.conf import settings

from modules.orders.constants import PaymentMethod, PaymentStatus
from modules.orders.exceptions import OrderNotFound
from modules.payments.exceptions import OrderAlreadyPaid, PaymentProviderUnavailable
from modules.payments.gateways.base import CheckoutHandle, PaymentNotification, PaymentOutcome

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.services import OrderService
    from modules.payments.gateways.paypal import PayPalGateway
    from modules.payments.gateways.stripe import StripeGateway

logger = structlog.get_logger(__name__)

_PAID_STATES = (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED)


class PaymentService:
    """Application service for checkout and provider callbacks.

    Either gateway may be ``None`` when the provider is not configured.
    """

    def __init__(
        self,
        order_service: OrderService,
        stripe: Optional[StripeGateway] = None,
        paypal: Optional[PayPalGateway] = None,
    ) -> None:
        self._orders = order_service
        self._gateways = {PaymentMethod.STRIPE.value: stripe, PaymentMethod.PAYPAL.value: paypal}

    def _gateway(self, provider: str):
        gateway = self._gateways.get(str(provider))
        if gateway is None:
            logger.warning("payment.provider_unavailable", provider=provider)
            raise PaymentProviderUnavailable(f"Payment provider '{provider}' is not configured.")
        return gateway

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def begin_checkout(self, provider: str, order_id: UUID | str) -> CheckoutHandle:
        """Open a provider checkout for an unpaid order.

        Raises:
            PaymentProviderUnavailable: *provider* is not configured.
            OrderNotFound: order does not exist.
            OrderAlreadyPaid: the order is completed or refunded.
            PaymentProviderError / CollaboratorTimeout: provider failure.
        """
        gateway = self._gateway(provider)
        order = self._orders.get_order(order_id)
        log = logger.bind(provider=provider, order_id=str(order.id))

        if order.payment_status in _PAID_STATES:
            log.info("payment.checkout_rejected", payment_status=order.payment_status)
            raise OrderAlreadyPaid(f"Order {order.order_number} is already paid.")

        handle = gateway.create_checkout_handle(
            order,
            success_url=self._client_url("checkout/success", order),
            cancel_url=self._client_url("checkout/cancel", order),
        )
        self._orders.attach_payment_reference(order.id, provider, handle.reference)
        log.info("payment.checkout_started", reference=handle.reference)
        return handle

    @staticmethod
    def _client_url(path: str, order: Order) -> str:
        query = urlencode({"order": order.order_number, "email": order.customer_email})
        return f"{settings.CLIENT_URL.rstrip('/')}/{path}?{query}"

    # ------------------------------------------------------------------
    # Provider callbacks
    # ------------------------------------------------------------------

    def handle_stripe_webhook(self, payload: bytes, signature: str) -> Optional[Order]:
        """Verify and apply a Stripe webhook.

        Raises:
            PaymentProviderUnavailable: Stripe is not configured.
            InvalidWebhook: the signature or payload is invalid.
        """
        notification = self._gateway(PaymentMethod.STRIPE).parse_webhook(payload, signature)
        return self._apply(PaymentMethod.STRIPE, notification)

    def capture_paypal_order(self, paypal_order_id: str) -> Optional[Order]:
        """Capture an approved PayPal order and apply the result."""
        notification = self._gateway(PaymentMethod.PAYPAL).capture(paypal_order_id)
        return self._apply(PaymentMethod.PAYPAL, notification)

    def handle_paypal_webhook(self, headers: Mapping[str, str], body: bytes) -> Optional[Order]:
        notification = self._gateway(PaymentMethod.PAYPAL).parse_webhook(headers, body)
        return self._apply(PaymentMethod.PAYPAL, notification)

    def _apply(self, provider: str, notification: Optional[PaymentNotification]) -> Optional[Order]:
        if notification is None:
            return None

        log = logger.bind(
            provider=provider,
            order_id=notification.order_id,
            outcome=notification.outcome.value,
        )
        try:
            if notification.outcome == PaymentOutcome.CONFIRMED:
                order = self._orders.mark_payment_confirmed(
                    notification.order_id,
                    transaction_reference=notification.transaction_reference,
                    provider_reference=notification.provider_reference,
                )
            elif notification.outcome == PaymentOutcome.FAILED:
                order = self._orders.mark_payment_failed(
                    notification.order_id, reason=notification.reason
                )
            else:
                log.info("payment.still_pending", provider_status=notification.provider_status)
                return self._orders.get_order(notification.order_id)
        except OrderNotFound:
            log.warning("payment.unknown_order")
            return None

        log.info("payment.notification_applied", payment_status=order.payment_status)
        return order


def build_payment_service() -> PaymentService:
    """Wire ``PaymentService`` with the startup gateways."""
    from modules.core.container import get_collaborators
    from modules.orders.services import build_order_service

    collaborators = get_collaborators()
    return PaymentService(
        order_service=build_order_service(),
        stripe=collaborators.stripe,
        paypal=collaborators.paypal,
    )
