"""PayPal Orders v2 adapter over plain REST (``requests``).

Flow: ``create_checkout_handle`` creates a PayPal order whose purchase
unit carries our order id in ``custom_id``; the buyer approves it on
PayPal; the front end calls our capture endpoint, which calls
``capture``.  Webhooks are verified remotely with PayPal's
``verify-webhook-signature`` API before they are trusted.

The OAuth access token is cached in the Django cache until shortly
before it expires.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

import requests
import structlog
from django.core.cache import cache

from modules.core.exceptions import CollaboratorTimeout
from modules.payments.exceptions import InvalidWebhook, PaymentProviderError
from modules.payments.gateways.base import CheckoutHandle, PaymentNotification, PaymentOutcome

if TYPE_CHECKING:
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)

API_BASE = {
    "live": "https://api-m.paypal.com",
    "sandbox": "https://api-m.sandbox.paypal.com",
}
TOKEN_CACHE_KEY = "payments:paypal:access_token"
TOKEN_EXPIRY_MARGIN_SECONDS = 60

CAPTURE_COMPLETED = "PAYMENT.CAPTURE.COMPLETED"
CAPTURE_DENIED = "PAYMENT.CAPTURE.DENIED"

_SIGNATURE_HEADERS = {
    "auth_algo": "PAYPAL-AUTH-ALGO",
    "cert_url": "PAYPAL-CERT-URL",
    "transmission_id": "PAYPAL-TRANSMISSION-ID",
    "transmission_sig": "PAYPAL-TRANSMISSION-SIG",
    "transmission_time": "PAYPAL-TRANSMISSION-TIME",
}


class PayPalGateway:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        mode: str = "sandbox",
        webhook_id: str = "",
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = API_BASE["live" if mode == "live" else "sandbox"]
        self._webhook_id = webhook_id
        self._timeout = timeout
        self._session = session or requests.Session()

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _access_token(self) -> str:
        token = cache.get(TOKEN_CACHE_KEY)
        if token:
            return token
        data = self._send(
            "POST",
            "/v1/oauth2/token",
            auth=(self._client_id, self._client_secret),
            data={"grant_type": "client_credentials"},
            authenticated=False,
        )
        token = data["access_token"]
        ttl = max(int(data.get("expires_in", 0)) - TOKEN_EXPIRY_MARGIN_SECONDS, 1)
        cache.set(TOKEN_CACHE_KEY, token, ttl)
        return token

    def _send(self, method: str, path: str, authenticated: bool = True, **kwargs: Any) -> Dict:
        if authenticated:
            kwargs.setdefault("headers", {})["Authorization"] = f"Bearer {self._access_token()}"
        try:
            response = self._session.request(
                method, f"{self._base_url}{path}", timeout=self._timeout, **kwargs
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as exc:
            raise CollaboratorTimeout("PayPal did not respond in time.") from exc
        except requests.exceptions.RequestException as exc:
            logger.error("paypal.request_failed", path=path, error=str(exc))
            raise PaymentProviderError("PayPal request failed.") from exc
        return response.json()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create_checkout_handle(
        self, order: Order, success_url: str, cancel_url: str
    ) -> CheckoutHandle:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": order.order_number,
                    "custom_id": str(order.id),
                    "description": f"Order {order.order_number}",
                    "amount": {
                        "currency_code": order.currency,
                        "value": f"{order.total:.2f}",
                    },
                }
            ],
            "application_context": {
                "return_url": success_url,
                "cancel_url": cancel_url,
                "user_action": "PAY_NOW",
            },
        }
        data = self._send(
            "POST",
            "/v2/checkout/orders",
            json=body,
            headers={"PayPal-Request-Id": f"order-{order.id}"},
        )
        approve_url = next(
            (link["href"] for link in data.get("links", []) if link.get("rel") in ("approve", "payer-action")),
            "",
        )
        logger.info("paypal.order_created", order_id=str(order.id), paypal_order_id=data["id"])
        return CheckoutHandle(reference=data["id"], redirect_url=approve_url)

    def capture(self, paypal_order_id: str) -> PaymentNotification:
        """Capture an approved PayPal order."""
        data = self._send(
            "POST",
            f"/v2/checkout/orders/{paypal_order_id}/capture",
            json={},
            headers={"PayPal-Request-Id": f"capture-{paypal_order_id}"},
        )
        unit = (data.get("purchase_units") or [{}])[0]
        captures = (unit.get("payments") or {}).get("captures") or [{}]
        capture = captures[0]
        order_id = capture.get("custom_id") or unit.get("custom_id", "")
        status = data.get("status", "")
        logger.info("paypal.order_captured", paypal_order_id=paypal_order_id, status=status)
        return PaymentNotification(
            outcome=PaymentOutcome.CONFIRMED if status == "COMPLETED" else PaymentOutcome.PENDING,
            order_id=order_id,
            transaction_reference=capture.get("id", ""),
            provider_reference=paypal_order_id,
            provider_status=status,
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def parse_webhook(self, headers: Mapping[str, str], body: bytes) -> Optional[PaymentNotification]:
        """Verify a webhook with PayPal and translate it.

        ``None`` for event types we do not act on.
        """
        try:
            event = json.loads(body)
        except ValueError as exc:
            raise InvalidWebhook("Invalid webhook payload.") from exc
        if not self._webhook_id:
            raise InvalidWebhook("PayPal webhook id is not configured.")

        verification = {key: headers.get(header, "") for key, header in _SIGNATURE_HEADERS.items()}
        if not all(verification.values()):
            raise InvalidWebhook("Missing PayPal signature headers.")
        verification.update(webhook_id=self._webhook_id, webhook_event=event)

        result = self._send("POST", "/v1/notifications/verify-webhook-signature", json=verification)
        if result.get("verification_status") != "SUCCESS":
            raise InvalidWebhook("Webhook signature verification failed.")

        event_type = event.get("event_type", "")
        resource = event.get("resource") or {}
        related = (resource.get("supplementary_data") or {}).get("related_ids") or {}
        log = logger.bind(event_type=event_type, event_id=event.get("id"))

        if event_type not in (CAPTURE_COMPLETED, CAPTURE_DENIED):
            log.info("paypal.webhook_ignored")
            return None
        order_id = resource.get("custom_id")
        if not order_id:
            log.warning("paypal.webhook_without_order")
            return None

        if event_type == CAPTURE_COMPLETED:
            return PaymentNotification(
                outcome=PaymentOutcome.CONFIRMED,
                order_id=order_id,
                transaction_reference=resource.get("id", ""),
                provider_reference=related.get("order_id", ""),
                provider_status=resource.get("status", ""),
            )
        return PaymentNotification(
            outcome=PaymentOutcome.FAILED,
            order_id=order_id,
            provider_reference=related.get("order_id", ""),
            reason="PayPal capture denied",
            provider_status=resource.get("status", ""),
        )


def build_paypal_gateway(settings: Any) -> Optional[PayPalGateway]:
    """Return a configured gateway, or ``None`` without client credentials."""
    client_id = getattr(settings, "PAYPAL_CLIENT_ID", "")
    client_secret = getattr(settings, "PAYPAL_CLIENT_SECRET", "")
    if not (client_id and client_secret):
        logger.warning("paypal.not_configured")
        return None
    return PayPalGateway(
        client_id,
        client_secret,
        mode=getattr(settings, "PAYPAL_MODE", "sandbox"),
        webhook_id=getattr(settings, "PAYPAL_WEBHOOK_ID", ""),
        timeout=getattr(settings, "PAYMENT_PROVIDER_TIMEOUT_SECONDS", 30),
    )
