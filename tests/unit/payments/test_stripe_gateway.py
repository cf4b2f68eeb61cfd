"""Unit tests for the Stripe adapter (SDK calls mocked)."""

from __future__ import annotations

from decimal import Decimal
from unittest import mock

import pytest
import stripe

from modules.core.exceptions import CollaboratorTimeout
from modules.payments.exceptions import InvalidWebhook, PaymentProviderError
from modules.payments.gateways.base import PaymentOutcome, to_minor_units
from modules.payments.gateways.stripe import StripeGateway, build_stripe_gateway

pytestmark = pytest.mark.unit

SESSION_CREATE = "modules.payments.gateways.stripe.stripe.checkout.Session.create"
CONSTRUCT_EVENT = "modules.payments.gateways.stripe.stripe.Webhook.construct_event"


@pytest.fixture()
def gateway():
    return StripeGateway(api_key="sk_test_123", webhook_secret="whsec_123")


@pytest.fixture()
def order(make_order, make_product):
    return make_order([make_product(price=Decimal("19.90"), name="Loop Pack")], quantity=2)


class TestMinorUnits:
    @pytest.mark.parametrize(
        "amount, expected",
        [(Decimal("19.90"), 1990), (Decimal("0.00"), 0), (Decimal("0.005"), 1)],
    )
    def test_conversion(self, amount, expected):
        assert to_minor_units(amount) == expected


class TestCreateCheckoutHandle:
    def test_creates_session(self, gateway, order):
        with mock.patch(
            SESSION_CREATE,
            return_value={"id": "cs_test_1", "url": "https://checkout.stripe.com/c/cs_test_1"},
        ) as create:
            handle = gateway.create_checkout_handle(
                order, "https://shop.example.com/ok?order=1", "https://shop.example.com/cancel"
            )

        assert handle.reference == "cs_test_1"
        assert handle.redirect_url == "https://checkout.stripe.com/c/cs_test_1"
        kwargs = create.call_args.kwargs
        assert kwargs["api_key"] == "sk_test_123"
        assert kwargs["client_reference_id"] == str(order.id)
        assert kwargs["metadata"]["order_id"] == str(order.id)
        assert kwargs["payment_intent_data"]["metadata"]["order_id"] == str(order.id)
        assert kwargs["customer_email"] == order.customer_email
        assert kwargs["line_items"] == [
            {
                "price_data": {
                    "currency": "eur",
                    "product_data": {"name": "Loop Pack"},
                    "unit_amount": 1990,
                },
                "quantity": 2,
            }
        ]
        assert kwargs["success_url"].endswith("&session_id={CHECKOUT_SESSION_ID}")
        assert kwargs["idempotency_key"].startswith(f"checkout-{order.id}-")

    def test_connection_error_is_timeout(self, gateway, order):
        with mock.patch(SESSION_CREATE, side_effect=stripe.APIConnectionError("network")):
            with pytest.raises(CollaboratorTimeout):
                gateway.create_checkout_handle(order, "https://x/?a=1", "https://x/")

    def test_api_error_is_provider_error(self, gateway, order):
        with mock.patch(SESSION_CREATE, side_effect=stripe.InvalidRequestError("bad", "amount")):
            with pytest.raises(PaymentProviderError):
                gateway.create_checkout_handle(order, "https://x/?a=1", "https://x/")


class TestParseWebhook:
    def _event(self, event_type, obj):
        return {"id": "evt_1", "type": event_type, "data": {"object": obj}}

    def test_session_completed(self, gateway):
        event = self._event(
            "checkout.session.completed",
            {
                "id": "cs_1",
                "client_reference_id": "order-1",
                "payment_intent": "pi_1",
                "payment_status": "paid",
            },
        )
        with mock.patch(CONSTRUCT_EVENT, return_value=event) as construct:
            notification = gateway.parse_webhook(b"{}", "t=1,v1=abc")

        construct.assert_called_once_with(b"{}", "t=1,v1=abc", "whsec_123")
        assert notification.outcome == PaymentOutcome.CONFIRMED
        assert notification.order_id == "order-1"
        assert notification.transaction_reference == "cs_1"
        assert notification.provider_reference == "pi_1"

    def test_session_completed_falls_back_to_metadata(self, gateway):
        event = self._event(
            "checkout.session.completed", {"id": "cs_1", "metadata": {"order_id": "order-2"}}
        )
        with mock.patch(CONSTRUCT_EVENT, return_value=event):
            assert gateway.parse_webhook(b"{}", "sig").order_id == "order-2"

    def test_payment_failed(self, gateway):
        event = self._event(
            "payment_intent.payment_failed",
            {
                "id": "pi_9",
                "metadata": {"order_id": "order-3"},
                "last_payment_error": {"message": "Your card was declined."},
            },
        )
        with mock.patch(CONSTRUCT_EVENT, return_value=event):
            notification = gateway.parse_webhook(b"{}", "sig")

        assert notification.outcome == PaymentOutcome.FAILED
        assert notification.order_id == "order-3"
        assert notification.reason == "Your card was declined."

    def test_other_events_ignored(self, gateway):
        with mock.patch(CONSTRUCT_EVENT, return_value=self._event("charge.refunded", {})):
            assert gateway.parse_webhook(b"{}", "sig") is None

    def test_event_without_order_ignored(self, gateway):
        event = self._event("checkout.session.completed", {"id": "cs_1"})
        with mock.patch(CONSTRUCT_EVENT, return_value=event):
            assert gateway.parse_webhook(b"{}", "sig") is None

    def test_missing_signature(self, gateway):
        with pytest.raises(InvalidWebhook):
            gateway.parse_webhook(b"{}", "")

    def test_bad_signature(self, gateway):
        error = stripe.SignatureVerificationError("mismatch", "sig")
        with mock.patch(CONSTRUCT_EVENT, side_effect=error):
            with pytest.raises(InvalidWebhook):
                gateway.parse_webhook(b"{}", "sig")

    def test_bad_payload(self, gateway):
        with mock.patch(CONSTRUCT_EVENT, side_effect=ValueError("not json")):
            with pytest.raises(InvalidWebhook):
                gateway.parse_webhook(b"nope", "sig")


class TestBuild:
    def test_requires_both_keys(self, settings):
        settings.STRIPE_SECRET_KEY = "sk_test"
        settings.STRIPE_WEBHOOK_SECRET = ""
        assert build_stripe_gateway(settings) is None

    def test_builds_when_configured(self, settings):
        settings.STRIPE_SECRET_KEY = "sk_test"
        settings.STRIPE_WEBHOOK_SECRET = "whsec"
        assert isinstance(build_stripe_gateway(settings), StripeGateway)
