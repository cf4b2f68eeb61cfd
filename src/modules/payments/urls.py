"""Payment URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.payments.views import (
    PayPalCaptureView,
    PayPalOrderView,
    PayPalWebhookView,
    StripeCheckoutView,
    StripeWebhookView,
)

urlpatterns = [
    path("payments/stripe/checkout/", StripeCheckoutView.as_view(), name="stripe-checkout"),
    path("payments/stripe/webhook/", StripeWebhookView.as_view(), name="stripe-webhook"),
    path("payments/paypal/orders/", PayPalOrderView.as_view(), name="paypal-order"),
    path("payments/paypal/capture/", PayPalCaptureView.as_view(), name="paypal-capture"),
    path("payments/paypal/webhook/", PayPalWebhookView.as_view(), name="paypal-webhook"),
]
