"""Payment API views.

Checkout endpoints are public and keyed by order number plus e-mail, the
same proof of ownership the order lookup uses.  Webhook endpoints carry
no DRF authentication: the provider signature is the credential, and the
raw request body is handed to the gateway untouched.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.exceptions import CollaboratorTimeout
from modules.core.responses import error_body, error_response
from modules.orders.constants import PaymentMethod
from modules.orders.exceptions import OrderAccessDenied, OrderError, OrderNotFound
from modules.orders.services import build_order_service
from modules.payments.exceptions import (
    InvalidWebhook,
    OrderAlreadyPaid,
    PaymentError,
    PaymentProviderError,
    PaymentProviderUnavailable,
)
from modules.payments.serializers import (
    BeginCheckoutSerializer,
    CapturePayPalSerializer,
    CheckoutHandleSerializer,
)
from modules.payments.services import build_payment_service

PAYMENT_ERROR_STATUS = {
    PaymentProviderUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    PaymentProviderError: status.HTTP_502_BAD_GATEWAY,
    OrderAlreadyPaid: status.HTTP_409_CONFLICT,
    InvalidWebhook: status.HTTP_400_BAD_REQUEST,
    PaymentError: status.HTTP_400_BAD_REQUEST,
    OrderNotFound: status.HTTP_404_NOT_FOUND,
    OrderAccessDenied: status.HTTP_403_FORBIDDEN,
    OrderError: status.HTTP_400_BAD_REQUEST,
}

_PAYMENT_ERRORS = (PaymentError, OrderError, CollaboratorTimeout)


class _CheckoutView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_scope = "checkout"
    provider: str = ""

    def post(self, request: Request) -> Response:
        serializer = BeginCheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = build_order_service().get_by_number(data["order_number"], data["email"])
            handle = build_payment_service().begin_checkout(self.provider, order.id)
        except _PAYMENT_ERRORS as exc:
            return error_response(exc, PAYMENT_ERROR_STATUS)
        return Response(CheckoutHandleSerializer(handle).data, status=status.HTTP_201_CREATED)


class StripeCheckoutView(_CheckoutView):
    """POST /api/v1/payments/stripe/checkout/"""

    provider = PaymentMethod.STRIPE


class PayPalOrderView(_CheckoutView):
    """POST /api/v1/payments/paypal/orders/"""

    provider = PaymentMethod.PAYPAL


class PayPalCaptureView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_scope = "checkout"

    def post(self, request: Request) -> Response:
        """POST /api/v1/payments/paypal/capture/"""
        serializer = CapturePayPalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = build_payment_service().capture_paypal_order(
                serializer.validated_data["paypal_order_id"]
            )
        except _PAYMENT_ERRORS as exc:
            return error_response(exc, PAYMENT_ERROR_STATUS)

        if order is None:
            return Response(
                error_body("Order not found.", OrderNotFound.code),
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(
            {
                "order_number": order.order_number,
                "payment_status": order.payment_status,
                "status": order.status,
            }
        )


class _WebhookView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = []


class StripeWebhookView(_WebhookView):
    def post(self, request: Request) -> Response:
        """POST /api/v1/payments/stripe/webhook/"""
        try:
            build_payment_service().handle_stripe_webhook(
                request.body, request.headers.get("Stripe-Signature", "")
            )
        except _PAYMENT_ERRORS as exc:
            return error_response(exc, PAYMENT_ERROR_STATUS)
        return Response({"received": True})


class PayPalWebhookView(_WebhookView):
    def post(self, request: Request) -> Response:
        """POST /api/v1/payments/paypal/webhook/"""
        try:
            build_payment_service().handle_paypal_webhook(request.headers, request.body)
        except _PAYMENT_ERRORS as exc:
            return error_response(exc, PAYMENT_ERROR_STATUS)
        return Response({"received": True})
