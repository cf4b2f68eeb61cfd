"""Payment DRF serializers."""

from __future__ import annotations

from rest_framework import serializers


class BeginCheckoutSerializer(serializers.Serializer):
    """The buyer proves ownership of the order with its e-mail address."""

    order_number = serializers.CharField(max_length=20)
    email = serializers.EmailField()


class CapturePayPalSerializer(serializers.Serializer):
    paypal_order_id = serializers.CharField(max_length=64)


class CheckoutHandleSerializer(serializers.Serializer):
    reference = serializers.CharField()
    url = serializers.CharField(source="redirect_url")
