"""Payment flow exceptions.

Provider timeouts surface as ``modules.core.exceptions.CollaboratorTimeout``.
"""

from __future__ import annotations


class PaymentError(Exception):
    """Base class for payment errors."""

    code = "payment_error"


class PaymentProviderUnavailable(PaymentError):
    """The requested provider is not configured."""

    code = "payment_provider_unavailable"


class PaymentProviderError(PaymentError):
    """The provider rejected or failed a request."""

    code = "payment_provider_error"


class OrderAlreadyPaid(PaymentError):
    """A checkout was requested for an order that is already paid."""

    code = "order_already_paid"


class InvalidWebhook(PaymentError):
    """A webhook failed signature verification or could not be parsed."""

    code = "invalid_webhook"
