"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations


class OrderError(Exception):
    """Base class for order ledger errors."""

    code = "order_error"


class InvalidItem(OrderError):
    """A line item references an unknown, deleted or inactive product."""

    code = "invalid_item"


class OrderNotFound(OrderError):
    """The requested order does not exist."""

    code = "order_not_found"


class OrderAccessDenied(OrderError):
    """The e-mail supplied for a public order lookup does not match."""

    code = "order_access_denied"


class InvalidStatusUpdate(OrderError):
    """A staff status update would break the payment lifecycle."""

    code = "invalid_status_update"


class OrderAmountTooLarge(OrderError):
    """The order total does not fit the ledger's money columns."""

    code = "order_amount_too_large"
