"""Order notification adapter.

``OrderService`` calls ``notify_order_confirmed`` after the confirmation
transaction commits.  The e-mail adapter only enqueues a Celery task, so
a slow or broken mail server never holds up the payment callback.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)


class IOrderNotifier(ABC):
    @abstractmethod
    def notify_order_confirmed(self, order: Order) -> None:
        """Tell the customer (and the shop owner) that *order* is paid."""


class EmailOrderNotifier(IOrderNotifier):
    def notify_order_confirmed(self, order: Order) -> None:
        from modules.notifications.tasks import send_order_confirmation

        send_order_confirmation.delay(str(order.id))
        logger.info("notification.enqueued", order_id=str(order.id))
