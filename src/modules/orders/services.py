"""Order service layer (Use Cases).

Orchestrates the order ledger: creation with price snapshots, the
payment confirmation / failure transitions and the staff tools.  All write
operations are atomic: the service defines the unit-of-work boundary.

Business rules enforced:
- Only active, non-deleted products can be ordered (``InvalidItem``).
- ``total == subtotal + tax``; names and prices are snapshotted.
- Confirmation happens once: it locks the order row, flips it to
  ``completed/completed`` and issues entitlements in the same transaction.
  Replayed confirmations are no-ops.
- A failed payment never downgrades a completed order.
- The confirmation e-mail is sent after commit and can never undo a
  confirmation.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.orders.constants import (
    CONFIRMABLE_PAYMENT_STATES,
    MAX_ORDER_AMOUNT,
    OrderStatus,
    PaymentStatus,
)
from modules.orders.events import (
    OrderPlaced,
    OrderStatusChanged,
    PaymentConfirmed,
    PaymentFailed,
)
from modules.orders.exceptions import (
    InvalidItem,
    InvalidStatusUpdate,
    OrderAccessDenied,
    OrderAmountTooLarge,
    OrderNotFound,
)
from modules.orders.tax import NoTaxCalculator
from modules.products.models import ProductStatus

if TYPE_CHECKING:
    from modules.downloads.services import EntitlementService
    from modules.notifications.services import IOrderNotifier
    from modules.orders.dtos import CreateOrderDTO, UpdateOrderStatusDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.orders.tax import TaxCalculator
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)

DASHBOARD_RECENT_ORDERS = 5
DASHBOARD_TOP_PRODUCTS = 5


class OrderService:
    """Application service for Order use-cases.

    Receives repositories and collaborators via constructor injection (DIP).
    ``notifier`` may be ``None``: confirmations then send no e-mail.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        entitlement_service: EntitlementService,
        notifier: Optional[IOrderNotifier] = None,
        tax_calculator: Optional[TaxCalculator] = None,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._entitlements = entitlement_service
        self._notifier = notifier
        self._tax = tax_calculator or NoTaxCalculator()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Create a pending order priced from the current catalog.

        Raises:
            InvalidItem: a product is unknown, deleted or not active.
            OrderAmountTooLarge: the total exceeds what an order can hold.
        """
        log = logger.bind(payment_method=dto.payment_method, item_count=len(dto.items))
        log.info("order.creation_started")

        lines = []
        subtotal = Decimal("0.00")
        for item_dto in dto.items:
            product = self._product_repo.get_active(str(item_dto.product_id))
            if not product:
                log.warning("order.invalid_item", product_id=str(item_dto.product_id))
                raise InvalidItem(
                    f"Product {item_dto.product_id} does not exist or is not available."
                )
            lines.append(
                {
                    "product_id": product.id,
                    "product_name": product.name,
                    "quantity": item_dto.quantity,
                    "unit_price": product.price,
                }
            )
            subtotal += product.price * item_dto.quantity

        tax = self._tax.calculate(subtotal, lines)
        if subtotal + tax > MAX_ORDER_AMOUNT:
            log.warning("order.amount_too_large")
            raise OrderAmountTooLarge(
                f"Order total cannot exceed {MAX_ORDER_AMOUNT} {settings.STORE_CURRENCY}."
            )
        order = self._order_repo.create(
            {
                "customer_email": dto.customer_email,
                "customer_name": dto.customer_name,
                "payment_method": dto.payment_method,
                "currency": settings.STORE_CURRENCY,
                "subtotal": subtotal,
                "tax": tax,
                "total": subtotal + tax,
                "notes": dto.notes or "",
                "ip_address": dto.ip_address,
                "user_agent": (dto.user_agent or "")[:500],
                "items": lines,
            }
        )

        order.add_domain_event(
            OrderPlaced(
                aggregate_id=order.id,
                order_number=order.order_number,
                total=order.total,
                payment_method=order.payment_method,
            )
        )
        self._order_repo.save(order)

        log.info("order.created", order_id=str(order.id), order_number=order.order_number)
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def mark_payment_confirmed(
        self,
        order_id: UUID | str,
        transaction_reference: str,
        provider_reference: str = "",
    ) -> Order:
        """Record a confirmed payment and issue the order's entitlements.

        Acquires a row-level lock (``SELECT FOR UPDATE``) on the order so
        concurrent provider callbacks serialise; the second one sees a
        completed order and returns without changes.

        Raises:
            OrderNotFound: order does not exist.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(order_id=str(order.id), order_number=order.order_number)

        if order.payment_status not in CONFIRMABLE_PAYMENT_STATES:
            if order.payment_status == PaymentStatus.REFUNDED:
                log.warning("order.confirmation_ignored", payment_status=order.payment_status)
            else:
                log.info("order.already_confirmed")
            return self._order_repo.get_by_id(str(order.id))

        order.payment_status = PaymentStatus.COMPLETED
        order.status = OrderStatus.COMPLETED
        order.transaction_reference = transaction_reference or ""
        if provider_reference:
            order.provider_reference = provider_reference
        order.paid_at = timezone.now()
        order.failure_reason = ""
        order.add_domain_event(
            PaymentConfirmed(
                aggregate_id=order.id,
                transaction_reference=order.transaction_reference,
            )
        )
        self._order_repo.save(order)

        self._entitlements.issue_entitlements(order.id)
        self._product_repo.increment_sales(
            (str(item.product_id), item.quantity) for item in order.items.all()
        )
        log.info("order.payment_confirmed")

        confirmed_id = str(order.id)
        transaction.on_commit(lambda: self._notify_confirmed(confirmed_id))
        return self._order_repo.get_by_id(confirmed_id)

    @transaction.atomic
    def mark_payment_failed(self, order_id: UUID | str, reason: str = "") -> Order:
        """Record a failed payment: ``failed/cancelled``, no entitlements.

        Repeated failures are no-ops and a completed order is left alone.

        Raises:
            OrderNotFound: order does not exist.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(order_id=str(order.id), order_number=order.order_number)

        if order.payment_status != PaymentStatus.PENDING:
            if order.payment_status == PaymentStatus.FAILED:
                log.info("order.already_failed")
            else:
                log.warning("order.failure_ignored", payment_status=order.payment_status)
            return self._order_repo.get_by_id(str(order.id))

        order.payment_status = PaymentStatus.FAILED
        order.status = OrderStatus.CANCELLED
        order.failure_reason = reason or ""
        order.add_domain_event(PaymentFailed(aggregate_id=order.id, reason=order.failure_reason))
        self._order_repo.save(order)

        log.info("order.payment_failed", reason=order.failure_reason)
        return self._order_repo.get_by_id(str(order.id))

    @transaction.atomic
    def attach_payment_reference(
        self, order_id: UUID | str, payment_method: str, provider_reference: str
    ) -> Order:
        """Remember the provider's checkout id (Stripe session, PayPal order).

        Raises:
            OrderNotFound: order does not exist.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        order.payment_method = payment_method
        order.provider_reference = provider_reference
        self._order_repo.save(order)
        logger.info(
            "order.payment_reference_attached",
            order_id=str(order.id),
            payment_method=payment_method,
        )
        return order

    @transaction.atomic
    def update_status(self, order_id: UUID | str, dto: UpdateOrderStatusDTO) -> Order:
        """Staff status change, applied as a whole or not at all.

        Setting ``payment_status=completed`` goes through
        ``mark_payment_confirmed`` so entitlements are issued, and
        ``payment_status=failed`` goes through ``mark_payment_failed``.
        A rejected combination rolls those payment changes back too.

        Raises:
            OrderNotFound: order does not exist.
            InvalidStatusUpdate: the change would break the payment lifecycle.
        """
        if dto.payment_status == PaymentStatus.COMPLETED:
            self.mark_payment_confirmed(order_id, transaction_reference="manual")
        elif dto.payment_status == PaymentStatus.FAILED:
            self.mark_payment_failed(order_id, reason=dto.notes or "Marked as failed by staff")

        return self._apply_manual_status(order_id, dto)

    def _apply_manual_status(self, order_id: UUID | str, dto: UpdateOrderStatusDTO) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(order_id=str(order.id), order_number=order.order_number)
        old_status, old_payment_status = order.status, order.payment_status

        if dto.payment_status == PaymentStatus.REFUNDED:
            if order.payment_status not in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
                raise InvalidStatusUpdate("Only paid orders can be refunded.")
            order.payment_status = PaymentStatus.REFUNDED
        elif dto.payment_status == PaymentStatus.PENDING and order.payment_status != PaymentStatus.PENDING:
            raise InvalidStatusUpdate("A processed payment cannot be reset to pending.")

        if dto.status is not None:
            if dto.status == OrderStatus.COMPLETED and not order.is_paid:
                raise InvalidStatusUpdate("Unpaid orders cannot be completed.")
            if dto.status == OrderStatus.CANCELLED and order.is_paid:
                raise InvalidStatusUpdate("Paid orders cannot be cancelled; refund them first.")
            order.status = dto.status
        if dto.notes is not None:
            order.notes = dto.notes

        if (order.status, order.payment_status) != (old_status, old_payment_status):
            order.add_domain_event(
                OrderStatusChanged(
                    aggregate_id=order.id,
                    old_status=old_status,
                    new_status=order.status,
                    old_payment_status=old_payment_status,
                    new_payment_status=order.payment_status,
                )
            )
        self._order_repo.save(order)
        log.info(
            "order.status_updated",
            status=order.status,
            payment_status=order.payment_status,
        )
        return self._order_repo.get_by_id(str(order.id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: UUID | str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def get_by_number(self, order_number: str, email: str) -> Order:
        """Public lookup: the caller must know the order's e-mail address.

        Raises:
            OrderNotFound: no order with this number.
            OrderAccessDenied: *email* does not match the order.
        """
        order = self._order_repo.get_by_number(order_number)
        if not order:
            raise OrderNotFound(f"Order {order_number} not found.")
        if order.customer_email != (email or "").strip().lower():
            logger.warning("order.lookup_denied", order_id=str(order.id))
            raise OrderAccessDenied("E-mail does not match this order.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None):
        """Return orders, optionally filtered."""
        return self._order_repo.list(filters)

    def dashboard_stats(self) -> Dict[str, Any]:
        """Back-office summary: catalog size, order counts, revenue, bests."""
        products = self._product_repo.list()
        orders = self._order_repo.aggregate_stats()
        return {
            "products": {
                "total": products.count(),
                "active": products.filter(status=ProductStatus.ACTIVE).count(),
            },
            "orders": {
                key: orders[key]
                for key in ("total", "completed", "pending", "failed", "refunded")
            },
            "revenue": orders["revenue"],
            "currency": settings.STORE_CURRENCY,
            "recent_orders": list(self._order_repo.list()[:DASHBOARD_RECENT_ORDERS]),
            "top_products": list(
                products.filter(sales_count__gt=0).order_by("-sales_count", "name")[
                    :DASHBOARD_TOP_PRODUCTS
                ]
            ),
        }

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _notify_confirmed(self, order_id: str) -> None:
        """Send the confirmation e-mail; failures are logged, never raised."""
        if self._notifier is None:
            logger.info("order.notification_skipped", order_id=order_id)
            return
        try:
            order = self._order_repo.get_by_id(order_id)
            self._notifier.notify_order_confirmed(order)
        except Exception:
            logger.exception("order.notification_failed", order_id=order_id)
        else:
            logger.info("order.notification_sent", order_id=order_id)


def build_order_service() -> OrderService:
    """Wire ``OrderService`` with the ORM repositories and startup collaborators."""
    from modules.core.container import get_collaborators
    from modules.downloads.repositories.django_repository import (
        DownloadTokenDjangoRepository,
    )
    from modules.downloads.services import EntitlementService
    from modules.orders.repositories.django_repository import OrderDjangoRepository
    from modules.products.repositories.django_repository import ProductDjangoRepository

    order_repo = OrderDjangoRepository()
    product_repo = ProductDjangoRepository()
    return OrderService(
        order_repository=order_repo,
        product_repository=product_repo,
        entitlement_service=EntitlementService(
            order_repository=order_repo,
            token_repository=DownloadTokenDjangoRepository(),
            product_repository=product_repo,
        ),
        notifier=get_collaborators().notifier,
    )
