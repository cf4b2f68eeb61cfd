"""Celery tasks for order e-mails."""

from __future__ import annotations

from smtplib import SMTPException

import structlog
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from modules.orders.repositories.django_repository import OrderDjangoRepository

logger = structlog.get_logger(__name__)


def download_url(token: str) -> str:
    return f"{settings.CLIENT_URL.rstrip('/')}/download/{token}"


def build_customer_message(order) -> tuple[str, str]:
    subject = f"Your {settings.STORE_NAME} order {order.order_number}"
    lines = [
        f"Hi {order.customer_name},",
        "",
        f"Thank you for your purchase. Order {order.order_number} is confirmed.",
        "",
    ]
    downloads = list(order.downloads.all())
    if downloads:
        lines.append("Your downloads:")
        for entitlement in downloads:
            lines.append(
                f"- {entitlement.product.name}: {download_url(entitlement.token)}"
                f" (up to {entitlement.max_downloads} downloads, valid until"
                f" {entitlement.expires_at:%Y-%m-%d %H:%M} UTC)"
            )
    else:
        lines.append("There are no files to download for this order.")
    lines += ["", f"Total paid: {order.total} {order.currency}", "", settings.STORE_NAME]
    return subject, "\n".join(lines)


def build_admin_message(order) -> tuple[str, str]:
    subject = f"New order {order.order_number} ({order.total} {order.currency})"
    items = "\n".join(
        f"- {item.product_name} x{item.quantity} = {item.subtotal}" for item in order.items.all()
    )
    body = (
        f"Customer: {order.customer_name} <{order.customer_email}>\n"
        f"Payment: {order.payment_method} ({order.transaction_reference})\n"
        f"Items:\n{items}\n"
    )
    return subject, body


@shared_task(
    name="notifications.send_order_confirmation",
    autoretry_for=(SMTPException, ConnectionError),
    retry_backoff=True,
    max_retries=3,
)
def send_order_confirmation(order_id: str) -> dict:
    """E-mail the customer their download links and notify the shop owner."""
    order = OrderDjangoRepository().get_by_id(order_id)
    if order is None:
        logger.warning("notification.order_missing", order_id=order_id)
        return {"sent": 0}

    subject, body = build_customer_message(order)
    send_mail(subject, body, None, [order.customer_email])
    sent = 1

    if settings.ADMIN_NOTIFICATION_EMAIL:
        subject, body = build_admin_message(order)
        send_mail(subject, body, None, [settings.ADMIN_NOTIFICATION_EMAIL])
        sent += 1

    logger.info("notification.sent", order_id=order_id, emails=sent)
    return {"sent": sent}
