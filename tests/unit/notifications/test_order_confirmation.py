"""Unit tests for the order confirmation e-mail task and notifier."""

from __future__ import annotations

from unittest import mock
from uuid import uuid4

import pytest
from django.core import mail

from modules.notifications.services import EmailOrderNotifier
from modules.notifications.tasks import download_url, send_order_confirmation

pytestmark = pytest.mark.unit


class TestSendOrderConfirmation:
    def test_customer_receives_download_links(self, paid_order):
        result = send_order_confirmation(str(paid_order.id))

        assert result == {"sent": 2}
        customer, owner = mail.outbox
        token = paid_order.downloads.get()
        assert customer.to == [paid_order.customer_email]
        assert paid_order.order_number in customer.subject
        assert download_url(token.token) in customer.body
        assert "up to 5 downloads" in customer.body
        assert owner.to == ["owner@example.com"]
        assert paid_order.customer_email in owner.body
        assert token.token not in owner.body

    def test_order_without_files(self, make_product, make_order, order_service):
        order = make_order([make_product(files=0)])
        order_service.mark_payment_confirmed(order.id, transaction_reference="cs_1")

        send_order_confirmation(str(order.id))

        assert "no files to download" in mail.outbox[0].body

    def test_no_owner_address(self, paid_order, settings):
        settings.ADMIN_NOTIFICATION_EMAIL = ""
        assert send_order_confirmation(str(paid_order.id)) == {"sent": 1}

    def test_unknown_order(self):
        assert send_order_confirmation(str(uuid4())) == {"sent": 0}
        assert mail.outbox == []

    def test_download_url_uses_client_url(self, settings):
        settings.CLIENT_URL = "https://shop.example.com/"
        assert download_url("abc") == "https://shop.example.com/download/abc"


class TestEmailOrderNotifier:
    def test_enqueues_task(self, paid_order):
        with mock.patch("modules.notifications.tasks.send_order_confirmation.delay") as delay:
            EmailOrderNotifier().notify_order_confirmed(paid_order)
        delay.assert_called_once_with(str(paid_order.id))

    def test_eager_send_through_confirmation(
        self, order_repository, product_repository, entitlement_service, make_product,
        django_capture_on_commit_callbacks,
    ):
        from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
        from modules.orders.services import OrderService

        service = OrderService(
            order_repository=order_repository,
            product_repository=product_repository,
            entitlement_service=entitlement_service,
            notifier=EmailOrderNotifier(),
        )
        order = service.create_order(
            CreateOrderDTO(
                customer_email="fan@example.com",
                customer_name="Fan",
                payment_method="stripe",
                items=[CreateOrderItemDTO(product_id=make_product().id)],
            )
        )

        with django_capture_on_commit_callbacks(execute=True):
            service.mark_payment_confirmed(order.id, transaction_reference="cs_1")

        assert [m.to for m in mail.outbox] == [["fan@example.com"], ["owner@example.com"]]

    def test_mail_failure_never_undoes_confirmation(
        self, order_repository, product_repository, entitlement_service, make_product,
        django_capture_on_commit_callbacks,
    ):
        from smtplib import SMTPException

        from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
        from modules.orders.services import OrderService

        service = OrderService(
            order_repository=order_repository,
            product_repository=product_repository,
            entitlement_service=entitlement_service,
            notifier=EmailOrderNotifier(),
        )
        order = service.create_order(
            CreateOrderDTO(
                customer_email="fan@example.com",
                customer_name="Fan",
                payment_method="stripe",
                items=[CreateOrderItemDTO(product_id=make_product().id)],
            )
        )

        with mock.patch(
            "modules.notifications.tasks.send_mail", side_effect=SMTPException("relay down")
        ):
            with django_capture_on_commit_callbacks(execute=True):
                confirmed = service.mark_payment_confirmed(order.id, transaction_reference="cs_1")

        assert confirmed.is_paid
        assert service.get_order(order.id).downloads.count() == 1
