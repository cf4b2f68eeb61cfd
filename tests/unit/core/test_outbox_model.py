"""Unit tests for OutboxEvent.record() and the soft-delete base model.

Covers:
- Domain events are stored as PENDING rows with a JSON-safe payload.
- Decimal, UUID, datetime and tuple fields are normalised.
- Soft delete hides rows from ``alive()`` without removing them.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from modules.core.models import EventStatus, OutboxEvent
from modules.downloads.events import EntitlementsIssued
from modules.orders.events import OrderPlaced
from modules.products.models import Product

pytestmark = pytest.mark.unit


class TestOutboxRecord:
    def test_records_pending_event(self):
        aggregate_id = uuid.uuid4()

        row = OutboxEvent.record(
            OrderPlaced(
                aggregate_id=aggregate_id,
                order_number="DS26100001",
                total=Decimal("19.90"),
                payment_method="stripe",
            ),
            topic="orders",
        )
        row.refresh_from_db()

        assert row.event_type == "OrderPlaced"
        assert row.aggregate_id == str(aggregate_id)
        assert row.topic == "orders"
        assert row.status == EventStatus.PENDING
        assert row.processed_at is None
        assert row.id.version == 7
        assert row.payload["total"] == "19.90"
        assert row.payload["aggregate_id"] == str(aggregate_id)
        assert row.payload["event_name"] == "OrderPlaced"
        assert "T" in row.payload["occurred_on"]

    def test_tuples_become_lists(self):
        token_id = uuid.uuid4()

        row = OutboxEvent.record(
            EntitlementsIssued(
                aggregate_id=uuid.uuid4(), order_number="DS26100001", token_ids=(token_id,)
            ),
            topic="downloads",
        )
        row.refresh_from_db()

        assert row.payload["token_ids"] == [str(token_id)]
        assert row.payload["product_ids"] == []

    def test_str(self):
        row = OutboxEvent.record(OrderPlaced(aggregate_id=uuid.uuid4()), topic="orders")
        assert str(row).startswith("OrderPlaced [PENDING]")


class TestSoftDelete:
    def test_delete_hides_from_alive(self, make_product):
        product = make_product()

        product.delete()

        assert product.is_deleted
        assert not Product.objects.alive().filter(id=product.id).exists()
        assert Product.objects.filter(id=product.id).exists()

    def test_second_delete_is_noop(self, make_product):
        product = make_product()
        product.delete()
        assert product.delete() == (0, {})
