from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

import pytest
from django.apps import apps
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.core.container import Collaborators
from modules.core.exceptions import StorageUnavailable
from modules.downloads.repositories.django_repository import DownloadTokenDjangoRepository
from modules.downloads.services import DownloadGate, EntitlementService
from modules.notifications.services import IOrderNotifier
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.models import Product, ProductFile, ProductStatus
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.storage.interfaces import IObjectStorage, StoredFile

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeStorage(IObjectStorage):
    """In-memory object store.  Set ``fail_sign`` / ``fail_put`` to simulate outages."""

    def __init__(self) -> None:
        self.objects = {}
        self.signed: List[str] = []
        self.deleted: List[str] = []
        self.fail_sign = False
        self.fail_put = set()
        self.on_sign = None

    def put_file(self, data: bytes, name: str, mime_type: str) -> StoredFile:
        if name in self.fail_put:
            raise StorageUnavailable(f"Upload of {name} failed.")
        key = f"products/{name}"
        self.objects[key] = data
        return StoredFile(
            storage_key=key, original_name=name, size_bytes=len(data), mime_type=mime_type
        )

    def get_signed_url(self, storage_key: str, ttl: timedelta, filename: Optional[str] = None) -> str:
        if self.fail_sign:
            raise StorageUnavailable("Could not sign download URL.")
        if self.on_sign is not None:
            self.on_sign()
        self.signed.append(storage_key)
        return f"https://storage.example.com/{storage_key}?expires={int(ttl.total_seconds())}"

    def delete_files(self, storage_keys: Iterable[str]) -> None:
        self.deleted.extend(storage_keys)


class FakeNotifier(IOrderNotifier):
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.notified: List[str] = []
        self.error = error

    def notify_order_confirmed(self, order) -> None:
        if self.error is not None:
            raise self.error
        self.notified.append(order.order_number)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def storage():
    return FakeStorage()


@pytest.fixture()
def notifier():
    return FakeNotifier()


@pytest.fixture(autouse=True)
def collaborators(monkeypatch, storage, notifier):
    """Replace the startup collaborators with fakes for every test."""
    fakes = Collaborators(storage=storage, notifier=notifier)
    monkeypatch.setattr(apps.get_app_config("core"), "collaborators", fakes)
    return fakes


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def staff_user():
    return get_user_model().objects.create_user(
        username="staff", password="staffpass123", is_staff=True
    )


@pytest.fixture()
def staff_client(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_repository():
    return OrderDjangoRepository()


@pytest.fixture()
def product_repository():
    return ProductDjangoRepository()


@pytest.fixture()
def token_repository():
    return DownloadTokenDjangoRepository()


@pytest.fixture()
def entitlement_service(order_repository, token_repository, product_repository):
    return EntitlementService(
        order_repository=order_repository,
        token_repository=token_repository,
        product_repository=product_repository,
    )


@pytest.fixture()
def order_service(order_repository, product_repository, entitlement_service, notifier):
    return OrderService(
        order_repository=order_repository,
        product_repository=product_repository,
        entitlement_service=entitlement_service,
        notifier=notifier,
    )


@pytest.fixture()
def gate(token_repository, product_repository, storage):
    return DownloadGate(
        token_repository=token_repository,
        product_repository=product_repository,
        storage=storage,
    )


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_product():
    counter = {"n": 0}

    def _make(files: int = 1, **overrides) -> Product:
        counter["n"] += 1
        fields = {
            "name": f"Sample Pack {counter['n']}",
            "description": "Royalty-free loops.",
            "price": Decimal("19.90"),
            "status": ProductStatus.ACTIVE,
        }
        fields.update(overrides)
        product = Product.objects.create(**fields)
        for index in range(files):
            ProductFile.objects.create(
                product=product,
                storage_key=f"products/{product.id}/part-{index}.zip",
                original_name=f"part-{index}.zip",
                size_bytes=1024 * (index + 1),
                mime_type="application/zip",
            )
        return product

    return _make


@pytest.fixture()
def make_order(order_service):
    def _make(products, email: str = "buyer@example.com", quantity: int = 1, method: str = "stripe"):
        return order_service.create_order(
            CreateOrderDTO(
                customer_email=email,
                customer_name="Ana Buyer",
                payment_method=method,
                items=[CreateOrderItemDTO(product_id=p.id, quantity=quantity) for p in products],
            )
        )

    return _make


@pytest.fixture()
def paid_order(make_product, make_order, order_service):
    """A confirmed order for one product with two files."""
    product = make_product(files=2)
    order = make_order([product])
    return order_service.mark_payment_confirmed(order.id, transaction_reference="pi_test_1")
