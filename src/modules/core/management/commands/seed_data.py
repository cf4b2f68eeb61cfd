from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from modules.downloads.repositories.django_repository import DownloadTokenDjangoRepository
from modules.downloads.services import EntitlementService
from modules.orders.constants import PaymentMethod
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.models import Product, ProductCategory, ProductFile, ProductStatus
from modules.products.repositories.django_repository import ProductDjangoRepository

CATALOG = [
    ("Lo-fi Sample Pack", ProductCategory.AUDIO, Decimal("19.90"), "1.2 GB"),
    ("Cinematic Drums", ProductCategory.AUDIO, Decimal("29.00"), "850 MB"),
    ("Mixing Masterclass", ProductCategory.COURSE, Decimal("89.00"), "6h 30min"),
    ("Intro to Synthesis", ProductCategory.COURSE, Decimal("49.00"), "3h"),
    ("Home Studio Handbook", ProductCategory.PDF, Decimal("12.50"), "140 pages"),
    ("Music Theory Cheatsheets", ProductCategory.PDF, Decimal("0.00"), "24 pages"),
    ("Live Session Recording", ProductCategory.VIDEO, Decimal("9.90"), "1h 15min"),
    ("Producer Starter Bundle", ProductCategory.BUNDLE, Decimal("99.00"), ""),
]

CUSTOMERS = [
    ("Ana Souza", "ana@example.com"),
    ("Bruno Lima", "bruno@example.com"),
    ("Carla Mendes", "carla@example.com"),
    ("Daniel Costa", "daniel@example.com"),
    ("Helena Ferreira", "helena@example.com"),
]


class Command(BaseCommand):
    help = "Seed database with a development catalog and sample orders."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=15)

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        products = self._seed_products()
        orders_created, paid = self._seed_orders(products, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"products={len(products)}, "
                f"orders={orders_created}, "
                f"paid={paid}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        return created

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        for name, category, price, duration in CATALOG:
            product, created = Product.objects.get_or_create(
                name=name,
                defaults={
                    "description": f"{name} for producers and sound designers.",
                    "short_description": name,
                    "price": price,
                    "category": category,
                    "duration": duration,
                    "status": ProductStatus.ACTIVE,
                    "tags": [category.value],
                },
            )
            if created:
                slug = name.lower().replace(" ", "-")
                ProductFile.objects.create(
                    product=product,
                    storage_key=f"products/{product.id}/{slug}.zip",
                    original_name=f"{slug}.zip",
                    size_bytes=random.randint(1, 500) * 1024 * 1024,
                    mime_type="application/zip",
                )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_orders(self, products: list[Product], count: int) -> tuple[int, int]:
        self.stdout.write("Creating orders...")
        if not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no products)."))
            return 0, 0

        order_repo = OrderDjangoRepository()
        product_repo = ProductDjangoRepository()
        # No notifier: seeding never sends e-mail.
        service = OrderService(
            order_repository=order_repo,
            product_repository=product_repo,
            entitlement_service=EntitlementService(
                order_repository=order_repo,
                token_repository=DownloadTokenDjangoRepository(),
                product_repository=product_repo,
            ),
        )

        created = paid = 0
        for i in range(count):
            name, email = random.choice(CUSTOMERS)
            chosen = random.sample(products, k=random.randint(1, 3))
            with transaction.atomic():
                order = service.create_order(
                    CreateOrderDTO(
                        customer_email=email,
                        customer_name=name,
                        payment_method=random.choice(list(PaymentMethod)).value,
                        items=[CreateOrderItemDTO(product_id=p.id, quantity=1) for p in chosen],
                        notes=f"Seed order {i + 1}",
                    )
                )
                outcome = random.random()
                if outcome < 0.6:
                    service.mark_payment_confirmed(order.id, transaction_reference=f"seed-{i + 1}")
                    paid += 1
                elif outcome < 0.8:
                    service.mark_payment_failed(order.id, reason="Card declined (seed)")
            created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return created, paid
