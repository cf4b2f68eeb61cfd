"""Django ORM implementation of the Product repository.

Satisfies ``IProductRepository`` using Django's QuerySet API.
Error handling follows the Null Object pattern: methods return ``None``
instead of raising HTTP-level exceptions: the Service Layer decides
how to translate a missing entity into an API response.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, F, QuerySet

from modules.products.models import Product, ProductFile, ProductStatus
from modules.products.repositories.interfaces import IProductRepository
from modules.storage.interfaces import StoredFile

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Retrieve a non-deleted product by primary key.

        Returns ``None`` for non-existent, deleted or invalid IDs.
        """
        try:
            return Product.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_active(self, id: str) -> Optional[Product]:
        try:
            return self.list_active().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet[Product]:
        """List products with optional Django ORM look-ups.

        Examples of valid filters::

            {"status": "active"}
            {"category": "course"}
        """
        queryset = Product.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def list_active(self) -> QuerySet[Product]:
        return Product.objects.alive().filter(status=ProductStatus.ACTIVE)

    @transaction.atomic
    def save(self, entity: Product) -> Product:
        """Persist (create or update) a product."""
        entity.save()
        logger.info("product.saved", product_id=str(entity.id))
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Soft-delete a product by ID.

        Returns ``True`` if the product was found and soft-deleted,
        ``False`` if no product exists with the given ID.
        """
        product = self.get_by_id(id)
        if not product:
            return False
        product.delete()
        logger.info("product.soft_deleted", product_id=str(id))
        return True

    def list_files(self, product_id: str) -> List[ProductFile]:
        return list(ProductFile.objects.filter(product_id=product_id).order_by("created_at", "id"))

    @transaction.atomic
    def add_files(self, product: Product, stored: Sequence[StoredFile]) -> List[ProductFile]:
        # Saved one by one so created_at preserves upload order.
        files = []
        for item in stored:
            files.append(
                ProductFile.objects.create(
                    product=product,
                    storage_key=item.storage_key,
                    original_name=item.original_name,
                    size_bytes=item.size_bytes,
                    mime_type=item.mime_type,
                )
            )
        return files

    def increment_sales(self, quantities: Iterable[tuple[str, int]]) -> None:
        for product_id, quantity in quantities:
            Product.objects.filter(id=product_id).update(
                sales_count=F("sales_count") + quantity
            )

    def get_with_file_counts(self, ids: Sequence[str]) -> Dict[str, Product]:
        products = Product.objects.alive().filter(id__in=ids).annotate(file_count=Count("files"))
        return {str(p.id): p for p in products}
