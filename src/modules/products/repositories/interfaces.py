"""Product repository interface.

Extends ``IRepository[Product]`` with the catalog look-ups needed by
order creation (active products only), file management and the sales
counter bumped on payment confirmation.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product, ProductFile
    from modules.storage.interfaces import StoredFile


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Product]":
        """List non-deleted products with optional filters."""

    @abstractmethod
    def list_active(self) -> "models.QuerySet[Product]":
        """List the products visible in the public catalog."""

    @abstractmethod
    def get_active(self, id: str) -> Optional[Product]:
        """Retrieve a product only if it can currently be purchased."""

    @abstractmethod
    def delete(self, id: str) -> bool:
        """Soft-delete a product."""

    @abstractmethod
    def list_files(self, product_id: str) -> List[ProductFile]:
        """Return the product's files in upload order."""

    @abstractmethod
    def add_files(self, product: Product, stored: Sequence[StoredFile]) -> List[ProductFile]:
        """Attach uploaded objects to a product."""

    @abstractmethod
    def increment_sales(self, quantities: Iterable[tuple[str, int]]) -> None:
        """Add ``quantity`` to ``sales_count`` for each ``(product_id, quantity)``."""

    @abstractmethod
    def get_with_file_counts(self, ids: Sequence[str]) -> Dict[str, Product]:
        """Map id -> non-deleted product, each annotated with ``file_count``."""
