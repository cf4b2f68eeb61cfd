"""Product service layer (Use Cases).

Orchestrates business logic for the Product aggregate, delegating
persistence to the injected ``IProductRepository`` and file bytes to the
injected ``IObjectStorage``.

Business rules enforced here:
- Price cannot be negative (validated by DTO).
- Soft delete via repository; stored objects are removed best effort.
- Partial upload failures are tolerated; a batch where every file fails
  is an error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import structlog
from django.db import transaction

from modules.core.exceptions import (
    CollaboratorTimeout,
    StorageNotConfigured,
    StorageUnavailable,
)
from modules.products.exceptions import FileUploadFailed, NoFilesUploaded, ProductNotFound
from modules.products.models import Product, ProductFile

if TYPE_CHECKING:
    from modules.products.dtos import CreateProductDTO, FileUploadDTO, UpdateProductDTO
    from modules.products.repositories.interfaces import IProductRepository
    from modules.storage.interfaces import IObjectStorage

logger = structlog.get_logger(__name__)


class ProductService:
    """Application service for Product use-cases.

    Receives an ``IProductRepository`` and an optional ``IObjectStorage``
    via constructor injection (DIP).
    """

    def __init__(
        self,
        repository: IProductRepository,
        storage: Optional[IObjectStorage] = None,
    ) -> None:
        self._repo = repository
        self._storage = storage

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_product(self, dto: CreateProductDTO) -> Product:
        product = Product(**dto.model_dump())
        product = self._repo.save(product)
        logger.info("product.created", product_id=str(product.id), status=product.status)
        return product

    @transaction.atomic
    def update_product(self, id: str, dto: UpdateProductDTO) -> Product:
        """Update an existing product with the supplied fields.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        product = self.get_product(id)
        changes = dto.changes()
        for field, value in changes.items():
            setattr(product, field, value)

        product = self._repo.save(product)
        logger.info("product.updated", product_id=str(id), fields=sorted(changes))
        return product

    def delete_product(self, id: str) -> None:
        """Soft-delete a product and drop its stored objects.

        Storage cleanup happens after the row is deleted and never fails
        the request: orphaned objects are logged.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        product = self.get_product(id)
        keys = [f.storage_key for f in self._repo.list_files(str(product.id))]
        self._repo.delete(str(product.id))

        if not keys:
            return
        log = logger.bind(product_id=str(id), files=len(keys))
        if self._storage is None:
            log.warning("product.files_not_deleted", reason="storage_not_configured")
            return
        try:
            self._storage.delete_files(keys)
        except (StorageUnavailable, CollaboratorTimeout) as exc:
            log.warning("product.files_not_deleted", error=str(exc))
        else:
            log.info("product.files_deleted")

    def upload_files(self, id: str, uploads: Sequence[FileUploadDTO]) -> List[ProductFile]:
        """Store *uploads* and attach them to the product.

        Raises:
            ProductNotFound: if the product does not exist.
            NoFilesUploaded: if *uploads* is empty.
            StorageNotConfigured: if no storage adapter is configured.
            FileUploadFailed: if every file failed to upload.
        """
        product = self.get_product(id)
        if not uploads:
            raise NoFilesUploaded("No files were uploaded.")
        if self._storage is None:
            raise StorageNotConfigured("File storage is not configured.")

        log = logger.bind(product_id=str(id))
        stored = []
        for upload in uploads:
            try:
                stored.append(self._storage.put_file(upload.data, upload.name, upload.mime_type))
            except (StorageUnavailable, CollaboratorTimeout) as exc:
                log.warning("product.file_upload_skipped", filename=upload.name, error=str(exc))

        if not stored:
            raise FileUploadFailed("None of the files could be uploaded.")

        files = self._repo.add_files(product, stored)
        log.info("product.files_uploaded", uploaded=len(files), requested=len(uploads))
        return files

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_products(self, filters: Optional[Dict[str, Any]] = None):
        """Return non-deleted products, optionally filtered."""
        return self._repo.list(filters)

    def list_catalog(self):
        """Return the products visible to shoppers."""
        return self._repo.list_active()

    def get_product(self, id: str) -> Product:
        """Retrieve a single product by ID.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        product = self._repo.get_by_id(id)
        if not product:
            raise ProductNotFound(f"Product {id} not found.")
        return product

    def get_catalog_product(self, id: str) -> Product:
        """Retrieve a product only if it is publicly listed.

        Raises:
            ProductNotFound: if the product is missing, deleted or not active.
        """
        product = self._repo.get_active(id)
        if not product:
            raise ProductNotFound(f"Product {id} not found.")
        return product
