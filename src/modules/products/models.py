"""Product catalog models.

Business rules implemented:
- Only ``active`` products can be ordered (enforced at order creation).
- Price cannot be negative (free products are allowed).
- ``download_limit`` / ``download_expiry_hours`` configure the entitlement
  minted for each purchase; ``None`` falls back to the store defaults.
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel) keeps
  historical orders pointing at a real row.
"""

from __future__ import annotations

from decimal import Decimal

import structlog

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel, SoftDeleteModel

logger = structlog.get_logger(__name__)


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    DRAFT = "draft", "Draft"


class ProductCategory(models.TextChoices):
    AUDIO = "audio", "Audio"
    COURSE = "course", "Course"
    PDF = "pdf", "PDF"
    VIDEO = "video", "Video"
    BUNDLE = "bundle", "Bundle"


class Product(SoftDeleteModel):
    """Digital product aggregate root.

    Files live in ``ProductFile`` rows and are only ever exposed to buyers
    through the download gate.
    """

    name = models.CharField(max_length=200)
    description = models.TextField(max_length=2000)
    short_description = models.CharField(max_length=300, blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    category = models.CharField(
        max_length=20,
        choices=ProductCategory.choices,
        default=ProductCategory.AUDIO,
    )
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.DRAFT,
    )
    features = models.JSONField(default=list, blank=True)
    tags = models.JSONField(default=list, blank=True)
    duration = models.CharField(max_length=50, blank=True, default="")
    download_limit = models.PositiveIntegerField(null=True, blank=True)
    download_expiry_hours = models.PositiveIntegerField(null=True, blank=True)
    sales_count = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "products"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "-created_at"], name="products_status_idx"),
            models.Index(fields=["category"], name="products_category_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(price__gte=0),
                name="products_price_non_negative",
            ),
        ]

    @property
    def is_purchasable(self) -> bool:
        return self.status == ProductStatus.ACTIVE and not self.is_deleted

    def clean(self) -> None:
        super().clean()
        if self.price is not None and self.price < 0:
            raise ValidationError({"price": "Price cannot be negative."})

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product_created",
                product_id=str(self.id),
                name=self.name,
                status=self.status,
            )

    def __str__(self) -> str:
        return f"{self.name} ({self.category})"


class ProductFile(BaseModel):
    """A deliverable file stored in object storage.

    Files are ordered by upload time; a file's position in that order is
    the ``file_index`` buyers use to request it.
    """

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.CASCADE,
        related_name="files",
    )
    storage_key = models.CharField(max_length=500)
    original_name = models.CharField(max_length=255)
    size_bytes = models.PositiveBigIntegerField(default=0)
    mime_type = models.CharField(max_length=100, blank=True, default="")

    class Meta:
        db_table = "product_files"
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return self.original_name
