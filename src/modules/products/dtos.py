"""Product DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateProductDTO``: input for product creation.
- ``UpdateProductDTO``: input for partial product updates.
- ``FileUploadDTO``: one file of a multipart upload.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.products.models import ProductCategory, ProductStatus


def _validate_price(v: Optional[Decimal]) -> Optional[Decimal]:
    if v is not None and v < 0:
        raise ValueError("Price cannot be negative.")
    return v


class CreateProductDTO(BaseModel):
    """Immutable DTO for product creation requests.

    Validates:
    - ``name`` is a non-empty string.
    - ``price`` is a non-negative Decimal (free products are allowed).
    - ``download_limit`` / ``download_expiry_hours`` are positive when set.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    price: Decimal
    category: ProductCategory = ProductCategory.AUDIO
    status: ProductStatus = ProductStatus.DRAFT
    short_description: str = ""
    features: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    duration: str = ""
    download_limit: Optional[int] = Field(default=None, gt=0)
    download_expiry_hours: Optional[int] = Field(default=None, gt=0)

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Name must not be empty.")
        return v.strip()

    @field_validator("price")
    @classmethod
    def price_must_not_be_negative(cls, v: Decimal) -> Decimal:
        return _validate_price(v)


class UpdateProductDTO(BaseModel):
    """Immutable DTO for product update requests.

    All fields are optional: only supplied fields will be updated.
    """

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    category: Optional[ProductCategory] = None
    status: Optional[ProductStatus] = None
    short_description: Optional[str] = None
    features: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    duration: Optional[str] = None
    download_limit: Optional[int] = Field(default=None, gt=0)
    download_expiry_hours: Optional[int] = Field(default=None, gt=0)

    @field_validator("price")
    @classmethod
    def price_must_not_be_negative(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return _validate_price(v)

    def changes(self) -> dict:
        """Return only the fields the caller actually supplied."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class FileUploadDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    mime_type: str = "application/octet-stream"
    data: bytes
