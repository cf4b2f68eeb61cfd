"""Product DRF serializers for API output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.  Storage keys are only ever shown to
staff; the public representation does not mention files at all beyond
their count.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.products.models import Product, ProductFile

_PRODUCT_FIELDS = [
    "id",
    "name",
    "description",
    "short_description",
    "price",
    "category",
    "features",
    "tags",
    "duration",
    "sales_count",
    "created_at",
]


class ProductPublicSerializer(serializers.ModelSerializer):
    """Catalog view of an active product."""

    file_count = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = _PRODUCT_FIELDS + ["file_count"]
        read_only_fields = fields

    def get_file_count(self, obj: Product) -> int:
        return obj.files.count()


class ProductFileSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductFile
        fields = ["id", "original_name", "size_bytes", "mime_type", "storage_key", "created_at"]
        read_only_fields = fields


class ProductAdminSerializer(serializers.ModelSerializer):
    """Full product representation for the admin API, files included."""

    files = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = _PRODUCT_FIELDS + [
            "status",
            "download_limit",
            "download_expiry_hours",
            "files",
            "updated_at",
        ]
        read_only_fields = fields

    def get_files(self, obj: Product) -> list:
        files = obj.files.order_by("created_at", "id")
        return [
            {"index": index, **ProductFileSerializer(f).data}
            for index, f in enumerate(files)
        ]
