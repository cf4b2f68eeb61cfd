"""Product API views.

Exposes the ``ProductService`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into appropriate
HTTP status codes: the view never swallows generic exceptions.

- ``ProductViewSet``: public catalog, active products only.
- ``AdminProductViewSet``: staff CRUD plus multipart file upload.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.mixins import ListModelMixin
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.container import get_collaborators
from modules.core.exceptions import CollaboratorTimeout, StorageUnavailable
from modules.core.responses import error_body, error_response
from modules.products.dtos import CreateProductDTO, FileUploadDTO, UpdateProductDTO
from modules.products.exceptions import (
    FileUploadFailed,
    NoFilesUploaded,
    ProductError,
    ProductNotFound,
)
from modules.products.filters import AdminProductFilter, ProductFilter
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.serializers import ProductAdminSerializer, ProductPublicSerializer
from modules.products.services import ProductService

PRODUCT_ERROR_STATUS = {
    ProductNotFound: status.HTTP_404_NOT_FOUND,
    NoFilesUploaded: status.HTTP_400_BAD_REQUEST,
    FileUploadFailed: status.HTTP_502_BAD_GATEWAY,
    ProductError: status.HTTP_400_BAD_REQUEST,
}

_PRODUCT_ERRORS = (ProductError, StorageUnavailable, CollaboratorTimeout)


def _validation_error(exc: Exception) -> Response:
    return Response(error_body(str(exc), "invalid"), status=status.HTTP_400_BAD_REQUEST)


def _payload_for(dto_class, data) -> dict:
    return {name: data.get(name) for name in dto_class.model_fields if name in data}


def _build_service() -> ProductService:
    return ProductService(
        repository=ProductDjangoRepository(),
        storage=get_collaborators().storage,
    )


class ProductViewSet(ListModelMixin, GenericViewSet):
    """Public catalog.

    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    permission_classes = [AllowAny]
    authentication_classes = []
    serializer_class = ProductPublicSerializer
    filterset_class = ProductFilter
    search_fields = ["name", "description", "short_description", "tags"]
    ordering_fields = ["name", "price", "created_at", "sales_count"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = ProductService(repository=ProductDjangoRepository())

    def get_queryset(self):
        return self._service.list_catalog()

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/products/{pk}/"""
        try:
            product = self._service.get_catalog_product(pk)
        except ProductError as exc:
            return error_response(exc, PRODUCT_ERROR_STATUS)
        return Response(ProductPublicSerializer(product).data)


class AdminProductViewSet(ListModelMixin, GenericViewSet):
    """Staff product management, including soft-deleted-aware listing."""

    permission_classes = [IsAdminUser]
    serializer_class = ProductAdminSerializer
    filterset_class = AdminProductFilter
    search_fields = ["name", "description", "tags"]
    ordering_fields = ["name", "price", "created_at", "sales_count", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = _build_service()

    def get_queryset(self):
        return self._service.list_products().prefetch_related("files")

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/admin/products/{pk}/"""
        try:
            product = self._service.get_product(pk)
        except ProductError as exc:
            return error_response(exc, PRODUCT_ERROR_STATUS)
        return Response(ProductAdminSerializer(product).data)

    def create(self, request: Request) -> Response:
        """POST /api/v1/admin/products/"""
        try:
            dto = CreateProductDTO(**_payload_for(CreateProductDTO, request.data))
        except (PydanticValidationError, ValueError) as exc:
            return _validation_error(exc)

        product = self._service.create_product(dto)
        return Response(ProductAdminSerializer(product).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, pk: str | None = None) -> Response:
        """PUT/PATCH /api/v1/admin/products/{pk}/"""
        try:
            dto = UpdateProductDTO(**_payload_for(UpdateProductDTO, request.data))
        except (PydanticValidationError, ValueError) as exc:
            return _validation_error(exc)

        try:
            product = self._service.update_product(pk, dto)
        except ProductError as exc:
            return error_response(exc, PRODUCT_ERROR_STATUS)
        return Response(ProductAdminSerializer(product).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/admin/products/{pk}/"""
        return self.update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/admin/products/{pk}/"""
        try:
            self._service.delete_product(pk)
        except ProductError as exc:
            return error_response(exc, PRODUCT_ERROR_STATUS)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="files")
    def upload_files(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/products/{pk}/files/

        Multipart body with one or more ``files`` parts.
        """
        uploads = [
            FileUploadDTO(
                name=f.name,
                mime_type=f.content_type or "application/octet-stream",
                data=f.read(),
            )
            for f in request.FILES.getlist("files")
        ]
        try:
            files = self._service.upload_files(pk, uploads)
        except _PRODUCT_ERRORS as exc:
            return error_response(exc, PRODUCT_ERROR_STATUS)

        product = self._service.get_product(pk)
        return Response(
            {"uploaded": len(files), "product": ProductAdminSerializer(product).data},
            status=status.HTTP_201_CREATED,
        )
