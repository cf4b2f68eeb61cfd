"""Order API views.

Exposes the ``OrderService`` via HTTP.  Domain exceptions are caught and
translated into appropriate HTTP status codes: the view never swallows
generic exceptions.

- ``OrderViewSet``: public checkout (create) and lookup by order number
  plus e-mail.
- ``AdminOrderViewSet``: staff list / detail / status update.
- ``DashboardView``: staff summary.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.core.responses import error_body, error_response
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, UpdateOrderStatusDTO
from modules.orders.exceptions import (
    InvalidItem,
    InvalidStatusUpdate,
    OrderAccessDenied,
    OrderError,
    OrderNotFound,
)
from modules.orders.filters import OrderFilter
from modules.orders.serializers import (
    AdminOrderSerializer,
    CreateOrderSerializer,
    DashboardSerializer,
    OrderListSerializer,
    OrderLookupSerializer,
    OrderSerializer,
    UpdateOrderStatusSerializer,
)
from modules.orders.services import build_order_service

ORDER_ERROR_STATUS = {
    InvalidItem: status.HTTP_400_BAD_REQUEST,
    OrderNotFound: status.HTTP_404_NOT_FOUND,
    OrderAccessDenied: status.HTTP_403_FORBIDDEN,
    InvalidStatusUpdate: status.HTTP_400_BAD_REQUEST,
    OrderError: status.HTTP_400_BAD_REQUEST,
}


def client_ip(request: Request) -> str | None:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.META.get("REMOTE_ADDR") or None


class OrderViewSet(GenericViewSet):
    """Public order endpoints.

    ``lookup_field`` is the human-readable order number; the UUID never
    leaves the admin API.
    """

    permission_classes = [AllowAny]
    authentication_classes = []
    lookup_field = "order_number"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_throttles(self) -> list[BaseThrottle]:
        self.throttle_scope = "order_creation" if self.action == "create" else None
        return super().get_throttles()

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/"""
        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)

        data = create_serializer.validated_data
        try:
            dto = CreateOrderDTO(
                customer_email=data["customer_email"],
                customer_name=data["customer_name"],
                payment_method=data["payment_method"],
                items=[
                    CreateOrderItemDTO(product_id=item["product_id"], quantity=item["quantity"])
                    for item in data["items"]
                ],
                notes=data.get("notes", ""),
                ip_address=client_ip(request),
                user_agent=request.META.get("HTTP_USER_AGENT", ""),
            )
        except (PydanticValidationError, ValueError) as exc:
            return Response(error_body(str(exc), "invalid"), status=status.HTTP_400_BAD_REQUEST)

        try:
            order = self._service.create_order(dto)
        except OrderError as exc:
            return error_response(exc, ORDER_ERROR_STATUS)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, order_number: str | None = None) -> Response:
        """GET /api/v1/orders/{order_number}/?email=..."""
        lookup = OrderLookupSerializer(data=request.query_params)
        lookup.is_valid(raise_exception=True)

        try:
            order = self._service.get_by_number(order_number, lookup.validated_data["email"])
        except OrderError as exc:
            return error_response(exc, ORDER_ERROR_STATUS)
        return Response(OrderSerializer(order).data)


class AdminOrderViewSet(GenericViewSet):
    """Staff order management.

    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    permission_classes = [IsAdminUser]
    filterset_class = OrderFilter
    search_fields = ["order_number", "customer_email", "customer_name"]
    ordering_fields = ["created_at", "total", "payment_status", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    serializer_class = AdminOrderSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_queryset(self):
        return self._service.list_orders()

    def list(self, request: Request) -> Response:
        """GET /api/v1/admin/orders/

        Filtering (status, payment status, e-mail, date range, total range)
        is handled by ``OrderFilter``.  Results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = OrderListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/admin/orders/{pk}/"""
        try:
            order = self._service.get_order(pk)
        except OrderError as exc:
            return error_response(exc, ORDER_ERROR_STATUS)
        return Response(AdminOrderSerializer(order).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/admin/orders/{pk}/"""
        serializer = UpdateOrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            dto = UpdateOrderStatusDTO(**serializer.validated_data)
        except (PydanticValidationError, ValueError) as exc:
            return Response(error_body(str(exc), "invalid"), status=status.HTTP_400_BAD_REQUEST)

        try:
            order = self._service.update_status(pk, dto)
        except OrderError as exc:
            return error_response(exc, ORDER_ERROR_STATUS)
        return Response(AdminOrderSerializer(order).data)


class DashboardView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request: Request) -> Response:
        """GET /api/v1/admin/dashboard/"""
        stats = build_order_service().dashboard_stats()
        return Response(DashboardSerializer(stats).data)
