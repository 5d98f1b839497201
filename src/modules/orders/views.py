"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into appropriate
HTTP status codes; the view never swallows generic exceptions.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.core.permissions import IsOperator, is_operator
from modules.menu.exceptions import MenuItemNotFound, MenuItemUnavailable
from modules.menu.repositories.django_repository import MenuItemDjangoRepository
from modules.notifications.apps import get_notification_bus
from modules.orders.dtos import DeliveryDetailsDTO, PlaceOrderDTO, PlaceOrderItemDTO
from modules.orders.exceptions import (
    InvalidOrderStatus,
    OrderAccessDenied,
    OrderConflict,
    OrderNotFound,
    OrderValidationError,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    DailyAnalyticsSerializer,
    DeliveredSerializer,
    OrderListSerializer,
    OrderSerializer,
    PlaceOrderSerializer,
    StatusUpdateSerializer,
    TrackingSerializer,
)
from modules.orders.services import OrderService
from shared.infrastructure.bus import event_bus


def build_order_service() -> OrderService:
    return OrderService(
        order_repository=OrderDjangoRepository(),
        menu_repository=MenuItemDjangoRepository(),
        notification_bus=get_notification_bus(),
        event_bus=event_bus,
    )


def _not_found() -> Response:
    return Response({"detail": "Order not found."}, status=status.HTTP_404_NOT_FOUND)


def _forbidden(exc: Exception) -> Response:
    return Response({"detail": str(exc)}, status=status.HTTP_403_FORBIDDEN)


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected repositories (DIP).
    Does **not** extend ``ModelViewSet``: all writes go through the
    service/repository layer.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = ["order_number", "customer_name", "customer_email"]
    ordering_fields = ["created_at", "total_amount", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    operator_actions = {"destroy", "set_status", "delivered", "analytics"}

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_permissions(self):
        if self.action == "create":
            return [AllowAny()]
        if self.action in self.operator_actions:
            return [IsOperator()]
        return [IsAuthenticated()]

    def get_throttles(self) -> list[BaseThrottle]:
        """Per-action throttling scopes."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve", "tracking"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        filters = None
        if not is_operator(self.request.user):
            filters = {"customer_id": self.request.user.pk}
        return OrderDjangoRepository().queryset(filters)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        An authenticated caller becomes the order's customer.
        """
        serializer = PlaceOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = request.user if request.user.is_authenticated else None
        default_name = (user.get_full_name() or user.get_username()) if user else ""

        try:
            dto = PlaceOrderDTO(
                customer_id=user.pk if user else None,
                customer_name=data.get("customer_name") or default_name,
                customer_email=data.get("customer_email") or (user.email if user else ""),
                customer_phone=data.get("customer_phone", ""),
                order_type=data["order_type"],
                items=[PlaceOrderItemDTO(**item) for item in data["items"]],
                delivery=(
                    DeliveryDetailsDTO(**data["delivery"]) if "delivery" in data else None
                ),
                total_amount=data.get("total_amount"),
                currency=data.get("currency"),
                payment_method=data.get("payment_method", ""),
                special_instructions=data.get("special_instructions", ""),
                idempotency_key=request.headers.get("Idempotency-Key"),
            )
            order = self._service.place_order(dto)
        except PydanticValidationError as exc:
            return Response(
                {"detail": [error["msg"] for error in exc.errors()]},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except OrderValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except MenuItemNotFound as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except MenuItemUnavailable as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve / Delete
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Operators see every order, customers only their own.  Filtering
        is handled by ``OrderFilter``; results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(
                pk, requester_id=request.user.pk, is_operator=is_operator(request.user)
            )
        except OrderNotFound:
            return _not_found()
        except OrderAccessDenied as exc:
            return _forbidden(exc)
        return Response(OrderSerializer(order).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/"""
        try:
            self._service.delete_order(pk)
        except OrderNotFound:
            return _not_found()
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    @action(detail=True, methods=["patch"], url_path="status")
    def set_status(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/status/"""
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = self._service.set_status(
                pk,
                data["status"],
                actor_id=request.user.pk,
                notes=data["notes"],
                estimated_delivery_time=data.get("estimated_delivery_time"),
                courier_note=data.get("courier_note"),
            )
        except OrderNotFound:
            return _not_found()
        except InvalidOrderStatus as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except OrderConflict as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["patch"])
    def delivered(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/delivered/"""
        serializer = DeliveredSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.mark_delivered(
                pk, actor_id=request.user.pk, notes=serializer.validated_data["notes"]
            )
        except OrderNotFound:
            return _not_found()
        except OrderConflict as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get"])
    def tracking(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/tracking/"""
        try:
            result = self._service.get_tracking(
                pk, requester_id=request.user.pk, is_operator=is_operator(request.user)
            )
        except OrderNotFound:
            return _not_found()
        except OrderAccessDenied as exc:
            return _forbidden(exc)
        return Response(TrackingSerializer(result).data)

    @action(detail=False, methods=["get"])
    def analytics(self, request: Request) -> Response:
        """GET /api/v1/orders/analytics/"""
        result = self._service.get_daily_analytics()
        return Response(DailyAnalyticsSerializer(result).data)
