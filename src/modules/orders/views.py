"""Order API views.

Exposes ``OrderService`` via HTTP using DRF ViewSets.  Domain exceptions
propagate to ``modules.core.exceptions.DomainExceptionHandler``,
which maps them to HTTP statuses; the views never catch them.
"""

from __future__ import annotations

from django.conf import settings
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet, ViewSet

from modules.core.mixins import OrganizationScopedViewMixin
from modules.core.pagination import StandardResultsSetPagination
from modules.orders.allocator import PoNumberAllocator, buyer_codes_from_settings
from modules.orders.dtos import AmendOrderDTO, CreateOrderDTO, EditOrderDTO
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    AdvanceStageSerializer,
    AmendOrderSerializer,
    CreateOrderSerializer,
    EditOrderSerializer,
    HistoryEntrySerializer,
    NextPoNumberSerializer,
    OrderListSerializer,
    OrderSerializer,
    documentation_payload,
)
from modules.orders.services import OrderService
from modules.orders.stages import stage_names_from_settings

_TRUTHY = {"1", "true", "yes", "on"}


def build_order_service() -> OrderService:
    """``OrderService`` wired with the Django repository and settings."""
    repository = OrderDjangoRepository()
    return OrderService(
        order_repository=repository,
        allocator=PoNumberAllocator(
            repository,
            buyer_codes_from_settings(),
            prefix=settings.PO_NUMBER_PREFIX,
            floor=settings.PO_NUMBER_FLOOR,
        ),
        stage_names=stage_names_from_settings(),
        system_actor=settings.SYSTEM_ACTOR,
        max_po_retries=settings.PO_ALLOCATION_MAX_RETRIES,
    )


def _flag(request: Request, name: str) -> bool:
    return request.query_params.get(name, "").lower() in _TRUTHY


class OrderViewSet(OrganizationScopedViewMixin, GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected collaborators (DIP).
    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = ["po_number", "buyer", "product"]
    ordering_fields = ["created_at", "order_date", "current_stage", "total_value"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_throttles(self) -> list[BaseThrottle]:
        """Throttling scopes per action."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        return self._service.order_queryset(
            self.organization_id, include_deleted=_flag(self.request, "include_deleted")
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/"""
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = dict(serializer.validated_data)
        data["po_number"] = data.get("po_number") or None
        order = self._service.create_order(self.organization_id, CreateOrderDTO(**data))

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Soft-deleted orders are excluded unless ``include_deleted=true``.
        Filtering is handled by ``OrderFilter``, search and ordering by
        the DRF backends.  Results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        order = self._service.get_order(
            self.organization_id, pk, include_deleted=_flag(request, "include_deleted")
        )
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Edit / Delete
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/

        Sparse patch; ``po_number`` and ``current_stage`` are not editable
        here (stage moves go through ``/stage/``).
        """
        serializer = EditOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = self._service.edit_order(
            self.organization_id, pk, EditOrderDTO(**serializer.validated_data)
        )
        return Response(OrderSerializer(order).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/ (soft delete when the schema allows)."""
        self._service.soft_delete(self.organization_id, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def restore(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/restore/"""
        order = self._service.restore(self.organization_id, pk)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def stage(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/stage/

        Body: ``{"new_stage": 3, "previous_stage": 2}``; ``previous_stage``
        is optional and guards against a stale client view.
        """
        serializer = AdvanceStageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = self._service.advance_stage(
            self.organization_id,
            pk,
            serializer.validated_data["new_stage"],
            serializer.validated_data.get("previous_stage"),
        )
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def amend(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/amend/

        Supports idempotency via the ``Idempotency-Key`` header; without it,
        an identical resubmission is detected by payload fingerprint.
        """
        serializer = AmendOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        dto = AmendOrderDTO(
            **serializer.validated_data,
            idempotency_key=request.headers.get("Idempotency-Key") or None,
        )
        order = self._service.amend_order(self.organization_id, pk, dto)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get"])
    def history(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/history/?recent=true"""
        entries = self._service.get_history(
            self.organization_id, pk, recent=_flag(request, "recent")
        )
        return Response(HistoryEntrySerializer(entries, many=True).data)

    @action(detail=True, methods=["get"])
    def documentation(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/documentation/"""
        data = self._service.get_documentation(self.organization_id, pk)
        return Response(documentation_payload(data))


class PoNumberViewSet(OrganizationScopedViewMixin, ViewSet):
    """PO number preview and reservation."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    @action(detail=False, methods=["get", "post"], url_path="next")
    def next_number(self, request: Request) -> Response:
        """GET previews, POST reserves: ``/api/v1/po-numbers/next/?buyer=``."""
        source = request.query_params
        if request.method == "POST" and request.data:
            source = request.data
        serializer = NextPoNumberSerializer(data=source)
        serializer.is_valid(raise_exception=True)

        buyer = serializer.validated_data["buyer"] or None
        reserve = request.method == "POST"
        po_number = self._service.next_po_number(
            self.organization_id, buyer, reserve=reserve
        )
        return Response(
            {"po_number": po_number, "buyer": buyer, "reserved": reserve},
            status=status.HTTP_201_CREATED if reserve else status.HTTP_200_OK,
        )
