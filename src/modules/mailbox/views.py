"""Mailbox API views.

Message listing, manual link/unlink, and ledger corrections.  Domain
exceptions propagate to the standard exception handler.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.mixins import OrganizationScopedViewMixin
from modules.core.pagination import StandardResultsSetPagination
from modules.mailbox.dtos import LinkMessageDTO, ReassignEntryDTO, RemoveEntryDTO
from modules.mailbox.models import InboundMessage
from modules.mailbox.repositories.django_repository import MessageDjangoRepository
from modules.mailbox.serializers import (
    CorrectionRecordSerializer,
    InboundMessageSerializer,
    LinkMessageSerializer,
    ReassignEntrySerializer,
    RemoveEntrySerializer,
)
from modules.mailbox.services import EmailAssociationService
from modules.orders.repositories.django_repository import OrderDjangoRepository

_MATCHED_VALUES = {"true": True, "1": True, "false": False, "0": False}


def build_association_service() -> EmailAssociationService:
    return EmailAssociationService(
        message_repository=MessageDjangoRepository(),
        order_repository=OrderDjangoRepository(),
    )


class MessageViewSet(OrganizationScopedViewMixin, GenericViewSet):
    """Inbound messages and their order association."""

    queryset = InboundMessage.objects.all()

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_association_service()

    def list(self, request: Request) -> Response:
        """GET /api/v1/messages/?matched=true|false"""
        matched = _MATCHED_VALUES.get(request.query_params.get("matched", "").lower())
        queryset = self._service.message_queryset(self.organization_id, matched)

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = InboundMessageSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        message = self._service.get_message(self.organization_id, pk)
        return Response(InboundMessageSerializer(message).data)

    @action(detail=True, methods=["post"])
    def link(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/messages/{pk}/link/ ``{"order_id": ..., "note": ...}``"""
        serializer = LinkMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = LinkMessageDTO(**serializer.validated_data)

        message = self._service.link_unmatched_message(
            self.organization_id, pk, dto.order_id, dto.note
        )
        return Response(InboundMessageSerializer(message).data)

    @action(detail=True, methods=["post"])
    def unlink(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/messages/{pk}/unlink/"""
        message = self._service.unlink_message(self.organization_id, pk)
        return Response(InboundMessageSerializer(message).data)


class HistoryCorrectionViewSet(OrganizationScopedViewMixin, GenericViewSet):
    """Corrective operations on individual ledger entries."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_association_service()

    @action(detail=True, methods=["post"])
    def reassign(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/history/{pk}/reassign/"""
        serializer = ReassignEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = ReassignEntryDTO(**serializer.validated_data)

        correction = self._service.reassign_history_entry(
            self.organization_id, pk, dto.from_order_id, dto.to_order_id, dto.note
        )
        return Response(CorrectionRecordSerializer(correction).data)

    @action(detail=True, methods=["post"])
    def remove(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/history/{pk}/remove/"""
        serializer = RemoveEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = RemoveEntryDTO(**serializer.validated_data)

        correction = self._service.remove_history_entry(
            self.organization_id, pk, dto.from_order_id, dto.note
        )
        return Response(
            CorrectionRecordSerializer(correction).data, status=status.HTTP_200_OK
        )
