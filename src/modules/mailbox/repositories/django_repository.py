"""Django ORM implementation of the inbound message repository."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError

from modules.core.models import OutboxEvent
from modules.mailbox.models import CorrectionRecord, InboundMessage
from modules.mailbox.repositories.interfaces import IMessageRepository
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class MessageDjangoRepository(IMessageRepository):
    """Concrete inbound message repository backed by Django ORM."""

    def get_by_id(self, organization_id: UUID, id: UUID) -> Optional[InboundMessage]:
        """Returns ``None`` for missing, out-of-scope or malformed IDs."""
        try:
            return InboundMessage.objects.filter(
                organization_id=organization_id, id=id
            ).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, organization_id: UUID, id: UUID) -> Optional[InboundMessage]:
        try:
            return (
                InboundMessage.objects.select_for_update()
                .filter(organization_id=organization_id, id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def queryset(self, organization_id: UUID, matched: Optional[bool] = None):
        queryset = InboundMessage.objects.filter(organization_id=organization_id)
        if matched is True:
            queryset = queryset.matched()
        elif matched is False:
            queryset = queryset.unmatched()
        return queryset.order_by("-received_at")

    def list(
        self, organization_id: UUID, filters: Optional[Dict[str, Any]] = None
    ) -> List[InboundMessage]:
        """List messages.

        ``filters`` may carry ``matched`` (bool) plus any ORM look-ups.
        """
        filters = dict(filters or {})
        queryset = self.queryset(organization_id, filters.pop("matched", None))
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def update_fields(
        self, message: InboundMessage, patch: Dict[str, Any]
    ) -> InboundMessage:
        for field, value in patch.items():
            setattr(message, field, value)
        message.save(update_fields=list(patch))
        return message

    def add_correction(
        self, organization_id: UUID, fields: Dict[str, Any]
    ) -> CorrectionRecord:
        record = CorrectionRecord.objects.create(organization_id=organization_id, **fields)
        logger.info(
            "mailbox.correction_recorded",
            correction_id=str(record.id),
            corrected_target=record.corrected_target,
        )
        return record

    def record_event(self, event: DomainEvent) -> None:
        OutboxEvent.objects.create(
            event_type=event.event_name,
            aggregate_id=str(event.aggregate_id),
            payload=event.to_payload(),
            topic="mailbox",
        )
