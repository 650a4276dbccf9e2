"""Inbound message repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.mailbox.models import CorrectionRecord, InboundMessage
    from shared.domain.events import DomainEvent


class IMessageRepository(IRepository["InboundMessage"]):
    """Repository contract for inbound messages and their corrections."""

    @abstractmethod
    def get_for_update(self, organization_id: UUID, id: UUID) -> Optional[InboundMessage]:
        """Retrieve a message holding a row lock."""

    @abstractmethod
    def queryset(self, organization_id: UUID, matched: Optional[bool] = None) -> Any:
        """Unevaluated, scoped query, newest first."""

    @abstractmethod
    def update_fields(
        self, message: InboundMessage, patch: Dict[str, Any]
    ) -> InboundMessage:
        """Write only the given fields."""

    @abstractmethod
    def add_correction(
        self, organization_id: UUID, fields: Dict[str, Any]
    ) -> CorrectionRecord:
        """Append a correction record."""

    @abstractmethod
    def record_event(self, event: DomainEvent) -> None:
        """Write one domain event to the outbox."""
