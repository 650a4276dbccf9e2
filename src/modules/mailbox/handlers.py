"""Event handlers for Mailbox domain events."""

from __future__ import annotations

import structlog

from shared.domain.bus import IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class CorrectionHandler(IEventHandler[DomainEvent]):
    """Records association changes coming off the outbox."""

    def handle(self, event: DomainEvent) -> None:
        logger.info(
            "mailbox.event.association_changed",
            event_name=event.event_name,
            order_id=str(event.aggregate_id),
        )


correction_handler = CorrectionHandler()
