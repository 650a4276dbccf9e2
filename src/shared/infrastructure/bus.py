"""In-memory event bus implementation."""

from __future__ import annotations

from typing import Any, Dict, List, Type

import structlog

from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class InMemoryEventBus(IEventBus):
    """Simple in-process event bus."""

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[IEventHandler]] = {}

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None:
        handlers = self._handlers.setdefault(event_class, [])
        if handler not in handlers:
            handlers.append(handler)

    def publish(self, event: DomainEvent) -> None:
        for handler in self._handlers.get(type(event), []):
            handler.handle(event)

    def publish_payload(self, event_type: str, payload: Dict[str, Any]) -> bool:
        """Rehydrate an outbox payload and publish it.

        Returns ``False`` when no subscribed event class carries that name.
        """
        for event_class in self._handlers:
            if event_class.__name__ == event_type:
                self.publish(event_class.from_payload(payload))
                return True
        logger.warning("event_bus.unknown_event_type", event_type=event_type)
        return False


# Global bus instance (singleton)

event_bus = InMemoryEventBus()
