"""Event handlers for Orders domain events.

Subscribed on the in-process bus by ``OrdersConfig.ready``; the outbox
drain (``core.publish_outbox_events``) is what feeds them.  Notification
delivery is external, so the handlers here only record the hand-off.
"""

from __future__ import annotations

from typing import Union

import structlog

from modules.orders.events import (
    OrderAmended,
    OrderCreated,
    OrderRestored,
    OrderSoftDeleted,
    OrderStageChanged,
)
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        logger.info(
            "order.event.created",
            order_id=str(event.aggregate_id),
            po_number=event.po_number,
        )


class OrderStageChangedHandler(IEventHandler[OrderStageChanged]):
    def handle(self, event: OrderStageChanged) -> None:
        logger.info(
            "order.event.stage_changed",
            order_id=str(event.aggregate_id),
            previous_stage=event.previous_stage,
            new_stage=event.new_stage,
        )


class OrderAmendedHandler(IEventHandler[OrderAmended]):
    def handle(self, event: OrderAmended) -> None:
        logger.info(
            "order.event.amended",
            order_id=str(event.aggregate_id),
            amendment_sequence=event.amendment_sequence,
        )


class OrderLifecycleHandler(IEventHandler[Union[OrderSoftDeleted, OrderRestored]]):
    """Soft delete and restore share one handler."""

    def handle(self, event: Union[OrderSoftDeleted, OrderRestored]) -> None:
        logger.info(
            "order.event.lifecycle",
            order_id=str(event.aggregate_id),
            event_name=event.event_name,
        )


order_created_handler = OrderCreatedHandler()
order_stage_changed_handler = OrderStageChangedHandler()
order_amended_handler = OrderAmendedHandler()
order_lifecycle_handler = OrderLifecycleHandler()
