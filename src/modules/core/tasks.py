"""Async tasks for the core module."""

import structlog
from celery import shared_task
from django.db import transaction

from modules.core.models import EventStatus, OutboxEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

OUTBOX_BATCH_SIZE = 100
OUTBOX_MAX_RETRIES = 5


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int = OUTBOX_BATCH_SIZE) -> dict:
    """Drain pending (and retryable failed) outbox rows into the event bus.

    Rows are locked with ``SKIP LOCKED`` semantics where the backend
    supports it, so two workers never publish the same event.
    """
    published = failed = 0
    with transaction.atomic():
        rows = list(
            OutboxEvent.objects.select_for_update(skip_locked=True)
            .filter(
                status__in=[EventStatus.PENDING, EventStatus.FAILED],
                retry_count__lt=OUTBOX_MAX_RETRIES,
            )
            .order_by("created_at")[:batch_size]
        )
        for row in rows:
            try:
                event_bus.publish_payload(row.event_type, row.payload)
            except Exception as exc:  # noqa: BLE001 - recorded on the row
                row.mark_as_failed(str(exc))
                failed += 1
                logger.error(
                    "outbox.publish_failed",
                    event_id=str(row.id),
                    event_type=row.event_type,
                    error=str(exc),
                )
                continue
            row.mark_as_published()
            published += 1

    logger.info("outbox.drained", published=published, failed=failed)
    return {"published": published, "failed": failed}
