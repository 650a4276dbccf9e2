"""Unit tests for the OutboxEvent model.

Covers:
- Defaults (PENDING, no retries, UUIDv7 id).
- mark_as_published() and mark_as_failed(error) transitions.
- __str__ representation.
"""

from __future__ import annotations

import uuid

import pytest

from modules.core.models import EventStatus, OutboxEvent

pytestmark = pytest.mark.unit


def _make_event(**overrides) -> OutboxEvent:
    defaults = {
        "event_type": "OrderStageChanged",
        "payload": {"po_number": "PO-100", "previous_stage": 1, "new_stage": 2},
        "aggregate_id": "0190f0c0-0000-7000-8000-000000000042",
        "topic": "orders",
    }
    defaults.update(overrides)
    return OutboxEvent.objects.create(**defaults)


class TestOutboxEventCreation:
    def test_defaults(self):
        event = _make_event()
        event.refresh_from_db()
        assert event.status == EventStatus.PENDING
        assert event.processed_at is None
        assert event.error_message is None
        assert event.retry_count == 0
        assert event.payload["new_stage"] == 2

    def test_id_is_uuid7(self):
        event = _make_event()
        assert isinstance(event.id, uuid.UUID)
        assert event.id.version == 7


class TestOutboxEventTransitions:
    def test_mark_as_published(self):
        event = _make_event()
        event.mark_as_published()
        event.refresh_from_db()

        assert event.status == EventStatus.PUBLISHED
        assert event.processed_at is not None

    def test_mark_as_failed_increments_retry(self):
        event = _make_event(topic="mailbox", event_type="MessageLinked")
        event.mark_as_failed("handler crashed")
        event.mark_as_failed("handler crashed again")
        event.refresh_from_db()

        assert event.status == EventStatus.FAILED
        assert event.error_message == "handler crashed again"
        assert event.retry_count == 2


def test_str_representation():
    event = _make_event(event_type="OrderAmended", aggregate_id="order-456")
    assert str(event) == "OrderAmended [PENDING] (order-456)"
