"""Integration tests for EmailAssociationService against the database.

Covers:
- Linking appends one ledger entry built from the message and records the
  manual link.
- A failed ledger write leaves the message unlinked.
- Unlinking returns the message to the unmatched pool and keeps entries.
- Reassign moves exactly one entry and leaves a correction record.
- Remove deletes the entry and leaves a ``REMOVED`` correction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from modules.core.models import OutboxEvent
from modules.mailbox.exceptions import (
    LedgerWriteFailed,
    MessageNotFound,
    SameOrderReassignment,
)
from modules.mailbox.models import CorrectionRecord, InboundMessage
from modules.mailbox.views import build_association_service
from modules.orders.dtos import CreateOrderDTO
from modules.orders.exceptions import HistoryEntryNotFound, OrderNotFound
from modules.orders.models import HistoryEntry

pytestmark = pytest.mark.integration

RECEIVED_AT = datetime(2025, 6, 3, 9, 30, tzinfo=timezone.utc)


@pytest.fixture()
def service():
    return build_association_service()


@pytest.fixture()
def message(organization_id):
    return InboundMessage.objects.create(
        organization_id=organization_id,
        external_id="msg-001",
        sender_email="export@silversea.example",
        recipient="purchase@gi.example",
        subject="Proforma for squid rings",
        body="Please find the PI attached.",
        received_at=RECEIVED_AT,
        has_attachment=True,
        detected_stage=2,
    )


@pytest.fixture()
def other_order(order_service, organization_id):
    return order_service.create_order(
        organization_id, CreateOrderDTO(buyer="Seapeix", supplier="JB")
    )


# ===========================================================================
# Link / unlink
# ===========================================================================


class TestLink:
    def test_appends_entry_from_message(
        self, service, organization_id, message, order
    ):
        service.link_unmatched_message(organization_id, message.id, order.id, "by hand")

        entry = HistoryEntry.objects.get(order=order, source_message=message)
        assert entry.stage == 2
        assert entry.timestamp == RECEIVED_AT
        assert entry.sender == "export@silversea.example"
        assert entry.recipient == "purchase@gi.example"
        assert entry.subject == "Proforma for squid rings"
        assert entry.has_attachment is True
        assert HistoryEntry.objects.filter(order=order).count() == 2

    def test_records_manual_link(self, service, organization_id, message, order):
        service.link_unmatched_message(organization_id, message.id, order.id, "by hand")

        message.refresh_from_db()
        assert message.user_linked_order_id == order.id
        assert message.user_link_note == "by hand"
        assert message.user_linked_at is not None
        assert message.is_matched

    def test_undetected_stage_defaults_to_one(
        self, service, organization_id, message, order
    ):
        message.detected_stage = None
        message.save()

        service.link_unmatched_message(organization_id, message.id, order.id)

        entry = HistoryEntry.objects.get(source_message=message)
        assert entry.stage == 1

    def test_records_event(self, service, organization_id, message, order):
        service.link_unmatched_message(organization_id, message.id, order.id)

        event = OutboxEvent.objects.get(event_type="MessageLinked")
        assert event.topic == "mailbox"
        assert event.payload["message_id"] == str(message.id)

    def test_ledger_failure_leaves_message_unlinked(
        self, service, organization_id, message, order
    ):
        with patch(
            "modules.orders.repositories.django_repository."
            "OrderDjangoRepository.add_history",
            side_effect=DatabaseError("disk full"),
        ):
            with pytest.raises(LedgerWriteFailed):
                service.link_unmatched_message(organization_id, message.id, order.id)

        message.refresh_from_db()
        assert message.user_linked_order_id is None
        assert message.user_linked_at is None
        assert not OutboxEvent.objects.filter(event_type="MessageLinked").exists()

    def test_deleted_order_is_not_a_target(
        self, service, order_service, organization_id, message, order
    ):
        order_service.soft_delete(organization_id, order.id)

        with pytest.raises(OrderNotFound):
            service.link_unmatched_message(organization_id, message.id, order.id)

    def test_message_of_other_organisation(
        self, service, other_organization_id, message, order
    ):
        with pytest.raises(MessageNotFound):
            service.link_unmatched_message(other_organization_id, message.id, order.id)


class TestUnlink:
    def test_clears_match_and_link(self, service, organization_id, message, order):
        message.matched_order = order
        message.ai_summary = "PI received"
        message.auto_advanced = True
        message.save()
        service.link_unmatched_message(organization_id, message.id, order.id)

        service.unlink_message(organization_id, message.id)

        message.refresh_from_db()
        assert not message.is_matched
        assert message.detected_stage is None
        assert message.ai_summary == ""
        assert message.auto_advanced is False
        assert message.user_link_note == ""
        assert message.user_linked_at is None

    def test_entries_stay_on_the_order(self, service, organization_id, message, order):
        service.link_unmatched_message(organization_id, message.id, order.id)
        service.unlink_message(organization_id, message.id)

        assert HistoryEntry.objects.filter(order=order, source_message=message).exists()

    def test_listing_by_match_state(self, service, organization_id, message, order):
        InboundMessage.objects.create(
            organization_id=organization_id,
            external_id="msg-002",
            sender_email="qc@lab.example",
        )
        service.link_unmatched_message(organization_id, message.id, order.id)

        matched = service.list_messages(organization_id, matched=True)
        unmatched = service.list_messages(organization_id, matched=False)

        assert [m.external_id for m in matched] == ["msg-001"]
        assert [m.external_id for m in unmatched] == ["msg-002"]


# ===========================================================================
# Corrections
# ===========================================================================


class TestReassign:
    def test_moves_one_entry(
        self, service, organization_id, message, order, other_order
    ):
        service.link_unmatched_message(organization_id, message.id, order.id)
        entry = HistoryEntry.objects.get(source_message=message)

        service.reassign_history_entry(
            organization_id, entry.id, order.id, other_order.id
        )

        assert HistoryEntry.objects.filter(order=order).count() == 1
        assert HistoryEntry.objects.filter(order=other_order).count() == 2
        entry.refresh_from_db()
        assert entry.order_id == other_order.id

    def test_correction_record(
        self, service, organization_id, message, order, other_order
    ):
        service.link_unmatched_message(organization_id, message.id, order.id)
        entry = HistoryEntry.objects.get(source_message=message)

        correction = service.reassign_history_entry(
            organization_id, entry.id, order.id, other_order.id
        )

        assert correction.source_po_number == order.po_number
        assert correction.corrected_target == other_order.po_number
        assert correction.note == f"Moved from {order.po_number} to {other_order.po_number}"
        latest = CorrectionRecord.objects.latest_for(
            "Proforma for squid rings", "export@silversea.example"
        )
        assert latest == correction

    def test_same_order_rejected(self, service, organization_id, order):
        entry = HistoryEntry.objects.get(order=order)

        with pytest.raises(SameOrderReassignment):
            service.reassign_history_entry(organization_id, entry.id, order.id, order.id)
        assert not CorrectionRecord.objects.exists()

    def test_entry_not_on_source(self, service, organization_id, order, other_order):
        entry = HistoryEntry.objects.get(order=other_order)

        with pytest.raises(HistoryEntryNotFound):
            service.reassign_history_entry(
                organization_id, entry.id, order.id, other_order.id
            )

    def test_unknown_target(self, service, organization_id, order):
        entry = HistoryEntry.objects.get(order=order)

        with pytest.raises(OrderNotFound):
            service.reassign_history_entry(
                organization_id,
                entry.id,
                order.id,
                "0190f0c0-0000-7000-8000-0000000000ff",
            )
        assert HistoryEntry.objects.filter(order=order).count() == 1


class TestRemove:
    def test_deletes_entry_and_records_removal(
        self, service, organization_id, message, order
    ):
        service.link_unmatched_message(organization_id, message.id, order.id)
        entry = HistoryEntry.objects.get(source_message=message)

        correction = service.remove_history_entry(
            organization_id, entry.id, order.id, "spam"
        )

        assert not HistoryEntry.objects.filter(id=entry.id).exists()
        assert correction.is_removal
        assert correction.corrected_target == "REMOVED"
        assert correction.note == "spam"
        assert OutboxEvent.objects.filter(event_type="HistoryEntryRemoved").count() == 1

    def test_message_survives_removal(self, service, organization_id, message, order):
        service.link_unmatched_message(organization_id, message.id, order.id)
        entry = HistoryEntry.objects.get(source_message=message)

        service.remove_history_entry(organization_id, entry.id, order.id)

        message.refresh_from_db()
        assert message.user_linked_order_id == order.id

    def test_unknown_entry(self, service, organization_id, order):
        with pytest.raises(HistoryEntryNotFound):
            service.remove_history_entry(
                organization_id, "0190f0c0-0000-7000-8000-0000000000ff", order.id
            )
        assert not CorrectionRecord.objects.exists()
