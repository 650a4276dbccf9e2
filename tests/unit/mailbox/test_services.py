"""Unit tests for EmailAssociationService with mocked repositories.

Covers:
- Link: ledger entry built from the message, link written after it.
- Link: ledger failure leaves the message unlinked.
- Reassign: same-order rejection, default note, correction fields.
- Remove: correction written before the entry is deleted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, call
from uuid import uuid4

import pytest
from django.db import DatabaseError

from modules.mailbox.exceptions import (
    LedgerWriteFailed,
    MessageNotFound,
    SameOrderReassignment,
)
from modules.mailbox.services import EmailAssociationService
from modules.orders.exceptions import HistoryEntryNotFound, OrderNotFound

pytestmark = pytest.mark.unit

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
RECEIVED = datetime(2025, 5, 30, 8, 15, tzinfo=timezone.utc)
ORG = uuid4()


@pytest.fixture()
def message_repo():
    return MagicMock()


@pytest.fixture()
def order_repo():
    return MagicMock()


@pytest.fixture()
def service(message_repo, order_repo):
    return EmailAssociationService(
        message_repository=message_repo,
        order_repository=order_repo,
        clock=lambda: NOW,
    )


def _message(detected_stage=None):
    return SimpleNamespace(
        id=uuid4(),
        detected_stage=detected_stage,
        received_at=RECEIVED,
        sender_email="ops@seapeix.example",
        recipient="orders@gi.example",
        subject="RE: vessel schedule",
        body="ETD 12 June",
        has_attachment=True,
    )


def _order(po_number="PO-100"):
    return SimpleNamespace(id=uuid4(), po_number=po_number)


# ===========================================================================
# Link
# ===========================================================================


class TestLink:
    def test_entry_built_from_message(self, service, message_repo, order_repo):
        message, order = _message(detected_stage=5), _order()
        message_repo.get_for_update.return_value = message
        order_repo.get_by_id.return_value = order

        service.link_unmatched_message(ORG, message.id, order.id, note="manual")

        entry = order_repo.add_history.call_args.args[1]
        assert entry["stage"] == 5
        assert entry["timestamp"] == RECEIVED
        assert entry["sender"] == "ops@seapeix.example"
        assert entry["source_message_id"] == message.id
        link = message_repo.update_fields.call_args.args[1]
        assert link["user_linked_order"] is order
        assert link["user_link_note"] == "manual"
        assert link["user_linked_at"] == NOW

    @pytest.mark.parametrize("detected", [None, 0, 12])
    def test_missing_or_invalid_stage_defaults_to_one(
        self, service, message_repo, order_repo, detected
    ):
        message_repo.get_for_update.return_value = _message(detected_stage=detected)
        order_repo.get_by_id.return_value = _order()

        service.link_unmatched_message(ORG, uuid4(), uuid4())

        assert order_repo.add_history.call_args.args[1]["stage"] == 1

    def test_ledger_failure_leaves_message_unlinked(
        self, service, message_repo, order_repo
    ):
        message_repo.get_for_update.return_value = _message()
        order_repo.get_by_id.return_value = _order()
        order_repo.add_history.side_effect = DatabaseError("disk full")

        with pytest.raises(LedgerWriteFailed):
            service.link_unmatched_message(ORG, uuid4(), uuid4())

        message_repo.update_fields.assert_not_called()
        message_repo.record_event.assert_not_called()

    def test_unknown_message(self, service, message_repo):
        message_repo.get_for_update.return_value = None
        with pytest.raises(MessageNotFound):
            service.link_unmatched_message(ORG, uuid4(), uuid4())

    def test_unknown_order(self, service, message_repo, order_repo):
        message_repo.get_for_update.return_value = _message()
        order_repo.get_by_id.return_value = None
        with pytest.raises(OrderNotFound):
            service.link_unmatched_message(ORG, uuid4(), uuid4())
        order_repo.add_history.assert_not_called()


class TestUnlink:
    def test_clears_match_and_link(self, service, message_repo):
        message = _message()
        message_repo.get_for_update.return_value = message

        service.unlink_message(ORG, message.id)

        patch = message_repo.update_fields.call_args.args[1]
        assert patch["matched_order"] is None
        assert patch["user_linked_order"] is None
        assert patch["detected_stage"] is None
        assert patch["user_linked_at"] is None


# ===========================================================================
# Corrections
# ===========================================================================


class TestReassign:
    def test_same_order_rejected(self, service, order_repo):
        same = uuid4()
        with pytest.raises(SameOrderReassignment):
            service.reassign_history_entry(ORG, uuid4(), same, same)
        order_repo.move_history_entry.assert_not_called()

    def test_moves_and_records_correction(self, service, message_repo, order_repo):
        source, target = _order("PO-100"), _order("PO-200")
        entry = SimpleNamespace(id=uuid4(), subject="RE: PI", sender="ops@x")
        order_repo.get_for_update.return_value = source
        order_repo.get_by_id.return_value = target
        order_repo.get_history_entry.return_value = entry

        service.reassign_history_entry(ORG, entry.id, source.id, target.id)

        order_repo.move_history_entry.assert_called_once_with(entry, target)
        organization_id, fields = message_repo.add_correction.call_args.args
        assert organization_id == ORG
        assert fields["corrected_target"] == "PO-200"
        assert fields["source_po_number"] == "PO-100"
        assert fields["note"] == "Moved from PO-100 to PO-200"
        assert fields["subject"] == "RE: PI"

    def test_entry_not_on_source(self, service, order_repo):
        order_repo.get_for_update.return_value = _order()
        order_repo.get_by_id.return_value = _order("PO-200")
        order_repo.get_history_entry.return_value = None

        with pytest.raises(HistoryEntryNotFound):
            service.reassign_history_entry(ORG, uuid4(), uuid4(), uuid4())


class TestRemove:
    def test_correction_precedes_delete(self, service, message_repo, order_repo):
        tracker = MagicMock()
        tracker.attach_mock(message_repo.add_correction, "add_correction")
        tracker.attach_mock(order_repo.delete_history_entry, "delete_history_entry")
        source = _order()
        entry = SimpleNamespace(id=uuid4(), subject="spam", sender="x@y")
        order_repo.get_for_update.return_value = source
        order_repo.get_history_entry.return_value = entry

        service.remove_history_entry(ORG, entry.id, source.id, note="not ours")

        names = [c[0] for c in tracker.mock_calls]
        assert names == ["add_correction", "delete_history_entry"]
        fields = message_repo.add_correction.call_args.args[1]
        assert fields["corrected_target"] == "REMOVED"
        assert fields["note"] == "not ours"
        assert order_repo.delete_history_entry.call_args == call(entry)
