"""Unit tests for ledger ordering, attachment parsing and documentation flags."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, List

import pytest

from modules.orders import ledger
from modules.orders.constants import ArtworkStatus

pytestmark = pytest.mark.unit

T0 = datetime(2025, 5, 1, 9, 0, tzinfo=timezone.utc)


@dataclass
class Entry:
    stage: int
    timestamp: datetime
    subject: str = ""
    attachments: List[Any] = field(default_factory=list)


@dataclass
class FakeOrder:
    pi_number: str = ""
    artwork_status: str = ""
    awb_number: str = ""
    metadata: dict = field(default_factory=dict)


class TestOrdering:
    def test_display_groups_by_stage_then_time(self):
        late_stage_one = Entry(1, T0 + timedelta(days=3), "amended")
        stage_two = Entry(2, T0 + timedelta(days=1), "pi")
        first = Entry(1, T0, "new po")

        result = ledger.sorted_for_display([stage_two, late_stage_one, first])

        assert [e.subject for e in result] == ["new po", "amended", "pi"]

    def test_recent_activity_is_newest_first(self):
        a = Entry(1, T0)
        b = Entry(5, T0 + timedelta(hours=1))
        c = Entry(2, T0 + timedelta(hours=2))

        assert ledger.recent_activity([a, b, c]) == [c, b, a]


class TestAttachments:
    def test_plain_filename(self):
        assert ledger.attachment_name("PO.pdf") == "PO.pdf"
        assert ledger.attachment_meta("PO.pdf") is None

    def test_object_form(self):
        attachment = {"name": "PO.pdf", "meta": {"grand_total": "10.00"}}
        assert ledger.attachment_name(attachment) == "PO.pdf"
        assert ledger.attachment_meta(attachment) == {"grand_total": "10.00"}

    def test_json_encoded_object(self):
        attachment = json.dumps({"name": "PO.pdf", "meta": {"pdf_url": "s3://po"}})
        assert ledger.attachment_name(attachment) == "PO.pdf"
        assert ledger.attachment_meta(attachment) == {"pdf_url": "s3://po"}

    def test_malformed_json_is_a_filename(self):
        attachment = '{"name": broken'
        assert ledger.attachment_name(attachment) == attachment

    def test_find_attachment_matches_stage(self):
        entries = [
            Entry(2, T0, attachments=["PI.pdf"]),
            Entry(1, T0, attachments=[{"name": "PO.pdf", "meta": {}}]),
        ]
        assert ledger.find_attachment(entries, 1, "PO.pdf") == {
            "name": "PO.pdf",
            "meta": {},
        }
        assert ledger.find_attachment(entries, 1, "PI.pdf") is None

    def test_latest_meta_prefers_newest_stage_one_entry(self):
        entries = [
            Entry(1, T0, attachments=[{"name": "a", "meta": {"v": 1}}]),
            Entry(1, T0 + timedelta(days=1), attachments=[{"name": "b", "meta": {"v": 2}}]),
            Entry(2, T0 + timedelta(days=2), attachments=[{"name": "c", "meta": {"v": 3}}]),
        ]
        assert ledger.latest_attachment_meta(entries) == {"v": 2}


class TestDocumentation:
    def test_attachment_on_stage_counts(self):
        entries = [Entry(4, T0, attachments=["inspection.pdf"])]
        docs = ledger.documentation_map(FakeOrder(), entries)
        assert docs[4] is True
        assert docs[1] is False

    def test_order_fields_imply_documentation(self):
        order = FakeOrder(
            pi_number="PI-22",
            artwork_status=ArtworkStatus.APPROVED,
            awb_number="1234567890",
        )
        docs = ledger.documentation_map(order, [])
        assert docs[2] is True
        assert docs[3] is True
        assert docs[8] is True

    def test_pending_artwork_is_not_documentation(self):
        docs = ledger.documentation_map(
            FakeOrder(artwork_status=ArtworkStatus.PENDING), []
        )
        assert docs[3] is False

    def test_map_covers_every_stage(self):
        assert sorted(ledger.documentation_map(FakeOrder(), [])) == list(range(1, 9))

    def test_document_url_from_meta_then_order(self):
        entries = [Entry(1, T0, attachments=[{"name": "x", "meta": {"pdf_url": "u1"}}])]
        assert ledger.document_url(FakeOrder(), entries) == "u1"
        assert ledger.document_url(FakeOrder(metadata={"pdf_url": "u2"}), []) == "u2"
        assert ledger.document_url(FakeOrder(), []) is None
