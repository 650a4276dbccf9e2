"""Unit tests for Order DTOs.

Covers:
- CreateOrderDTO: blank buyer/supplier rejected, defaults.
- EditOrderDTO: to_patch returns only supplied fields; unknown keys rejected.
- LineItemDTO: text trimmed, currency normalised, negatives rejected.
- AmendOrderDTO.fingerprint: stable across equivalent payloads.
- Immutability (frozen).
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from modules.orders.dtos import (
    AmendOrderDTO,
    CreateOrderDTO,
    EditOrderDTO,
    LineItemDTO,
)

pytestmark = pytest.mark.unit


class TestCreateOrderDTO:
    def test_defaults(self):
        dto = CreateOrderDTO(buyer="Seapeix", supplier="JB Boda")
        assert dto.current_stage == 1
        assert dto.origin == "India"
        assert dto.line_items == []
        assert dto.po_number is None

    @pytest.mark.parametrize("field", ["buyer", "supplier"])
    def test_blank_party_rejected(self, field):
        data = {"buyer": "Seapeix", "supplier": "JB Boda", field: "   "}
        with pytest.raises(ValidationError):
            CreateOrderDTO(**data)

    def test_frozen(self):
        dto = CreateOrderDTO(buyer="Seapeix", supplier="JB Boda")
        with pytest.raises(ValidationError):
            dto.buyer = "Other"


class TestEditOrderDTO:
    def test_patch_contains_only_supplied_fields(self):
        dto = EditOrderDTO(brand="Ocean Star", destination=None)
        assert dto.to_patch() == {"brand": "Ocean Star", "destination": None}

    def test_empty_patch(self):
        assert EditOrderDTO().to_patch() == {}

    def test_po_number_not_editable(self):
        with pytest.raises(ValidationError):
            EditOrderDTO(po_number="GI/PO/25-26/1")


class TestLineItemDTO:
    def test_strips_text_and_uppercases_currency(self):
        item = LineItemDTO(product="  Squid  ", currency=" eur ")
        assert item.product == "Squid"
        assert item.currency == "EUR"

    def test_negative_kilos_rejected(self):
        with pytest.raises(ValidationError):
            LineItemDTO(product="Squid", kilos=Decimal("-1"))


class TestAmendmentFingerprint:
    def _dto(self, kilos: str, **extra) -> AmendOrderDTO:
        return AmendOrderDTO(
            line_items=[
                LineItemDTO(
                    product="Squid", kilos=Decimal(kilos), price_per_kg=Decimal("4.8")
                )
            ],
            **extra,
        )

    def test_prefixed_sha256(self):
        fingerprint = self._dto("2500").fingerprint()
        assert fingerprint.startswith("fp:")
        assert len(fingerprint) == 3 + 64

    def test_equivalent_decimals_match(self):
        assert self._dto("2500").fingerprint() == self._dto("2500.00").fingerprint()

    def test_different_items_differ(self):
        assert self._dto("2500").fingerprint() != self._dto("2400").fingerprint()

    def test_carried_metadata_participates(self):
        plain = self._dto("2500").fingerprint()
        carried = self._dto("2500", carried_metadata={"bank": "HDFC"}).fingerprint()
        assert plain != carried

    def test_sender_and_key_do_not_participate(self):
        assert (
            self._dto("2500").fingerprint()
            == self._dto("2500", sender="ops", idempotency_key="k1").fingerprint()
        )

    def test_submitted_total_does_not_participate(self):
        a = AmendOrderDTO(line_items=[LineItemDTO(product="Squid", total=Decimal("1"))])
        b = AmendOrderDTO(line_items=[LineItemDTO(product="Squid", total=Decimal("2"))])
        assert a.fingerprint() == b.fingerprint()
