"""Unit tests for PO number scanning and formatting.

Covers:
- Generic numbering: max trailing number + 1, floor when nothing exists.
- Buyer-scoped numbering: ``<code>-NNN``, candidates by code or buyer name.
- Buyer code lookup with the two-letter fallback.
- Calendar-year range rendering.
"""

from __future__ import annotations

from datetime import date

import pytest

from modules.orders.allocator import (
    MappingBuyerCodes,
    buyer_code,
    format_po_number,
    next_buyer_sequence,
    next_generic_number,
    year_range,
)

pytestmark = pytest.mark.unit


class TestGenericNumbering:
    def test_floor_plus_one_when_empty(self):
        assert next_generic_number([], floor=3043) == 3044

    def test_max_existing_plus_one(self):
        existing = ["GI/PO/25-26/3050", "GI/PO/25-26/3044", "GI/PO/24-25/3049"]
        assert next_generic_number(existing, floor=3043) == 3051

    def test_existing_below_floor_still_wins(self):
        assert next_generic_number(["GI/PO/25-26/12"], floor=3043) == 13

    def test_non_numeric_suffixes_ignored(self):
        existing = ["GI/PO/25-26/EG-003", "legacy", "", None]
        assert next_generic_number(existing, floor=100) == 101


class TestBuyerNumbering:
    def test_first_for_buyer(self):
        assert next_buyer_sequence([], "EG", "Pescados E Guillem") == 1

    def test_scans_code_suffix(self):
        existing = [
            ("GI/PO/25-26/EG-001", "Pescados E Guillem"),
            ("GI/PO/25-26/EG-002", "Pescados E Guillem"),
            ("GI/PO/25-26/SP-009", "Seapeix"),
        ]
        assert next_buyer_sequence(existing, "EG", "Pescados E Guillem") == 3

    def test_matches_by_buyer_name_when_code_segment_differs(self):
        # imported identifier without the "/EG-" segment
        existing = [("EG-007", "Pescados E Guillem S.L.")]
        assert next_buyer_sequence(existing, "EG", "Pescados E Guillem") == 8

    def test_other_buyers_ignored(self):
        existing = [("SP-004", "Seapeix")]
        assert next_buyer_sequence(existing, "EG", "Pescados E Guillem") == 1

    def test_generic_numbers_do_not_count(self):
        existing = [("GI/PO/25-26/3050", "Pescados E Guillem")]
        assert next_buyer_sequence(existing, "EG", "Pescados E Guillem") == 1


class TestBuyerCode:
    def test_configured_code(self):
        codes = MappingBuyerCodes({"Pescados E Guillem": "EG"})
        assert buyer_code(codes, " Pescados E Guillem ") == "EG"

    def test_fallback_to_first_two_letters(self):
        assert buyer_code(MappingBuyerCodes({}), "oceanic") == "OC"


class TestFormatting:
    def test_year_range(self):
        assert year_range(date(2025, 3, 1)) == "25-26"
        assert year_range(date(2099, 12, 31)) == "99-00"

    def test_generic_format(self):
        assert format_po_number("GI", "25-26", 3044) == "GI/PO/25-26/3044"

    def test_buyer_format_pads_to_three_digits(self):
        assert format_po_number("GI", "25-26", 3, "EG") == "GI/PO/25-26/EG-003"
