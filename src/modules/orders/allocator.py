"""PO number allocation.

Identifiers look like ``GI/PO/25-26/3044`` (generic) or
``GI/PO/25-26/EG-003`` (buyer-scoped, three-digit sequence).

The scanners below derive "the next free number" from the identifiers an
organisation already has.  They seed and cross-check a ``PoSequence`` row
that is locked with ``SELECT ... FOR UPDATE`` and incremented inside the
caller's transaction, so two concurrent creations cannot be handed the
same number.  The ``(organization_id, po_number)`` unique constraint on
``Order`` is the last line of defence (see ``OrderService.create_order``).
"""

from __future__ import annotations

import re
from datetime import date
from typing import Callable, Iterable, Mapping, Optional, Protocol, Tuple
from uuid import UUID

import structlog
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from modules.orders.models import PoSequence
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_GENERIC_SEQUENCE = re.compile(r"/(\d+)$")


class BuyerCodes(Protocol):
    def code_for(self, buyer: str) -> Optional[str]: ...


class MappingBuyerCodes:
    """``BuyerCodes`` backed by a ``{buyer name: code}`` mapping."""

    def __init__(self, codes: Mapping[str, str]) -> None:
        self._codes = dict(codes)

    def code_for(self, buyer: str) -> Optional[str]:
        return self._codes.get(buyer)


def buyer_codes_from_settings() -> MappingBuyerCodes:
    return MappingBuyerCodes(getattr(settings, "BUYER_CODES", {}))


def buyer_code(codes: BuyerCodes, buyer: str) -> str:
    """Configured code for *buyer*, else its first two letters upper-cased."""
    buyer = buyer.strip()
    return codes.code_for(buyer) or buyer[:2].upper()


def year_range(today: date) -> str:
    """``25-26`` for any date in 2025."""
    yy = today.year % 100
    return f"{yy:02d}-{(yy + 1) % 100:02d}"


def next_generic_number(existing: Iterable[str], floor: int) -> int:
    numbers = [
        int(match.group(1))
        for match in (_GENERIC_SEQUENCE.search(po or "") for po in existing)
        if match and int(match.group(1)) > 0
    ]
    return (max(numbers) if numbers else floor) + 1


def next_buyer_sequence(
    existing: Iterable[Tuple[str, str]], code: str, buyer: str
) -> int:
    """Next sequence for *code* given ``(po_number, buyer)`` pairs.

    Candidates are identifiers containing ``/<code>-`` or orders whose buyer
    name contains *buyer*; only identifiers ending in ``<code>-<n>`` count.
    """
    pattern = re.compile(rf"{re.escape(code)}-(\d+)$")
    needle = buyer.strip().lower()
    sequences = []
    for po_number, order_buyer in existing:
        po_number = po_number or ""
        if f"/{code}-" not in po_number and (
            not needle or needle not in (order_buyer or "").lower()
        ):
            continue
        match = pattern.search(po_number)
        if match and int(match.group(1)) > 0:
            sequences.append(int(match.group(1)))
    return max(sequences) + 1 if sequences else 1


def format_po_number(
    prefix: str, years: str, sequence: int, code: Optional[str] = None
) -> str:
    if code:
        return f"{prefix}/PO/{years}/{code}-{sequence:03d}"
    return f"{prefix}/PO/{years}/{sequence}"


class PoNumberAllocator:
    """Hands out organisation-unique PO numbers."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        buyer_codes: BuyerCodes,
        prefix: str = "GI",
        floor: int = 0,
        clock: Callable[[], date] = timezone.localdate,
    ) -> None:
        self._order_repo = order_repository
        self._buyer_codes = buyer_codes
        self._prefix = prefix
        self._floor = floor
        self._clock = clock

    def _scan(self, organization_id: UUID, buyer: Optional[str]) -> Tuple[str, int]:
        """Scope (buyer code or ``""``) and the next number by scanning."""
        existing = self._order_repo.existing_identifiers(organization_id)
        if not buyer or not buyer.strip():
            return "", next_generic_number((po for po, _ in existing), self._floor)
        code = buyer_code(self._buyer_codes, buyer)
        return code, next_buyer_sequence(existing, code, buyer)

    def preview(self, organization_id: UUID, buyer: Optional[str] = None) -> str:
        """The number ``allocate`` would return now, without reserving it."""
        years = year_range(self._clock())
        scope, scanned = self._scan(organization_id, buyer)
        row = PoSequence.objects.filter(
            organization_id=organization_id, scope=scope, year_range=years
        ).first()
        value = max(scanned, row.last_value + 1) if row else scanned
        return format_po_number(self._prefix, years, value, scope or None)

    @transaction.atomic
    def allocate(self, organization_id: UUID, buyer: Optional[str] = None) -> str:
        """Reserve and return the next PO number.

        Must run inside the transaction that inserts the order, so the
        sequence row stays locked until the order row exists.
        """
        years = year_range(self._clock())
        scope, scanned = self._scan(organization_id, buyer)
        row = self._lock_sequence(organization_id, scope, years)

        value = max(scanned, row.last_value + 1)
        row.last_value = value
        row.save(update_fields=["last_value"])

        po_number = format_po_number(self._prefix, years, value, scope or None)
        logger.info(
            "po_number.allocated",
            organization_id=str(organization_id),
            scope=scope,
            po_number=po_number,
        )
        return po_number

    @staticmethod
    def _lock_sequence(organization_id: UUID, scope: str, years: str) -> PoSequence:
        lookup = {"organization_id": organization_id, "scope": scope, "year_range": years}
        row = PoSequence.objects.select_for_update().filter(**lookup).first()
        if row is not None:
            return row
        try:
            with transaction.atomic():
                return PoSequence.objects.create(**lookup)
        except IntegrityError:
            # another request created the row first
            return PoSequence.objects.select_for_update().get(**lookup)
