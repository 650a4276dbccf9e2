"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers) and the
Service layer.  DTOs are immutable (``frozen=True``).

- ``LineItemDTO``: one priced product row (the Line Item Set value type).
- ``HistoryEntryDTO``: a ledger entry supplied by a caller.
- ``CreateOrderDTO``: input for order creation.
- ``EditOrderDTO``: sparse patch; only fields the caller set are written.
- ``AdvanceStageDTO``: stage move with optional expected previous stage.
- ``AmendOrderDTO``: wholesale line-item replacement.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.orders.constants import DEFAULT_CURRENCY, DEFAULT_ORIGIN, STAGE_MIN

# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


class LineItemDTO(BaseModel):
    """Immutable line item.

    ``total`` is informational on input; the engine always recomputes it
    (see :func:`modules.orders.line_items.reconcile_line_item`).
    """

    model_config = ConfigDict(frozen=True)

    product: str = ""
    brand: str = ""
    freezing: str = ""
    size: str = ""
    glaze: str = ""
    glaze_marked: str = ""
    packing: str = ""
    cases: int = Field(default=0, ge=0)
    kilos: Decimal = Field(default=Decimal("0"), ge=0)
    price_per_kg: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = DEFAULT_CURRENCY
    total: Decimal = Decimal("0.00")

    @field_validator("product", "brand", "freezing", "size", "glaze", "glaze_marked", "packing")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return (v or DEFAULT_CURRENCY).strip().upper()


class HistoryEntryDTO(BaseModel):
    """A ledger entry supplied by the caller (creation entry, round-trips).

    ``id`` is set only for entries that already exist; the repository
    never inserts those again.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    stage: int = STAGE_MIN
    timestamp: Optional[datetime] = None
    sender: str = ""
    recipient: str = ""
    subject: str = ""
    body: str = ""
    has_attachment: bool = False
    attachments: List[Any] = Field(default_factory=list)
    idempotency_key: Optional[str] = None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation.

    ``po_number`` is allocated when omitted.  ``product`` and ``specs``
    are derived from the line items when left blank.  ``current_stage``
    lets an order imported mid-workflow start past stage 1.
    """

    model_config = ConfigDict(frozen=True)

    buyer: str
    supplier: str
    po_number: Optional[str] = None
    product: str = ""
    specs: str = ""
    origin: str = DEFAULT_ORIGIN
    destination: str = ""
    order_date: Optional[date] = None
    current_stage: int = STAGE_MIN
    brand: Optional[str] = None
    pi_number: Optional[str] = None
    awb_number: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    line_items: List[LineItemDTO] = Field(default_factory=list)
    initial_entry: Optional[HistoryEntryDTO] = None

    @field_validator("buyer", "supplier")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Must not be blank.")
        return v.strip()


class EditOrderDTO(BaseModel):
    """Sparse patch over the editable order fields.

    ``po_number`` and ``current_stage`` are deliberately absent: the
    identifier is immutable and stage moves go through ``advance_stage``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    buyer: Optional[str] = None
    supplier: Optional[str] = None
    product: Optional[str] = None
    specs: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    brand: Optional[str] = None
    pi_number: Optional[str] = None
    awb_number: Optional[str] = None
    artwork_status: Optional[str] = None
    total_value: Optional[Decimal] = None
    total_kilos: Optional[Decimal] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_patch(self) -> Dict[str, Any]:
        """Only the fields the caller explicitly supplied."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class AdvanceStageDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    new_stage: int
    previous_stage: Optional[int] = None


class AmendOrderDTO(BaseModel):
    """Immutable DTO for an amendment.

    ``idempotency_key`` is optional; without one the payload fingerprint
    is used to detect an identical resubmission.
    """

    model_config = ConfigDict(frozen=True)

    line_items: List[LineItemDTO]
    carried_metadata: Dict[str, Any] = Field(default_factory=dict)
    idempotency_key: Optional[str] = None
    sender: Optional[str] = None

    def fingerprint(self) -> str:
        """SHA-256 over the canonical JSON of items + carried metadata."""
        canonical = json.dumps(
            {
                "line_items": [
                    item.model_dump(exclude={"total"}) for item in self.line_items
                ],
                "carried_metadata": self.carried_metadata,
            },
            sort_keys=True,
            default=_canonical_scalar,
        )
        return "fp:" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _canonical_scalar(value: Any) -> str:
    # 1000, 1000.0 and 1000.00 must fingerprint the same
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    return str(value)
