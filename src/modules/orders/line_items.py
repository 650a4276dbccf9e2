"""Line-item arithmetic.

The engine owns reconciliation: callers may send raw kilos and prices,
and every persisted item satisfies

- ``total == round(kilos * price_per_kg, 2)``
- ``kilos == cases * per_case_kg`` whenever ``packing`` encodes a fixed
  weight per case (``6x1 kg``, ``10 kg bulk``, ``6 kilo``).
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from modules.orders.dtos import LineItemDTO
from modules.orders.exceptions import InvalidLineItems

CENT = Decimal("0.01")

_MULTIPLY_PACKING = re.compile(r"(\d+)\s*[xX]\s*(\d+)\s*(?:kg|kilo)?", re.IGNORECASE)
_DIRECT_PACKING = re.compile(r"(\d+)\s*(?:kg|kilo)", re.IGNORECASE)


def money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_packing_kg(packing: str) -> Optional[Decimal]:
    """Kilograms per case encoded in a packing description, if any."""
    if not packing:
        return None
    match = _MULTIPLY_PACKING.search(packing)
    if match:
        return Decimal(int(match.group(1)) * int(match.group(2)))
    match = _DIRECT_PACKING.search(packing)
    if match:
        return Decimal(int(match.group(1)))
    return None


def reconcile_line_item(item: LineItemDTO) -> LineItemDTO:
    """Return *item* with cases, kilos and total made consistent."""
    kilos = item.kilos
    cases = item.cases
    per_case = parse_packing_kg(item.packing)
    if per_case and kilos > 0:
        cases = math.ceil(kilos / per_case)
        kilos = per_case * cases
    return item.model_copy(
        update={
            "cases": cases,
            "kilos": kilos,
            "total": money(kilos * item.price_per_kg),
        }
    )


def validate_line_items(items: Sequence[LineItemDTO], allow_empty: bool = False) -> None:
    if not items and not allow_empty:
        raise InvalidLineItems("At least one line item is required.")
    for position, item in enumerate(items, start=1):
        if not item.product:
            raise InvalidLineItems(f"Line item {position} has no product name.")


def reconcile_all(items: Iterable[LineItemDTO]) -> List[LineItemDTO]:
    return [reconcile_line_item(item) for item in items]


@dataclass(frozen=True)
class LineItemSummary:
    product: str
    specs: str
    total_value: Decimal
    total_kilos: Decimal
    total_cases: int


def item_specs(item: LineItemDTO) -> str:
    parts = [item.size, f"({item.glaze})" if item.glaze else "", item.packing]
    return " ".join(part for part in parts if part)


def summarize(items: Sequence[LineItemDTO]) -> LineItemSummary:
    """Order-level aggregates derived from a (reconciled) item set."""
    return LineItemSummary(
        product=", ".join(item.product for item in items if item.product),
        specs=", ".join(spec for spec in (item_specs(i) for i in items) if spec),
        total_value=money(sum((item.total for item in items), Decimal("0"))),
        total_kilos=money(sum((item.kilos for item in items), Decimal("0"))),
        total_cases=sum(item.cases for item in items),
    )


def snapshot(items: Sequence[LineItemDTO]) -> List[Dict[str, Any]]:
    """JSON-safe copy of an item set, embedded in amendment metadata."""
    return [item.model_dump(mode="json") for item in items]
