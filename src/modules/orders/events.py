"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created."""

    po_number: str = ""


@dataclass(frozen=True)
class OrderStageChanged(DomainEvent):
    """Raised on every stage move, including backward and no-op moves."""

    po_number: str = ""
    previous_stage: Optional[int] = None
    new_stage: Optional[int] = None


@dataclass(frozen=True)
class OrderAmended(DomainEvent):
    """Raised when the line-item set of an order is replaced."""

    po_number: str = ""
    amendment_sequence: int = 0


@dataclass(frozen=True)
class OrderSoftDeleted(DomainEvent):
    """Raised when an order is hidden from listings."""


@dataclass(frozen=True)
class OrderRestored(DomainEvent):
    """Raised when a soft-deleted order is brought back."""
