"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.  Each one
extends a base from :mod:`modules.core.exceptions`, which the API layer
translates into an HTTP status.
"""

from __future__ import annotations

from modules.core.exceptions import (
    AllocationRace,
    Conflict,
    InvariantViolation,
    NotFound,
)


class OrderNotFound(NotFound):
    """The requested order does not exist, is soft-deleted, or belongs to
    another organisation."""


class HistoryEntryNotFound(NotFound):
    """The ledger entry does not exist on the given order."""


class InvalidStage(InvariantViolation):
    """Stage outside the 1..8 range."""


class InvalidLineItems(InvariantViolation):
    """Line-item set empty or missing required fields."""


class StageConflict(Conflict):
    """The order's stored stage differs from the caller's previous stage."""


class PoNumberConflict(AllocationRace):
    """Could not insert an order with a unique PO number after retrying."""
