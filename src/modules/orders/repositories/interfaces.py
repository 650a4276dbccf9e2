"""Order repository interface.

Extends ``IRepository[Order]`` with the methods the Order aggregate needs:
atomic creation with line items and ledger, conditional stage writes,
sparse and full updates, ledger maintenance and soft delete.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.dtos import LineItemDTO
    from modules.orders.models import HistoryEntry, Order


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes LineItem children and the HistoryEntry ledger.
    Reads exclude soft-deleted orders unless ``include_deleted`` is set.
    """

    @abstractmethod
    def create(
        self,
        organization_id: UUID,
        data: Dict[str, Any],
        line_items: Sequence[LineItemDTO],
        history: Iterable[Dict[str, Any]],
    ) -> Order:
        """Insert an order, its line items and initial ledger entries."""

    @abstractmethod
    def get_by_id(
        self, organization_id: UUID, id: UUID, include_deleted: bool = False
    ) -> Optional[Order]:
        """Retrieve an order with prefetched line items and ledger."""

    @abstractmethod
    def get_for_update(
        self, organization_id: UUID, id: UUID, include_deleted: bool = False
    ) -> Optional[Order]:
        """Retrieve an order holding a row lock."""

    @abstractmethod
    def list(
        self,
        organization_id: UUID,
        filters: Optional[Dict[str, Any]] = None,
        include_deleted: bool = False,
    ) -> List[Order]:
        """List orders of the organisation."""

    @abstractmethod
    def queryset(self, organization_id: UUID, include_deleted: bool = False) -> Any:
        """Unevaluated, scoped query for API-level filtering and pagination."""

    @abstractmethod
    def existing_identifiers(self, organization_id: UUID) -> List[Tuple[str, str]]:
        """``(po_number, buyer)`` for every order, soft-deleted ones included."""

    @abstractmethod
    def compare_and_set_stage(
        self, organization_id: UUID, id: UUID, expected: int, new: int
    ) -> bool:
        """Write *new* only if the stored stage equals *expected*."""

    @abstractmethod
    def update_fields(self, order: Order, patch: Dict[str, Any]) -> Order:
        """Write only the given fields."""

    @abstractmethod
    def update_aggregate(
        self,
        order: Order,
        fields: Dict[str, Any],
        line_items: Optional[Sequence[LineItemDTO]] = None,
        history: Iterable[Dict[str, Any]] = (),
    ) -> List[HistoryEntry]:
        """Full update: fields, wholesale line items, new ledger entries only."""

    @abstractmethod
    def add_history(self, order: Order, entry: Dict[str, Any]) -> HistoryEntry:
        """Append one ledger entry."""

    @abstractmethod
    def has_history_key(self, order: Order, key: str) -> bool:
        """Whether a ledger entry with this idempotency key exists."""

    @abstractmethod
    def latest_amendment(self, order: Order) -> Optional[HistoryEntry]:
        """Most recent amendment entry of the order."""

    @abstractmethod
    def get_history_entry(self, order: Order, entry_id: UUID) -> Optional[HistoryEntry]:
        """A ledger entry belonging to *order*."""

    @abstractmethod
    def move_history_entry(self, entry: HistoryEntry, to_order: Order) -> HistoryEntry:
        """Re-parent a ledger entry."""

    @abstractmethod
    def delete_history_entry(self, entry: HistoryEntry) -> None:
        """Physically remove a ledger entry."""

    @abstractmethod
    def record_events(self, entity: Order) -> int:
        """Write the aggregate's collected domain events to the outbox."""

    @abstractmethod
    def soft_delete(self, order: Order) -> bool:
        """Soft-delete; hard-delete when the schema lacks ``deleted_at``.

        Returns ``True`` for a soft delete.
        """

    @abstractmethod
    def restore(self, order: Order) -> Order:
        """Clear the soft-delete marker."""

    @abstractmethod
    def supports_soft_delete(self) -> bool:
        """Capability flag for the ``deleted_at`` column."""
