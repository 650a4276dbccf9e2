"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  Write methods
are wrapped in ``transaction.atomic()`` so the aggregate (Order + line
items + ledger) is persisted atomically, and collected domain events are
written to the transactional outbox in the same transaction.

Soft delete depends on the ``deleted_at`` column.  Whether it exists is a
capability resolved once (``modules.core.schema``); without it, reads skip
the deleted filter and deletes become physical.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from modules.core.models import OutboxEvent
from modules.core.schema import schema_capabilities
from modules.orders.constants import AMENDMENT_MARKER, OrderStatus
from modules.orders.dtos import LineItemDTO
from modules.orders.models import HistoryEntry, LineItem, Order
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_HISTORY_FIELDS = (
    "stage",
    "timestamp",
    "sender",
    "recipient",
    "subject",
    "body",
    "has_attachment",
    "attachments",
    "idempotency_key",
    "source_message_id",
)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def supports_soft_delete(self) -> bool:
        return schema_capabilities.supports_soft_delete(Order._meta.db_table)

    def _scoped(self, organization_id: UUID, include_deleted: bool = False):
        queryset = Order.objects.filter(organization_id=organization_id)
        if not self.supports_soft_delete():
            return queryset.defer("deleted_at")
        if not include_deleted:
            queryset = queryset.alive()
        return queryset

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(
        self,
        organization_id: UUID,
        data: Dict[str, Any],
        line_items: Sequence[LineItemDTO],
        history: Iterable[Dict[str, Any]],
    ) -> Order:
        """Insert the order, its line items and its initial ledger entries.

        ``data`` holds Order field values (``po_number`` required).
        """
        order = Order(organization_id=organization_id, **data)
        order.save()
        self._insert_line_items(order, line_items)
        for entry in history:
            self.add_history(order, entry)

        logger.info(
            "order.created",
            order_id=str(order.id),
            po_number=order.po_number,
            item_count=len(line_items),
        )
        return order

    def _insert_line_items(self, order: Order, items: Sequence[LineItemDTO]) -> None:
        for position, item in enumerate(items):
            LineItem(
                order=order,
                position=position,
                **item.model_dump(exclude={"total"}),
            ).save()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(
        self, organization_id: UUID, id: UUID, include_deleted: bool = False
    ) -> Optional[Order]:
        """Retrieve an order with prefetched line items and ledger.

        Returns ``None`` for missing, out-of-scope or malformed IDs.
        """
        try:
            return (
                self._scoped(organization_id, include_deleted)
                .prefetch_related("line_items", "history")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_for_update(
        self, organization_id: UUID, id: UUID, include_deleted: bool = False
    ) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE)."""
        try:
            return (
                self._scoped(organization_id, include_deleted)
                .select_for_update()
                .prefetch_related("line_items", "history")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(
        self,
        organization_id: UUID,
        filters: Optional[Dict[str, Any]] = None,
        include_deleted: bool = False,
    ) -> List[Order]:
        """List orders with optional filters.

        Supported filter keys: ``current_stage``, ``buyer__icontains``,
        ``supplier__icontains``, ``search`` (PO number / buyer / product).
        """
        queryset = self.queryset(organization_id, include_deleted)
        filters = dict(filters or {})
        search = filters.pop("search", None)
        if search:
            queryset = queryset.filter(
                Q(po_number__icontains=search)
                | Q(buyer__icontains=search)
                | Q(product__icontains=search)
            )
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def queryset(self, organization_id: UUID, include_deleted: bool = False):
        return self._scoped(organization_id, include_deleted).prefetch_related(
            "line_items", "history"
        )

    def existing_identifiers(self, organization_id: UUID) -> List[Tuple[str, str]]:
        return list(
            Order.objects.filter(organization_id=organization_id).values_list(
                "po_number", "buyer"
            )
        )

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def compare_and_set_stage(
        self, organization_id: UUID, id: UUID, expected: int, new: int
    ) -> bool:
        updated = (
            self._scoped(organization_id)
            .filter(id=id, current_stage=expected)
            .update(current_stage=new, updated_at=timezone.now())
        )
        return updated == 1

    @transaction.atomic
    def update_fields(self, order: Order, patch: Dict[str, Any]) -> Order:
        if not patch:
            return order
        for field, value in patch.items():
            setattr(order, field, value)
        order.save(update_fields=list(patch))
        logger.info("order.updated", order_id=str(order.id), fields=sorted(patch))
        return order

    @transaction.atomic
    def update_aggregate(
        self,
        order: Order,
        fields: Dict[str, Any],
        line_items: Optional[Sequence[LineItemDTO]] = None,
        history: Iterable[Dict[str, Any]] = (),
    ) -> List[HistoryEntry]:
        """Full update of the aggregate.

        Line items, when given, replace the stored set wholesale.  Of the
        ledger entries passed in, only new ones are inserted: entries that
        carry an ``id`` already exist, and entries whose idempotency key is
        already on the ledger were inserted by an earlier call.
        """
        self.update_fields(order, fields)

        if line_items is not None:
            LineItem.objects.filter(order=order).delete()
            self._insert_line_items(order, line_items)

        known_keys = set(
            HistoryEntry.objects.filter(order=order)
            .exclude(idempotency_key=None)
            .values_list("idempotency_key", flat=True)
        )
        inserted: List[HistoryEntry] = []
        for entry in history:
            key = entry.get("idempotency_key")
            if entry.get("id") or (key and key in known_keys):
                logger.info(
                    "order.history_skipped",
                    order_id=str(order.id),
                    idempotency_key=key,
                )
                continue
            inserted.append(self.add_history(order, entry))
            if key:
                known_keys.add(key)
        return inserted

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def add_history(self, order: Order, entry: Dict[str, Any]) -> HistoryEntry:
        values = {key: entry[key] for key in _HISTORY_FIELDS if entry.get(key) is not None}
        history = HistoryEntry(order=order, **values)
        history.save()
        logger.info(
            "order.history_added",
            order_id=str(order.id),
            entry_id=str(history.id),
            stage=history.stage,
        )
        return history

    def has_history_key(self, order: Order, key: str) -> bool:
        return HistoryEntry.objects.filter(order=order, idempotency_key=key).exists()

    def latest_amendment(self, order: Order) -> Optional[HistoryEntry]:
        return (
            HistoryEntry.objects.filter(order=order, subject__contains=AMENDMENT_MARKER)
            .exclude(idempotency_key=None)
            .exclude(idempotency_key="")
            .order_by("-timestamp", "-created_at")
            .first()
        )

    def get_history_entry(self, order: Order, entry_id: UUID) -> Optional[HistoryEntry]:
        try:
            return HistoryEntry.objects.filter(order=order, id=entry_id).first()
        except (ValueError, ValidationError):
            return None

    def move_history_entry(self, entry: HistoryEntry, to_order: Order) -> HistoryEntry:
        entry.order = to_order
        entry.save(update_fields=["order"])
        return entry

    def delete_history_entry(self, entry: HistoryEntry) -> None:
        entry.delete()

    # ------------------------------------------------------------------
    # Events / Delete
    # ------------------------------------------------------------------

    def record_events(self, entity: Order) -> int:
        """Write collected domain events to the outbox."""
        events = entity.domain_events
        for event in events:
            OutboxEvent.objects.create(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=event.to_payload(),
                topic="orders",
            )
        entity.clear_domain_events()
        if events:
            logger.info(
                "order.events_recorded", order_id=str(entity.id), event_count=len(events)
            )
        return len(events)

    @transaction.atomic
    def soft_delete(self, order: Order) -> bool:
        if self.supports_soft_delete():
            order.status = OrderStatus.DELETED
            order.soft_delete(extra_fields=["status"])
            logger.info("order.soft_deleted", order_id=str(order.id))
            return True

        logger.warning("order.hard_deleted_without_soft_delete", order_id=str(order.id))
        Order.objects.filter(pk=order.pk).defer("deleted_at").delete()
        return False

    @transaction.atomic
    def restore(self, order: Order) -> Order:
        order.status = OrderStatus.SENT
        order.restore(extra_fields=["status"])
        logger.info("order.restored", order_id=str(order.id))
        return order
