"""Order service layer (Use Cases).

Orchestrates the order lifecycle: creation with PO allocation, stage
moves, sparse edits, amendments, soft delete and restore.  All write
operations are atomic; the service defines the unit-of-work boundary.

Rules enforced:
- ``current_stage`` stays within 1..8; a rejected move leaves it untouched.
- Every stage move (forward, backward or no-op) appends one ledger entry
  whose stage is the new stage.
- An amendment replaces the line items wholesale and appends exactly one
  ``AMENDED`` entry; a resubmitted amendment is a no-op.
- Soft-deleted orders are invisible unless explicitly requested.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional
from uuid import UUID

import structlog
from django.db import IntegrityError, transaction
from django.utils import timezone

from modules.core.exceptions import SchemaCompatibilityError
from modules.orders import ledger
from modules.orders.constants import AMENDMENT_MARKER, PDF_URL_KEY, Stage
from modules.orders.events import (
    OrderAmended,
    OrderCreated,
    OrderRestored,
    OrderSoftDeleted,
    OrderStageChanged,
)
from modules.orders.exceptions import OrderNotFound, PoNumberConflict, StageConflict
from modules.orders.line_items import (
    reconcile_all,
    snapshot,
    summarize,
    validate_line_items,
)
from modules.orders.stages import render_transition, validate_stage

if TYPE_CHECKING:
    from modules.orders.allocator import PoNumberAllocator
    from modules.orders.dtos import (
        AmendOrderDTO,
        CreateOrderDTO,
        EditOrderDTO,
        LineItemDTO,
    )
    from modules.orders.line_items import LineItemSummary
    from modules.orders.models import HistoryEntry, Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.orders.stages import StageNames

logger = structlog.get_logger(__name__)

# Fields that are NOT NULL text columns: an explicit null in a patch clears them.
_TEXT_FIELDS = frozenset(
    {
        "buyer",
        "supplier",
        "product",
        "specs",
        "origin",
        "destination",
        "brand",
        "pi_number",
        "awb_number",
        "artwork_status",
    }
)


def document_filename(po_number: str) -> str:
    return f"{po_number.replace('/', '_')}.pdf"


class OrderService:
    """Application service for Order use-cases.

    Receives the repository, the PO allocator and the stage-name lookup via
    constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        allocator: PoNumberAllocator,
        stage_names: StageNames,
        system_actor: str = "System",
        clock: Callable[[], datetime] = timezone.now,
        max_po_retries: int = 3,
    ) -> None:
        self._order_repo = order_repository
        self._allocator = allocator
        self._stage_names = stage_names
        self._system_actor = system_actor
        self._clock = clock
        self._max_po_retries = max(1, max_po_retries)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, organization_id: UUID, dto: CreateOrderDTO) -> Order:
        """Create an order with its line items and initial ledger entry.

        Steps:
        1. Validate the starting stage and reconcile line items.
        2. Allocate a PO number unless the caller supplied one.
        3. Insert order + items + stage-1 entry in a savepoint; on a PO
           number collision, allocate again (bounded).
        4. Record ``OrderCreated`` in the outbox.

        Raises:
            InvalidStage: ``current_stage`` outside 1..8.
            InvalidLineItems: an item has no product name.
            PoNumberConflict: the PO number is taken (supplied) or retries
                ran out (allocated).
        """
        log = logger.bind(organization_id=str(organization_id), buyer=dto.buyer)
        log.info("order.creation_started")

        stage = validate_stage(dto.current_stage)
        validate_line_items(dto.line_items, allow_empty=True)
        items = reconcile_all(dto.line_items)
        summary = summarize(items) if items else None

        for attempt in range(1, self._max_po_retries + 1):
            po_number = dto.po_number or self._allocator.allocate(
                organization_id, dto.buyer
            )
            try:
                with transaction.atomic():
                    order = self._order_repo.create(
                        organization_id,
                        self._order_fields(dto, po_number, stage, summary),
                        items,
                        [self._creation_entry(dto, po_number, items, summary)],
                    )
            except IntegrityError:
                log.warning(
                    "order.po_number_collision", po_number=po_number, attempt=attempt
                )
                if dto.po_number:
                    raise PoNumberConflict(
                        f"PO number {po_number} already exists."
                    ) from None
                continue
            break
        else:
            raise PoNumberConflict(
                f"Could not allocate a unique PO number after "
                f"{self._max_po_retries} attempts."
            )

        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                organization_id=organization_id,
                po_number=order.po_number,
            )
        )
        self._order_repo.record_events(order)

        log.info("order.created", order_id=str(order.id), po_number=order.po_number)
        return self._order_repo.get_by_id(organization_id, order.id) or order

    @transaction.atomic
    def advance_stage(
        self,
        organization_id: UUID,
        order_id: UUID,
        new_stage: int,
        previous_stage: Optional[int] = None,
    ) -> Order:
        """Move an order to any stage (forward, backward or the same).

        ``previous_stage`` defaults to the stored stage.  The write is a
        conditional update on that value, so a client holding a stale view
        gets ``StageConflict`` instead of silently overwriting a newer move.
        The transition entry is appended unconditionally; earlier entries
        at later stages are left as they are.

        Raises:
            InvalidStage: ``new_stage`` or ``previous_stage`` outside 1..8.
            OrderNotFound: order absent, soft-deleted or out of scope.
            StageConflict: stored stage differs from ``previous_stage``.
        """
        new_stage = validate_stage(new_stage)
        if previous_stage is not None:
            previous_stage = validate_stage(previous_stage)

        order = self._get_or_raise(organization_id, order_id)
        expected = order.current_stage if previous_stage is None else previous_stage
        log = logger.bind(
            order_id=str(order.id), previous_stage=expected, new_stage=new_stage
        )

        if not self._order_repo.compare_and_set_stage(
            organization_id, order.id, expected, new_stage
        ):
            log.warning("order.stage_conflict", stored_stage=order.current_stage)
            raise StageConflict(
                f"Order {order.po_number} is no longer at stage {expected}."
            )

        transition = render_transition(self._stage_names, expected, new_stage)
        self._order_repo.add_history(
            order,
            {
                "stage": new_stage,
                "timestamp": self._clock(),
                "sender": self._system_actor,
                "subject": f"Stage changed: {transition}",
                "body": f"Order {order.po_number} moved: {transition}.",
            },
        )

        order.add_domain_event(
            OrderStageChanged(
                aggregate_id=order.id,
                organization_id=organization_id,
                po_number=order.po_number,
                previous_stage=expected,
                new_stage=new_stage,
            )
        )
        self._order_repo.record_events(order)

        log.info("order.stage_changed")
        return self._get_or_raise(organization_id, order.id)

    @transaction.atomic
    def edit_order(
        self, organization_id: UUID, order_id: UUID, dto: EditOrderDTO
    ) -> Order:
        """Apply a sparse patch: only the fields present in *dto* are written.

        Raises:
            OrderNotFound: order absent, soft-deleted or out of scope.
        """
        order = self._get_for_update_or_raise(organization_id, order_id)

        patch: Dict[str, Any] = {}
        for field, value in dto.to_patch().items():
            if value is None and field in _TEXT_FIELDS:
                value = ""
            elif value is None and field == "metadata":
                value = {}
            patch[field] = value

        self._order_repo.update_fields(order, patch)
        logger.info("order.edited", order_id=str(order.id), fields=sorted(patch))
        return self._get_or_raise(organization_id, order.id)

    @transaction.atomic
    def amend_order(
        self, organization_id: UUID, order_id: UUID, dto: AmendOrderDTO
    ) -> Order:
        """Replace the line items and append one ``AMENDED`` ledger entry.

        The entry is keyed by the caller's idempotency key or, when none is
        given, by the payload fingerprint suffixed with the amendment
        sequence (an older payload may legitimately come back).  A request
        whose key is already on the ledger, or whose fingerprint matches the
        latest amendment, changes nothing and returns the current order.

        Raises:
            OrderNotFound: order absent, soft-deleted or out of scope.
            InvalidLineItems: empty set or an item without a product name.
        """
        order = self._get_for_update_or_raise(organization_id, order_id)
        validate_line_items(dto.line_items)

        key = dto.idempotency_key or dto.fingerprint()
        log = logger.bind(order_id=str(order.id), idempotency_key=key)
        if self._is_duplicate_amendment(order, dto, key):
            log.info("order.amendment_duplicate")
            return self._get_or_raise(organization_id, order.id)

        items = reconcile_all(dto.line_items)
        summary = summarize(items)
        sequence = order.amendment_sequence + 1
        entry_key = key if dto.idempotency_key else f"{key}:{sequence}"
        entries = list(order.history.all())

        meta: Dict[str, Any] = {
            **(ledger.latest_attachment_meta(entries) or {}),
            **dto.carried_metadata,
            "total_cases": summary.total_cases,
            "total_kilos": str(summary.total_kilos),
            "grand_total": str(summary.total_value),
            "line_items": snapshot(items),
        }
        currency = items[0].currency

        fields: Dict[str, Any] = {
            "product": summary.product,
            "specs": summary.specs,
            "total_value": summary.total_value,
            "total_kilos": summary.total_kilos,
            "amendment_sequence": sequence,
        }
        if meta.get(PDF_URL_KEY):
            fields["metadata"] = {**(order.metadata or {}), PDF_URL_KEY: meta[PDF_URL_KEY]}

        self._order_repo.update_aggregate(
            order,
            fields,
            line_items=items,
            history=[
                {
                    "stage": Stage.PURCHASE_ORDER,
                    "timestamp": self._clock(),
                    "sender": dto.sender or self._system_actor,
                    "subject": f"{AMENDMENT_MARKER} PO {order.po_number}",
                    "body": (
                        f"Purchase order {order.po_number} amended. "
                        f"Total: {currency} {summary.total_value}, "
                        f"{summary.total_kilos} kg in {summary.total_cases} cases."
                    ),
                    "has_attachment": True,
                    "attachments": [
                        {"name": document_filename(order.po_number), "meta": meta}
                    ],
                    "idempotency_key": entry_key,
                }
            ],
        )

        order.add_domain_event(
            OrderAmended(
                aggregate_id=order.id,
                organization_id=organization_id,
                po_number=order.po_number,
                amendment_sequence=order.amendment_sequence,
            )
        )
        self._order_repo.record_events(order)

        log.info(
            "order.amended",
            amendment_sequence=order.amendment_sequence,
            item_count=len(items),
            total_value=str(summary.total_value),
        )
        return self._get_or_raise(organization_id, order.id)

    @transaction.atomic
    def soft_delete(self, organization_id: UUID, order_id: UUID) -> bool:
        """Hide an order from listings.

        Returns ``False`` when the schema has no ``deleted_at`` column and
        the order had to be removed physically instead.

        Raises:
            OrderNotFound: order absent, already deleted or out of scope.
        """
        order = self._get_for_update_or_raise(organization_id, order_id)
        soft = self._order_repo.soft_delete(order)
        if soft:
            order.add_domain_event(
                OrderSoftDeleted(aggregate_id=order.id, organization_id=organization_id)
            )
            self._order_repo.record_events(order)
        return soft

    @transaction.atomic
    def restore(self, organization_id: UUID, order_id: UUID) -> Order:
        """Bring a soft-deleted order back with its items and ledger intact.

        Raises:
            SchemaCompatibilityError: the schema cannot soft delete, so
                there is nothing to restore from.
            OrderNotFound: order absent or out of scope.
        """
        if not self._order_repo.supports_soft_delete():
            raise SchemaCompatibilityError(
                "Restore requires the deleted_at column on orders."
            )
        order = self._order_repo.get_for_update(
            organization_id, order_id, include_deleted=True
        )
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        if order.is_deleted:
            self._order_repo.restore(order)
            order.add_domain_event(
                OrderRestored(aggregate_id=order.id, organization_id=organization_id)
            )
            self._order_repo.record_events(order)
        return self._get_or_raise(organization_id, order.id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(
        self, organization_id: UUID, order_id: UUID, include_deleted: bool = False
    ) -> Order:
        """Retrieve a single order.

        Raises:
            OrderNotFound: if the order does not exist in the organisation.
        """
        order = self._order_repo.get_by_id(
            organization_id, order_id, include_deleted=include_deleted
        )
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(
        self,
        organization_id: UUID,
        filters: Optional[Dict[str, Any]] = None,
        include_deleted: bool = False,
    ) -> List[Order]:
        return self._order_repo.list(
            organization_id, filters, include_deleted=include_deleted
        )

    def order_queryset(self, organization_id: UUID, include_deleted: bool = False):
        return self._order_repo.queryset(organization_id, include_deleted)

    def get_history(
        self, organization_id: UUID, order_id: UUID, recent: bool = False
    ) -> List[HistoryEntry]:
        """The ledger, stage-grouped (default) or newest first."""
        entries = list(self.get_order(organization_id, order_id).history.all())
        if recent:
            return ledger.recent_activity(entries)
        return ledger.sorted_for_display(entries)

    def get_documentation(self, organization_id: UUID, order_id: UUID) -> Dict[str, Any]:
        order = self.get_order(organization_id, order_id)
        entries = list(order.history.all())
        return {
            "stages": ledger.documentation_map(order, entries),
            "document_url": ledger.document_url(order, entries),
        }

    def next_po_number(
        self, organization_id: UUID, buyer: Optional[str] = None, reserve: bool = False
    ) -> str:
        """Preview the next PO number or, with ``reserve``, take it."""
        if reserve:
            return self._allocator.allocate(organization_id, buyer)
        return self._allocator.preview(organization_id, buyer)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_or_raise(self, organization_id: UUID, order_id: UUID) -> Order:
        return self.get_order(organization_id, order_id)

    def _get_for_update_or_raise(self, organization_id: UUID, order_id: UUID) -> Order:
        order = self._order_repo.get_for_update(organization_id, order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _is_duplicate_amendment(
        self, order: Order, dto: AmendOrderDTO, key: str
    ) -> bool:
        if dto.idempotency_key:
            return self._order_repo.has_history_key(order, key)
        latest = self._order_repo.latest_amendment(order)
        if latest is None or not latest.idempotency_key:
            return False
        return latest.idempotency_key.startswith(f"{key}:")

    @staticmethod
    def _order_fields(
        dto: CreateOrderDTO,
        po_number: str,
        stage: int,
        summary: Optional[LineItemSummary],
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "po_number": po_number,
            "buyer": dto.buyer,
            "supplier": dto.supplier,
            "product": dto.product or (summary.product if summary else ""),
            "specs": dto.specs or (summary.specs if summary else ""),
            "origin": dto.origin,
            "destination": dto.destination,
            "current_stage": stage,
            "brand": dto.brand or "",
            "pi_number": dto.pi_number or "",
            "awb_number": dto.awb_number or "",
            "metadata": dict(dto.metadata),
        }
        if dto.order_date:
            fields["order_date"] = dto.order_date
        if summary:
            fields["total_value"] = summary.total_value
            fields["total_kilos"] = summary.total_kilos
        return fields

    def _creation_entry(
        self,
        dto: CreateOrderDTO,
        po_number: str,
        items: List[LineItemDTO],
        summary: Optional[LineItemSummary],
    ) -> Dict[str, Any]:
        """The stage-1 entry: the caller's, or a synthesised ``NEW PO`` one."""
        if dto.initial_entry is not None:
            supplied = dto.initial_entry.model_dump(exclude={"id"})
            supplied["stage"] = Stage.PURCHASE_ORDER
            supplied["timestamp"] = supplied["timestamp"] or self._clock()
            supplied["has_attachment"] = supplied["has_attachment"] or bool(
                supplied["attachments"]
            )
            return supplied

        entry: Dict[str, Any] = {
            "stage": Stage.PURCHASE_ORDER,
            "timestamp": self._clock(),
            "sender": dto.supplier,
            "recipient": dto.buyer,
            "subject": f"NEW PO {po_number}",
            "body": f"Purchase order {po_number} issued to {dto.buyer}.",
        }
        if summary:
            entry["has_attachment"] = True
            entry["attachments"] = [
                {
                    "name": document_filename(po_number),
                    "meta": {
                        **dto.metadata,
                        "total_cases": summary.total_cases,
                        "total_kilos": str(summary.total_kilos),
                        "grand_total": str(summary.total_value),
                        "line_items": snapshot(items),
                    },
                }
            ]
        return entry
