"""Order, LineItem, HistoryEntry and PoSequence models.

Rules carried by the schema:
- ``po_number`` is unique per organisation and never changes after insert.
- ``current_stage`` is constrained to 1..8 in the database as well as in
  the service layer.
- Line items are owned by the order and replaced wholesale on amendment;
  ``total`` is recomputed on every save.
- History entries form the order ledger, displayed by ``(stage,
  timestamp)``.  They are moved or deleted only by the mailbox correction
  operations, which always leave a ``CorrectionRecord`` behind.
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel, OrganizationScopedModel, SoftDeleteModel
from modules.orders.constants import (
    AMENDMENT_MARKER,
    DEFAULT_CURRENCY,
    DEFAULT_ORIGIN,
    STAGE_MAX,
    STAGE_MIN,
    TERMINAL_STAGE,
    ArtworkStatus,
    OrderStatus,
    Stage,
)
from modules.orders.line_items import money
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

_STAGE_VALIDATORS = [MinValueValidator(STAGE_MIN), MaxValueValidator(STAGE_MAX)]


class Order(DomainEventMixin, SoftDeleteModel):
    """Order aggregate root.

    ``po_number`` is the human-readable identifier (``GI/PO/25-26/EG-003``)
    used on documents and in correspondence; the UUIDv7 ``id`` is used for
    internal references and API lookups.
    """

    po_number: models.CharField = models.CharField(max_length=64, editable=False)
    buyer: models.CharField = models.CharField(max_length=255)
    supplier: models.CharField = models.CharField(max_length=255)
    product: models.TextField = models.TextField(blank=True, default="")
    specs: models.TextField = models.TextField(blank=True, default="")
    origin: models.CharField = models.CharField(
        max_length=255, blank=True, default=DEFAULT_ORIGIN
    )
    destination: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    order_date: models.DateField = models.DateField(default=timezone.localdate)
    current_stage: models.PositiveSmallIntegerField = models.PositiveSmallIntegerField(
        choices=Stage.choices,
        default=Stage.PURCHASE_ORDER,
        validators=_STAGE_VALIDATORS,
    )
    brand: models.CharField = models.CharField(max_length=255, blank=True, default="")
    pi_number: models.CharField = models.CharField(
        max_length=100, blank=True, default=""
    )
    awb_number: models.CharField = models.CharField(
        max_length=100, blank=True, default=""
    )
    artwork_status: models.CharField = models.CharField(
        max_length=20, choices=ArtworkStatus.choices, blank=True, default=""
    )
    total_value: models.DecimalField = models.DecimalField(
        max_digits=16, decimal_places=2, null=True, blank=True
    )
    total_kilos: models.DecimalField = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    metadata: models.JSONField = models.JSONField(default=dict, blank=True)
    status: models.CharField = models.CharField(
        max_length=20, choices=OrderStatus.choices, default=OrderStatus.SENT
    )
    amendment_sequence: models.PositiveIntegerField = models.PositiveIntegerField(
        default=0
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization_id", "po_number"],
                name="orders_org_po_number_uniq",
            ),
            models.CheckConstraint(
                condition=models.Q(current_stage__gte=STAGE_MIN)
                & models.Q(current_stage__lte=STAGE_MAX),
                name="orders_current_stage_range",
            ),
        ]
        indexes = [
            models.Index(
                fields=["organization_id", "current_stage"],
                name="orders_org_stage_idx",
            ),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]

    @property
    def is_completed(self) -> bool:
        return self.current_stage == TERMINAL_STAGE

    def __str__(self) -> str:
        return f"{self.po_number} (stage {self.current_stage})"


class LineItem(BaseModel):
    """Priced product row of an order.

    ``total`` is always ``round(kilos * price_per_kg, 2)``; case/kilo
    reconciliation against ``packing`` happens before the row is built
    (see :mod:`modules.orders.line_items`).
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="line_items",
    )
    position: models.PositiveIntegerField = models.PositiveIntegerField(default=0)
    product: models.CharField = models.CharField(max_length=255)
    brand: models.CharField = models.CharField(max_length=255, blank=True, default="")
    freezing: models.CharField = models.CharField(
        max_length=100, blank=True, default=""
    )
    size: models.CharField = models.CharField(max_length=100, blank=True, default="")
    glaze: models.CharField = models.CharField(max_length=100, blank=True, default="")
    glaze_marked: models.CharField = models.CharField(
        max_length=100, blank=True, default=""
    )
    packing: models.CharField = models.CharField(
        max_length=100, blank=True, default=""
    )
    cases: models.PositiveIntegerField = models.PositiveIntegerField(default=0)
    kilos: models.DecimalField = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    price_per_kg: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=4, default=Decimal("0.0000")
    )
    currency: models.CharField = models.CharField(
        max_length=3, default=DEFAULT_CURRENCY
    )
    total: models.DecimalField = models.DecimalField(
        max_digits=16, decimal_places=2, editable=False
    )

    class Meta:
        db_table = "order_line_items"
        ordering = ["position", "created_at"]

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.total = money(Decimal(self.kilos) * Decimal(self.price_per_kg))
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product} {self.kilos} kg @ {self.price_per_kg} {self.currency}"


class HistoryEntry(BaseModel):
    """One communication or audit event on an order's ledger.

    ``stage`` records the stage the entry pertains to, not the order's
    stage at the time.  ``attachments`` holds filename strings or
    ``{"name": ..., "meta": {...}}`` objects.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="history",
    )
    stage: models.PositiveSmallIntegerField = models.PositiveSmallIntegerField(
        validators=_STAGE_VALIDATORS
    )
    timestamp: models.DateTimeField = models.DateTimeField(default=timezone.now)
    sender: models.CharField = models.CharField(max_length=255, blank=True, default="")
    recipient: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    subject: models.CharField = models.CharField(
        max_length=500, blank=True, default=""
    )
    body: models.TextField = models.TextField(blank=True, default="")
    has_attachment: models.BooleanField = models.BooleanField(default=False)
    attachments: models.JSONField = models.JSONField(default=list, blank=True)
    source_message: models.ForeignKey = models.ForeignKey(
        "mailbox.InboundMessage",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="history_entries",
    )
    idempotency_key: models.CharField = models.CharField(  # noqa: DJ01
        max_length=255, null=True, blank=True, db_index=True
    )

    class Meta:
        db_table = "order_history"
        ordering = ["stage", "timestamp"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "idempotency_key"],
                name="order_history_order_key_uniq",
            ),
            models.CheckConstraint(
                condition=models.Q(stage__gte=STAGE_MIN) & models.Q(stage__lte=STAGE_MAX),
                name="order_history_stage_range",
            ),
        ]
        indexes = [
            models.Index(
                fields=["order", "stage", "timestamp"],
                name="order_history_display_idx",
            ),
        ]

    @property
    def is_amendment(self) -> bool:
        return AMENDMENT_MARKER in (self.subject or "")

    def __str__(self) -> str:
        return f"[{self.stage}] {self.subject}"


class PoSequence(OrganizationScopedModel):
    """Per-organisation PO counter.

    ``scope`` is a buyer code, or ``""`` for generic numbering.  Rows are
    read with ``SELECT ... FOR UPDATE`` and bumped inside the transaction
    that inserts the order.
    """

    scope: models.CharField = models.CharField(max_length=20, blank=True, default="")
    year_range: models.CharField = models.CharField(max_length=5)
    last_value: models.PositiveIntegerField = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "po_sequences"
        constraints = [
            models.UniqueConstraint(
                fields=["organization_id", "scope", "year_range"],
                name="po_sequences_scope_uniq",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.scope or '*'}/{self.year_range}: {self.last_value}"
