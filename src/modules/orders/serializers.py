"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from rest_framework import serializers

from modules.orders.constants import DEFAULT_CURRENCY, DEFAULT_ORIGIN, ArtworkStatus
from modules.orders.models import HistoryEntry, LineItem, Order

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class LineItemInputSerializer(serializers.Serializer):
    """Validates a single line item; totals are recomputed server-side."""

    product = serializers.CharField(max_length=255)
    brand = serializers.CharField(required=False, default="", allow_blank=True)
    freezing = serializers.CharField(required=False, default="", allow_blank=True)
    size = serializers.CharField(required=False, default="", allow_blank=True)
    glaze = serializers.CharField(required=False, default="", allow_blank=True)
    glaze_marked = serializers.CharField(required=False, default="", allow_blank=True)
    packing = serializers.CharField(required=False, default="", allow_blank=True)
    cases = serializers.IntegerField(required=False, default=0, min_value=0)
    kilos = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    price_per_kg = serializers.DecimalField(
        max_digits=12, decimal_places=4, min_value=0
    )
    currency = serializers.CharField(
        required=False, default=DEFAULT_CURRENCY, max_length=3
    )


class HistoryEntryInputSerializer(serializers.Serializer):
    """The stage-1 entry a caller may supply when creating an order."""

    timestamp = serializers.DateTimeField(required=False, allow_null=True, default=None)
    sender = serializers.CharField(required=False, default="", allow_blank=True)
    recipient = serializers.CharField(required=False, default="", allow_blank=True)
    subject = serializers.CharField(required=False, default="", allow_blank=True)
    body = serializers.CharField(required=False, default="", allow_blank=True)
    has_attachment = serializers.BooleanField(required=False, default=False)
    attachments = serializers.ListField(
        child=serializers.JSONField(), required=False, default=list
    )


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload."""

    buyer = serializers.CharField(max_length=255)
    supplier = serializers.CharField(max_length=255)
    po_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    product = serializers.CharField(required=False, default="", allow_blank=True)
    specs = serializers.CharField(required=False, default="", allow_blank=True)
    origin = serializers.CharField(required=False, default=DEFAULT_ORIGIN, allow_blank=True)
    destination = serializers.CharField(required=False, default="", allow_blank=True)
    order_date = serializers.DateField(required=False)
    current_stage = serializers.IntegerField(required=False, default=1)
    brand = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    pi_number = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    awb_number = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    metadata = serializers.DictField(required=False, default=dict)
    line_items = LineItemInputSerializer(many=True, required=False, default=list)
    initial_entry = HistoryEntryInputSerializer(required=False)


class EditOrderSerializer(serializers.Serializer):
    """Sparse patch: only keys present in the request are applied."""

    buyer = serializers.CharField(max_length=255, required=False)
    supplier = serializers.CharField(max_length=255, required=False)
    product = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    specs = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    origin = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    destination = serializers.CharField(
        required=False, allow_blank=True, allow_null=True
    )
    brand = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    pi_number = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    awb_number = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    artwork_status = serializers.ChoiceField(
        choices=ArtworkStatus.choices, required=False, allow_blank=True, allow_null=True
    )
    total_value = serializers.DecimalField(
        max_digits=16, decimal_places=2, required=False, allow_null=True
    )
    total_kilos = serializers.DecimalField(
        max_digits=14, decimal_places=2, required=False, allow_null=True
    )
    metadata = serializers.DictField(required=False, allow_null=True)


class AdvanceStageSerializer(serializers.Serializer):
    """Range checks happen in the service so they surface as domain errors."""

    new_stage = serializers.IntegerField()
    previous_stage = serializers.IntegerField(required=False, allow_null=True)


class AmendOrderSerializer(serializers.Serializer):
    line_items = LineItemInputSerializer(many=True, allow_empty=False)
    carried_metadata = serializers.DictField(required=False, default=dict)
    sender = serializers.CharField(required=False, allow_blank=True)


class NextPoNumberSerializer(serializers.Serializer):
    buyer = serializers.CharField(required=False, allow_blank=True, default="")


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class LineItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = LineItem
        fields = [
            "id",
            "position",
            "product",
            "brand",
            "freezing",
            "size",
            "glaze",
            "glaze_marked",
            "packing",
            "cases",
            "kilos",
            "price_per_kg",
            "currency",
            "total",
        ]
        read_only_fields = fields


class HistoryEntrySerializer(serializers.ModelSerializer):
    """Read serializer for ledger entries."""

    source_message_id = serializers.UUIDField(read_only=True, allow_null=True)
    is_amendment = serializers.BooleanField(read_only=True)

    class Meta:
        model = HistoryEntry
        fields = [
            "id",
            "stage",
            "timestamp",
            "sender",
            "recipient",
            "subject",
            "body",
            "has_attachment",
            "attachments",
            "source_message_id",
            "is_amendment",
        ]
        read_only_fields = fields


class _DeletedAtMixin(serializers.Serializer):
    deleted_at = serializers.SerializerMethodField()

    def get_deleted_at(self, obj: Order) -> Optional[str]:
        # deferred when the schema has no deleted_at column
        if "deleted_at" in obj.get_deferred_fields() or obj.deleted_at is None:
            return None
        return serializers.DateTimeField().to_representation(obj.deleted_at)


class OrderSerializer(_DeletedAtMixin, serializers.ModelSerializer):
    """Read serializer for orders with nested line items and ledger."""

    line_items = LineItemSerializer(many=True, read_only=True)
    history = HistoryEntrySerializer(many=True, read_only=True)
    is_completed = serializers.BooleanField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "organization_id",
            "po_number",
            "buyer",
            "supplier",
            "product",
            "specs",
            "origin",
            "destination",
            "order_date",
            "current_stage",
            "is_completed",
            "brand",
            "pi_number",
            "awb_number",
            "artwork_status",
            "total_value",
            "total_kilos",
            "metadata",
            "status",
            "amendment_sequence",
            "deleted_at",
            "created_at",
            "updated_at",
            "line_items",
            "history",
        ]
        read_only_fields = fields


class OrderListSerializer(_DeletedAtMixin, serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "po_number",
            "buyer",
            "supplier",
            "product",
            "current_stage",
            "total_value",
            "total_kilos",
            "status",
            "deleted_at",
            "created_at",
        ]
        read_only_fields = fields


def documentation_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """JSON shape of ``OrderService.get_documentation``: stage keys as strings."""
    return {
        "stages": {str(stage): value for stage, value in data["stages"].items()},
        "document_url": data["document_url"],
    }
