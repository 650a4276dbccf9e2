"""Mailbox DRF serializers."""

from __future__ import annotations

from rest_framework import serializers

from modules.mailbox.models import CorrectionRecord, InboundMessage


class LinkMessageSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ReassignEntrySerializer(serializers.Serializer):
    from_order_id = serializers.UUIDField()
    to_order_id = serializers.UUIDField()
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class RemoveEntrySerializer(serializers.Serializer):
    from_order_id = serializers.UUIDField()
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class InboundMessageSerializer(serializers.ModelSerializer):
    matched_order_id = serializers.UUIDField(read_only=True, allow_null=True)
    user_linked_order_id = serializers.UUIDField(read_only=True, allow_null=True)
    is_matched = serializers.BooleanField(read_only=True)

    class Meta:
        model = InboundMessage
        fields = [
            "id",
            "external_id",
            "sender_email",
            "sender_name",
            "recipient",
            "subject",
            "body",
            "received_at",
            "has_attachment",
            "matched_order_id",
            "detected_stage",
            "ai_summary",
            "auto_advanced",
            "user_linked_order_id",
            "user_link_note",
            "user_linked_at",
            "is_matched",
        ]
        read_only_fields = fields


class CorrectionRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = CorrectionRecord
        fields = [
            "id",
            "subject",
            "sender",
            "source_po_number",
            "corrected_target",
            "note",
            "corrected_at",
        ]
        read_only_fields = fields
