"""Inbound message and correction record models.

``InboundMessage`` rows are written by the mail-sync collaborator; this
module only reads them and maintains their link fields.  A message is
*matched* when either the automatic match (``matched_order``) or a manual
link (``user_linked_order``) is present.

``CorrectionRecord`` is keyed by the message's subject and sender, not by
order: it survives the entry being moved or deleted and tells a later
re-sync pass which routing a human already overrode.
"""

from __future__ import annotations

from typing import Optional

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from modules.core.models import OrganizationScopedModel
from modules.orders.constants import STAGE_MAX, STAGE_MIN

REMOVED_TARGET = "REMOVED"


class InboundMessageQuerySet(models.QuerySet):
    def matched(self) -> InboundMessageQuerySet:
        return self.filter(
            Q(matched_order__isnull=False) | Q(user_linked_order__isnull=False)
        )

    def unmatched(self) -> InboundMessageQuerySet:
        return self.filter(matched_order__isnull=True, user_linked_order__isnull=True)


class InboundMessage(OrganizationScopedModel):
    """One synced e-mail with its automatic and manual order association."""

    external_id: models.CharField = models.CharField(max_length=255)
    sender_email: models.CharField = models.CharField(max_length=255)
    sender_name: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    recipient: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    subject: models.CharField = models.CharField(
        max_length=500, blank=True, default=""
    )
    body: models.TextField = models.TextField(blank=True, default="")
    received_at: models.DateTimeField = models.DateTimeField(default=timezone.now)
    has_attachment: models.BooleanField = models.BooleanField(default=False)

    # Automatic match, written by the mail-sync collaborator.
    matched_order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="matched_messages",
    )
    detected_stage: models.PositiveSmallIntegerField = (
        models.PositiveSmallIntegerField(
            null=True,
            blank=True,
            validators=[MinValueValidator(STAGE_MIN), MaxValueValidator(STAGE_MAX)],
        )
    )
    ai_summary: models.TextField = models.TextField(blank=True, default="")
    auto_advanced: models.BooleanField = models.BooleanField(default=False)

    # Manual link.
    user_linked_order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="linked_messages",
    )
    user_link_note: models.TextField = models.TextField(blank=True, default="")
    user_linked_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    objects = InboundMessageQuerySet.as_manager()

    class Meta:
        db_table = "synced_emails"
        ordering = ["-received_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization_id", "external_id"],
                name="synced_emails_org_external_uniq",
            ),
        ]
        indexes = [
            models.Index(
                fields=["organization_id", "-received_at"],
                name="synced_emails_org_recv_idx",
            ),
        ]

    @property
    def is_matched(self) -> bool:
        return self.matched_order_id is not None or self.user_linked_order_id is not None

    def __str__(self) -> str:
        return f"{self.sender_email}: {self.subject}"


class CorrectionRecordQuerySet(models.QuerySet):
    def latest_for(self, subject: str, sender: str) -> Optional[CorrectionRecord]:
        """Most recent correction for a message identified by subject+sender."""
        return (
            self.filter(subject=subject, sender=sender)
            .order_by("-corrected_at", "-created_at")
            .first()
        )


class CorrectionRecord(OrganizationScopedModel):
    """A human override of a message-to-order routing.

    ``corrected_target`` is the destination PO number, or ``REMOVED``.
    """

    subject: models.CharField = models.CharField(max_length=500, blank=True, default="")
    sender: models.CharField = models.CharField(max_length=255, blank=True, default="")
    source_po_number: models.CharField = models.CharField(
        max_length=64, blank=True, default=""
    )
    corrected_target: models.CharField = models.CharField(max_length=64)
    note: models.TextField = models.TextField(blank=True, default="")
    corrected_at: models.DateTimeField = models.DateTimeField(default=timezone.now)

    objects = CorrectionRecordQuerySet.as_manager()

    class Meta:
        db_table = "email_corrections"
        ordering = ["-corrected_at"]
        indexes = [
            models.Index(fields=["subject", "sender"], name="email_corrections_key_idx"),
        ]

    @property
    def is_removal(self) -> bool:
        return self.corrected_target == REMOVED_TARGET

    def __str__(self) -> str:
        return f"{self.subject} → {self.corrected_target}"
