"""Email association service layer (Use Cases).

Binds inbound messages to orders and corrects bindings after the fact:

- ``link_unmatched_message`` appends a ledger entry on the order from the
  message, then records the manual link on the message.  Both happen in
  one transaction; if the ledger write fails the link is not written.
- ``unlink_message`` returns a message to the unmatched pool; ledger
  entries already created from it stay where they are.
- ``reassign_history_entry`` / ``remove_history_entry`` move or delete one
  ledger entry and always leave a ``CorrectionRecord`` behind.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Callable, List, Optional
from uuid import UUID

import structlog
from django.db import DatabaseError, transaction
from django.utils import timezone

from modules.mailbox.events import (
    HistoryEntryReassigned,
    HistoryEntryRemoved,
    MessageLinked,
)
from modules.mailbox.exceptions import (
    LedgerWriteFailed,
    MessageNotFound,
    SameOrderReassignment,
)
from modules.mailbox.models import REMOVED_TARGET
from modules.orders.constants import STAGE_MAX, STAGE_MIN, Stage
from modules.orders.exceptions import HistoryEntryNotFound, OrderNotFound

if TYPE_CHECKING:
    from modules.mailbox.models import CorrectionRecord, InboundMessage
    from modules.mailbox.repositories.interfaces import IMessageRepository
    from modules.orders.models import HistoryEntry, Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class EmailAssociationService:
    """Application service for message-to-order association.

    Receives repositories via constructor injection (DIP).
    """

    def __init__(
        self,
        message_repository: IMessageRepository,
        order_repository: IOrderRepository,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._message_repo = message_repository
        self._order_repo = order_repository
        self._clock = clock

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def link_unmatched_message(
        self,
        organization_id: UUID,
        message_id: UUID,
        order_id: UUID,
        note: Optional[str] = None,
    ) -> InboundMessage:
        """Link a message to an order and add it to the order's ledger.

        The entry takes the message's detected stage (stage 1 when none was
        detected), its timestamp, addresses, subject, body and attachment
        flag, and keeps a reference back to the message.

        Raises:
            MessageNotFound: message absent or out of scope.
            OrderNotFound: target order absent, soft-deleted or out of scope.
            LedgerWriteFailed: the entry could not be written; the message
                is left unlinked.
        """
        message = self._get_message_for_update(organization_id, message_id)
        order = self._get_order(organization_id, order_id)
        log = logger.bind(message_id=str(message.id), order_id=str(order.id))

        try:
            with transaction.atomic():
                entry = self._order_repo.add_history(
                    order,
                    {
                        "stage": _entry_stage(message.detected_stage),
                        "timestamp": message.received_at,
                        "sender": message.sender_email,
                        "recipient": message.recipient,
                        "subject": message.subject,
                        "body": message.body,
                        "has_attachment": message.has_attachment,
                        "source_message_id": message.id,
                    },
                )
        except DatabaseError as exc:
            log.error("mailbox.ledger_write_failed", error=str(exc))
            raise LedgerWriteFailed(
                f"Could not add message {message.id} to the ledger of "
                f"{order.po_number}; the link was not recorded."
            ) from exc

        self._message_repo.update_fields(
            message,
            {
                "user_linked_order": order,
                "user_link_note": note or "",
                "user_linked_at": self._clock(),
            },
        )
        self._message_repo.record_event(
            MessageLinked(
                aggregate_id=order.id,
                organization_id=organization_id,
                message_id=str(message.id),
                history_entry_id=str(entry.id),
            )
        )

        log.info("mailbox.message_linked", history_entry_id=str(entry.id))
        return message

    @transaction.atomic
    def unlink_message(self, organization_id: UUID, message_id: UUID) -> InboundMessage:
        """Clear automatic match and manual link fields.

        Raises:
            MessageNotFound: message absent or out of scope.
        """
        message = self._get_message_for_update(organization_id, message_id)
        self._message_repo.update_fields(
            message,
            {
                "matched_order": None,
                "detected_stage": None,
                "ai_summary": "",
                "auto_advanced": False,
                "user_linked_order": None,
                "user_link_note": "",
                "user_linked_at": None,
            },
        )
        logger.info("mailbox.message_unlinked", message_id=str(message.id))
        return message

    @transaction.atomic
    def reassign_history_entry(
        self,
        organization_id: UUID,
        entry_id: UUID,
        from_order_id: UUID,
        to_order_id: UUID,
        note: Optional[str] = None,
    ) -> CorrectionRecord:
        """Move one ledger entry to another order.

        Raises:
            SameOrderReassignment: source and target are the same order.
            OrderNotFound: either order absent or out of scope.
            HistoryEntryNotFound: the entry is not on the source order.
        """
        if from_order_id == to_order_id:
            raise SameOrderReassignment("Source and target orders are the same.")

        source = self._get_order_for_update(organization_id, from_order_id)
        target = self._get_order(organization_id, to_order_id)
        entry = self._get_entry(source, entry_id)

        self._order_repo.move_history_entry(entry, target)
        correction = self._message_repo.add_correction(
            organization_id,
            {
                "subject": entry.subject,
                "sender": entry.sender,
                "source_po_number": source.po_number,
                "corrected_target": target.po_number,
                "note": note or f"Moved from {source.po_number} to {target.po_number}",
                "corrected_at": self._clock(),
            },
        )
        self._message_repo.record_event(
            HistoryEntryReassigned(
                aggregate_id=source.id,
                organization_id=organization_id,
                history_entry_id=str(entry.id),
                target_order_id=str(target.id),
                corrected_target=target.po_number,
            )
        )

        logger.info(
            "mailbox.history_reassigned",
            history_entry_id=str(entry.id),
            from_po_number=source.po_number,
            to_po_number=target.po_number,
        )
        return correction

    @transaction.atomic
    def remove_history_entry(
        self,
        organization_id: UUID,
        entry_id: UUID,
        from_order_id: UUID,
        note: Optional[str] = None,
    ) -> CorrectionRecord:
        """Delete one ledger entry, recording a ``REMOVED`` correction.

        Raises:
            OrderNotFound: order absent or out of scope.
            HistoryEntryNotFound: the entry is not on that order.
        """
        source = self._get_order_for_update(organization_id, from_order_id)
        entry = self._get_entry(source, entry_id)
        removed_id = entry.id

        correction = self._message_repo.add_correction(
            organization_id,
            {
                "subject": entry.subject,
                "sender": entry.sender,
                "source_po_number": source.po_number,
                "corrected_target": REMOVED_TARGET,
                "note": note or "",
                "corrected_at": self._clock(),
            },
        )
        self._order_repo.delete_history_entry(entry)
        self._message_repo.record_event(
            HistoryEntryRemoved(
                aggregate_id=source.id,
                organization_id=organization_id,
                history_entry_id=str(removed_id),
            )
        )

        logger.info(
            "mailbox.history_removed",
            history_entry_id=str(removed_id),
            po_number=source.po_number,
        )
        return correction

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_messages(
        self, organization_id: UUID, matched: Optional[bool] = None
    ) -> List[InboundMessage]:
        return self._message_repo.list(organization_id, {"matched": matched})

    def message_queryset(self, organization_id: UUID, matched: Optional[bool] = None):
        return self._message_repo.queryset(organization_id, matched)

    def get_message(self, organization_id: UUID, message_id: UUID) -> InboundMessage:
        message = self._message_repo.get_by_id(organization_id, message_id)
        if not message:
            raise MessageNotFound(f"Message {message_id} not found.")
        return message

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_message_for_update(
        self, organization_id: UUID, message_id: UUID
    ) -> InboundMessage:
        message = self._message_repo.get_for_update(organization_id, message_id)
        if not message:
            raise MessageNotFound(f"Message {message_id} not found.")
        return message

    def _get_order(self, organization_id: UUID, order_id: UUID) -> Order:
        order = self._order_repo.get_by_id(organization_id, order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _get_order_for_update(self, organization_id: UUID, order_id: UUID) -> Order:
        order = self._order_repo.get_for_update(organization_id, order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _get_entry(self, order: Order, entry_id: UUID) -> HistoryEntry:
        entry = self._order_repo.get_history_entry(order, entry_id)
        if not entry:
            raise HistoryEntryNotFound(
                f"History entry {entry_id} not found on {order.po_number}."
            )
        return entry


def _entry_stage(detected: Optional[int]) -> int:
    if detected and STAGE_MIN <= detected <= STAGE_MAX:
        return detected
    return Stage.PURCHASE_ORDER
