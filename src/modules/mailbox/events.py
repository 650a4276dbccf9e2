"""Domain events for the Mailbox bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class MessageLinked(DomainEvent):
    """An inbound message was manually linked to an order.

    ``aggregate_id`` is the order; ``message_id`` the inbound message.
    """

    message_id: Optional[str] = None
    history_entry_id: Optional[str] = None


@dataclass(frozen=True)
class HistoryEntryReassigned(DomainEvent):
    """A ledger entry moved to another order (``aggregate_id`` = source)."""

    history_entry_id: Optional[str] = None
    target_order_id: Optional[str] = None
    corrected_target: str = ""


@dataclass(frozen=True)
class HistoryEntryRemoved(DomainEvent):
    """A ledger entry was deleted from its order (``aggregate_id``)."""

    history_entry_id: Optional[str] = None
