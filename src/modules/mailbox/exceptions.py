"""Mailbox domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import (
    InvariantViolation,
    NotFound,
    PersistencePartialFailure,
)


class MessageNotFound(NotFound):
    """The inbound message does not exist in the organisation."""


class LedgerWriteFailed(PersistencePartialFailure):
    """The ledger entry for a link could not be written; the link was not
    recorded either."""


class SameOrderReassignment(InvariantViolation):
    """A ledger entry cannot be reassigned to the order it is already on."""
