"""Mailbox DTOs for the Service Layer (Pydantic v2, immutable)."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


class LinkMessageDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    note: Optional[str] = None


class ReassignEntryDTO(BaseModel):
    """Move a ledger entry from ``from_order_id`` to ``to_order_id``."""

    model_config = ConfigDict(frozen=True)

    from_order_id: UUID
    to_order_id: UUID
    note: Optional[str] = None

    @field_validator("to_order_id")
    @classmethod
    def must_differ(cls, v: UUID, info) -> UUID:
        if info.data.get("from_order_id") == v:
            raise ValueError("Target order must differ from the source order.")
        return v


class RemoveEntryDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_order_id: UUID
    note: Optional[str] = None
