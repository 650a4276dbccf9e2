"""Ledger queries and rendering helpers.

Pure functions over sequences of ``HistoryEntry``-like objects (anything
with ``stage``, ``timestamp`` and ``attachments``), so they work on
prefetched rows without extra queries.

Attachments arrive in three shapes: a bare filename string, a
``{"name": ..., "meta": {...}}`` dict, or that dict JSON-encoded into a
string by an older writer.  ``attachment_name`` / ``attachment_meta``
accept all three.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from modules.orders.constants import (
    PDF_URL_KEY,
    STAGE_MAX,
    STAGE_MIN,
    ArtworkStatus,
    Stage,
)


class LedgerEntry(Protocol):
    stage: int
    timestamp: Any
    subject: str
    attachments: Any


def sorted_for_display(entries: Iterable[LedgerEntry]) -> List[LedgerEntry]:
    """Chronological, stage-grouped view: ``(stage, timestamp)`` ascending."""
    return sorted(entries, key=lambda e: (e.stage, e.timestamp))


def recent_activity(entries: Iterable[LedgerEntry]) -> List[LedgerEntry]:
    """Newest first, regardless of stage."""
    return sorted(entries, key=lambda e: e.timestamp, reverse=True)


def _normalize(attachment: Any) -> Any:
    if isinstance(attachment, str) and attachment.startswith("{") and '"name"' in attachment:
        try:
            return json.loads(attachment)
        except ValueError:
            return attachment
    return attachment


def attachment_name(attachment: Any) -> str:
    normalized = _normalize(attachment)
    if isinstance(normalized, dict):
        return str(normalized.get("name", ""))
    return str(normalized)


def attachment_meta(attachment: Any) -> Optional[Dict[str, Any]]:
    normalized = _normalize(attachment)
    if isinstance(normalized, dict) and isinstance(normalized.get("meta"), dict):
        return normalized["meta"]
    return None


def find_attachment(
    entries: Iterable[LedgerEntry], stage: int, filename: str
) -> Optional[Any]:
    """First attachment named *filename* on an entry at *stage*."""
    for entry in sorted_for_display(entries):
        if entry.stage != stage:
            continue
        for attachment in entry.attachments or []:
            if attachment_name(attachment) == filename:
                return _normalize(attachment)
    return None


def latest_attachment_meta(
    entries: Iterable[LedgerEntry], stage: int = Stage.PURCHASE_ORDER
) -> Optional[Dict[str, Any]]:
    """Structured metadata from the most recent entry at *stage* that has any."""
    for entry in recent_activity(e for e in entries if e.stage == stage):
        for attachment in entry.attachments or []:
            meta = attachment_meta(attachment)
            if meta:
                return meta
    return None


def document_url(order: Any, entries: Iterable[LedgerEntry]) -> Optional[str]:
    """Stored location of the latest generated PO document."""
    meta = latest_attachment_meta(entries) or {}
    url = meta.get(PDF_URL_KEY) or (order.metadata or {}).get(PDF_URL_KEY)
    return url or None


def has_documentation(order: Any, entries: Sequence[LedgerEntry], stage: int) -> bool:
    """Whether *stage* has content to show.

    True when an entry at the stage carries attachments, or when order
    fields imply content for it: a PI number (stage 2), approved artwork
    (stage 3) or a tracking number (stage 8).
    """
    if any(e.stage == stage and e.attachments for e in entries):
        return True
    if stage == Stage.PROFORMA_INVOICE:
        return bool(order.pi_number)
    if stage == Stage.ARTWORK:
        return order.artwork_status == ArtworkStatus.APPROVED
    if stage == Stage.SHIPPED:
        return bool(order.awb_number)
    return False


def documentation_map(order: Any, entries: Sequence[LedgerEntry]) -> Dict[int, bool]:
    return {
        stage: has_documentation(order, entries, stage)
        for stage in range(STAGE_MIN, STAGE_MAX + 1)
    }
