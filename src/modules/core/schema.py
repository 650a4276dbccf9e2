"""Storage schema capability flags.

Deployments roll forward in steps, so a code path may run against a
database that does not yet carry a column it expects.  Instead of probing
with a write and matching the error text, each capability is answered once
(by table introspection, or by an explicit setting) and cached for the life
of the process.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import structlog
from django.conf import settings
from django.db import connection

logger = structlog.get_logger(__name__)


class SchemaCapabilities:
    """Cached answers to "does table X have column Y"."""

    def __init__(self) -> None:
        self._columns: Dict[Tuple[str, str], bool] = {}

    def has_column(self, table: str, column: str) -> bool:
        key = (table, column)
        if key not in self._columns:
            self._columns[key] = self._introspect(table, column)
            logger.info(
                "schema.capability_resolved",
                table=table,
                column=column,
                available=self._columns[key],
            )
        return self._columns[key]

    def supports_soft_delete(self, table: str) -> bool:
        """Whether soft delete (``deleted_at``) is usable on *table*.

        ``settings.SCHEMA_SOFT_DELETE`` pins the answer when set; otherwise
        the column is looked up once.
        """
        forced: Optional[bool] = getattr(settings, "SCHEMA_SOFT_DELETE", None)
        if forced is not None:
            return bool(forced)
        return self.has_column(table, "deleted_at")

    def reset(self) -> None:
        self._columns.clear()

    @staticmethod
    def _introspect(table: str, column: str) -> bool:
        with connection.cursor() as cursor:
            if table not in connection.introspection.table_names(cursor):
                return False
            description = connection.introspection.get_table_description(
                cursor, table
            )
        return any(col.name == column for col in description)


schema_capabilities = SchemaCapabilities()
