"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class that every
organisation-scoped repository contract extends.  Service-layer code
depends on this abstraction, never on Django ORM directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar
from uuid import UUID

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Every lookup takes the organisation scope first: an entity that exists
    under another organisation is indistinguishable from a missing one.
    """

    @abstractmethod
    def get_by_id(self, organization_id: UUID, id: UUID) -> Optional[T]:
        """Retrieve an entity by its primary key within the organisation."""

    @abstractmethod
    def list(
        self, organization_id: UUID, filters: Optional[Dict[str, Any]] = None
    ) -> List[T]:
        """List entities of the organisation with optional filters."""
