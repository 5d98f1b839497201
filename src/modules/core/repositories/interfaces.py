"""Generic repository interface.

Services depend on these contracts, never on the Django ORM directly,
so the lifecycle engine and the payment reconciliation service can be
unit-tested against in-memory doubles.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    ``T`` is the aggregate managed by the repository (``Order``,
    ``MenuItem``).
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an aggregate by primary key, or ``None``."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[T]:
        """List aggregates matching optional ORM look-ups."""

    @abstractmethod
    def save(self, entity: T) -> T:
        """Persist (create or update) an aggregate."""

    @abstractmethod
    def delete(self, id: str) -> bool:
        """Remove an aggregate by ID; ``False`` when nothing matched."""
