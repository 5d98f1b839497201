"""Menu item repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, List

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.menu.models import MenuItem


class IMenuItemRepository(IRepository["MenuItem"]):
    """Repository contract for the menu catalog.

    ``get_by_id`` never returns soft-deleted items.
    """

    @abstractmethod
    def list_available(self) -> List[MenuItem]:
        """Items that can currently be ordered."""
