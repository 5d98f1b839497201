"""Order repository interface.

Extends ``IRepository[Order]`` with the methods the lifecycle engine and
the payment reconciliation service need: atomic creation with children,
locked reads, append-only history and reconciliation look-ups.

Both services depend exclusively on this contract.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes items, status history, delivery details and
    payment details.  ``save`` must detect concurrent writers and raise
    ``ConcurrentOrderUpdate`` instead of overwriting their changes.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items and detail rows atomically.

        ``data`` carries the order columns plus ``items`` (dicts with
        ``menu_item_id``, ``item_name``, ``quantity``, ``unit_price``) and
        ``delivery`` (dict of delivery detail columns).
        """

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock held until commit."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve an order by its idempotency key."""

    @abstractmethod
    def get_by_gateway_payment_id(self, payment_id: str) -> Optional[Order]:
        """Retrieve the order a gateway payment was applied to."""

    @abstractmethod
    def add_history(
        self,
        order: Order,
        status: str,
        previous_status: Optional[str] = None,
        actor_id: Optional[int] = None,
        notes: str = "",
    ) -> OrderStatusHistory:
        """Append one entry to the order's status history."""

    @abstractmethod
    def status_summary(
        self, start: datetime, end: datetime
    ) -> List[Dict[str, Any]]:
        """Count and sum orders per status created in ``[start, end)``."""
