"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderPlaced(DomainEvent):
    """Raised when an order is placed."""


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order status changes."""

    old_status: Optional[str] = None
    new_status: Optional[str] = None


@dataclass(frozen=True)
class PaymentCaptured(DomainEvent):
    """Raised when a gateway payment is applied to an order."""

    payment_id: str = ""


@dataclass(frozen=True)
class PaymentFailed(DomainEvent):
    """Raised when a gateway payment fails for an order."""

    payment_id: str = ""


@dataclass(frozen=True)
class PaymentRefunded(DomainEvent):
    """Raised when a refund is recorded on an order."""

    refund_id: str = ""
