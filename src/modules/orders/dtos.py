"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``PlaceOrderItemDTO``: one order line (catalog reference or ad-hoc).
- ``DeliveryDetailsDTO``: where a delivery order goes.
- ``PlaceOrderDTO``: input for order placement.
- ``TrackingDTO``: an order plus its derived timing metrics.
- ``StatusCountDTO`` / ``DailyAnalyticsDTO``: operator dashboard numbers.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from modules.orders.constants import OrderType

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class PlaceOrderItemDTO(BaseModel):
    """A single line in a placement request.

    Either ``menu_item_id`` references the catalog (name and price are
    snapshotted from it), or the line carries its own ``name`` and
    ``unit_price`` (cart snapshot).
    """

    model_config = ConfigDict(frozen=True)

    menu_item_id: Optional[UUID] = None
    name: Optional[str] = None
    unit_price: Optional[Decimal] = None
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @field_validator("unit_price")
    @classmethod
    def unit_price_must_be_positive(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v <= 0:
            raise ValueError("Unit price must be greater than zero.")
        return v

    @model_validator(mode="after")
    def reference_or_snapshot(self):
        if self.menu_item_id is None and (not self.name or self.unit_price is None):
            raise ValueError(
                "Each item needs a menu_item_id or both a name and a unit_price."
            )
        return self


class DeliveryDetailsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str = ""
    city: str = ""
    pincode: str = ""
    phone: str = ""


class PlaceOrderDTO(BaseModel):
    """Immutable DTO for order placement.

    ``total_amount`` is optional: when present it must match the sum of
    the line totals, otherwise the total is computed from the lines.
    """

    model_config = ConfigDict(frozen=True)

    customer_id: Optional[int] = None
    customer_name: str
    customer_email: str = ""
    customer_phone: str = ""
    order_type: str = OrderType.DELIVERY
    items: List[PlaceOrderItemDTO]
    delivery: Optional[DeliveryDetailsDTO] = None
    total_amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_method: str = ""
    special_instructions: str = ""
    idempotency_key: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[PlaceOrderItemDTO]
    ) -> List[PlaceOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @field_validator("customer_name")
    @classmethod
    def customer_name_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Customer name is required.")
        return v.strip()

    @field_validator("order_type")
    @classmethod
    def order_type_must_be_known(cls, v: str) -> str:
        if v not in OrderType.values:
            raise ValueError(f"Unknown order type {v!r}.")
        return v

    @model_validator(mode="after")
    def delivery_needs_address(self):
        if self.order_type == OrderType.DELIVERY and (
            self.delivery is None or not self.delivery.address.strip()
        ):
            raise ValueError("Delivery orders require a delivery address.")
        return self


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class TrackingDTO(BaseModel):
    """An order together with the metrics derived from its history."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    order: Any
    total_duration_minutes: int
    current_status_duration_minutes: int
    progress_percentage: int
    estimated_delivery: Optional[datetime]
    is_delivered: bool
    is_cancelled: bool


class StatusCountDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    count: int
    amount: Decimal


class DailyAnalyticsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    total_orders: int
    total_amount: Decimal
    revenue: Decimal
    by_status: List[StatusCountDTO]
