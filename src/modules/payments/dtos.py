"""Payment DTOs (Pydantic v2, immutable)."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class PaymentIntentDTO(BaseModel):
    """What the client needs to open the gateway checkout.

    ``amount`` is in minor units, exactly as sent to the gateway.
    """

    model_config = ConfigDict(frozen=True)

    gateway_order_id: str
    amount: int
    currency: str
    receipt: str
    key_id: str = ""


class VerificationDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    verified: bool


class RefundDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    refund_id: str
    payment_id: str
    amount: Decimal
    status: str = ""


class RefundResult(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    refund: RefundDTO
    order: Any


class PaymentStatusDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    order_number: str
    payment_status: str
    payment_method: str
    total_amount: Decimal
    currency: str
    details: Dict[str, Any]
