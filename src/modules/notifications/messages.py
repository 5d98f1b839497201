"""Builders for the realtime events emitted by orders and payments."""

from __future__ import annotations

from typing import Any, Dict, Optional

from modules.notifications.bus import (
    OPERATOR_CHANNEL,
    NotificationEvent,
    customer_channel,
)

NEW_ORDER = "new-order"
STATUS_UPDATE = "status-update"

STATUS_MESSAGES: Dict[str, str] = {
    "Accepted": "Your order has been accepted and is being prepared!",
    "Preparing": "Your order is being prepared in the kitchen!",
    "ReadyForPickup": "Your order is ready for pickup!",
    "OnTheWay": "Your order is on the way!",
    "Delivered": "Your order has been delivered. Enjoy your meal!",
    "Completed": "Your order is complete. Thank you!",
    "Cancelled": "Your order has been cancelled.",
}

PAYMENT_SUCCESS_MESSAGE = "Payment successful"
PAYMENT_FAILED_MESSAGE = "Payment failed"
PAYMENT_REFUNDED_MESSAGE = "Payment refunded"


def status_message(status: str) -> str:
    return STATUS_MESSAGES.get(status, f"Order status updated to {status}")


def new_order_event(order_summary: Dict[str, Any]) -> NotificationEvent:
    return NotificationEvent(
        channel=OPERATOR_CHANNEL,
        type=NEW_ORDER,
        payload={
            "order": order_summary,
            "message": f"New order {order_summary.get('orderNumber', '')} received".strip(),
        },
    )


def status_update_event(
    customer_id: Any,
    order_id: Any,
    status: str,
    message: Optional[str] = None,
    payment_status: Optional[str] = None,
) -> NotificationEvent:
    payload = {
        "orderId": str(order_id),
        "status": status,
        "message": message or status_message(status),
    }
    if payment_status is not None:
        payload["paymentStatus"] = payment_status
    return NotificationEvent(
        channel=customer_channel(customer_id),
        type=STATUS_UPDATE,
        payload=payload,
    )
