"""Order domain constants.

Status and payment-status choices, plus the two named transition tables
of the order state machine.  ``PERMISSIVE_TRANSITIONS`` is the default
(any status may move to any other); ``STRICT_TRANSITIONS`` is selected
with ``ORDERS["STRICT_TRANSITIONS"]``.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    ACCEPTED = "Accepted", "Accepted"
    PREPARING = "Preparing", "Preparing"
    READY_FOR_PICKUP = "ReadyForPickup", "Ready for pickup"
    ON_THE_WAY = "OnTheWay", "On the way"
    DELIVERED = "Delivered", "Delivered"
    COMPLETED = "Completed", "Completed"
    CANCELLED = "Cancelled", "Cancelled"


class PaymentStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    PAID = "Paid", "Paid"
    FAILED = "Failed", "Failed"
    REFUNDED = "Refunded", "Refunded"


class OrderType(models.TextChoices):
    DELIVERY = "Delivery", "Delivery"
    PICKUP = "Pickup", "Pickup"


# Canonical forward ordering used for progress; Cancelled is excluded.
PROGRESS_ORDER: list[str] = [
    OrderStatus.PENDING,
    OrderStatus.ACCEPTED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.ON_THE_WAY,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
]

PERMISSIVE_TRANSITIONS: dict[str, set[str]] = {
    status: {other for other in OrderStatus.values if other != status}
    for status in OrderStatus.values
}

STRICT_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.ACCEPTED, OrderStatus.CANCELLED},
    OrderStatus.ACCEPTED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.ON_THE_WAY,
        OrderStatus.CANCELLED,
    },
    OrderStatus.READY_FOR_PICKUP: {
        OrderStatus.ON_THE_WAY,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.ON_THE_WAY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

REVENUE_STATUSES: set[str] = {OrderStatus.DELIVERED, OrderStatus.COMPLETED}

ORDER_NUMBER_MAX_RETRIES = 5
