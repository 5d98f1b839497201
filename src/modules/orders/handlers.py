"""Event handlers for Orders domain events."""

from __future__ import annotations

import structlog

from modules.orders.events import (
    OrderPlaced,
    OrderStatusChanged,
    PaymentCaptured,
    PaymentFailed,
    PaymentRefunded,
)
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderPlacedHandler(IEventHandler[OrderPlaced]):
    """Queues the "new order" email to operators."""

    def handle(self, event: OrderPlaced) -> None:
        from modules.orders.tasks import send_order_placed_email

        send_order_placed_email.delay(str(event.aggregate_id))
        logger.info("order_placed.email_queued", order_id=str(event.aggregate_id))


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        logger.info(
            "order_status_changed.handled",
            order_id=str(event.aggregate_id),
            old_status=event.old_status,
            new_status=event.new_status,
        )


class PaymentOutcomeHandler:
    def handle(self, event) -> None:
        logger.info(
            "payment_event.handled",
            event_name=event.event_name,
            order_id=str(event.aggregate_id),
        )


order_placed_handler = OrderPlacedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
payment_outcome_handler = PaymentOutcomeHandler()

PAYMENT_EVENTS = (PaymentCaptured, PaymentFailed, PaymentRefunded)
