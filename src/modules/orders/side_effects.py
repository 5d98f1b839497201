"""Fire-and-forget side effects run once a state change has committed.

Realtime notifications and domain events never affect the outcome of the
operation that produced them: every failure is logged here and dropped.
"""

from __future__ import annotations

from typing import Iterable, Optional

import structlog
from django.db import transaction

from modules.notifications.bus import NotificationEvent
from shared.domain.bus import IEventBus, INotificationBus
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


def notify(bus: Optional[INotificationBus], event: NotificationEvent) -> None:
    if bus is None:
        return
    try:
        bus.broadcast(event.channel, event)
    except Exception:
        logger.exception(
            "notification.emit_failed",
            channel=event.channel,
            event_type=event.type,
        )


def publish(event_bus: Optional[IEventBus], event: DomainEvent) -> None:
    if event_bus is None:
        return
    try:
        event_bus.publish(event)
    except Exception:
        logger.exception(
            "domain_event.publish_failed",
            event_name=event.event_name,
            aggregate_id=str(event.aggregate_id),
        )


def dispatch_on_commit(
    bus: Optional[INotificationBus],
    notifications: Iterable[NotificationEvent],
    event_bus: Optional[IEventBus] = None,
    domain_events: Iterable[DomainEvent] = (),
) -> None:
    """Schedule notifications and domain events for after the commit.

    Outside an atomic block Django runs the callback immediately.
    """
    notifications = list(notifications)
    domain_events = list(domain_events)

    def _run() -> None:
        for event in notifications:
            notify(bus, event)
        for domain_event in domain_events:
            publish(event_bus, domain_event)

    transaction.on_commit(_run)
