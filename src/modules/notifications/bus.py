"""Process-local realtime notification bus.

Keeps a registry of connected observers grouped into channels: one shared
operator channel and one channel per customer.  ``broadcast`` delivers to
whoever is connected *right now*; there is no queueing for absent
observers, no persistence and no retry.  REST endpoints stay the source of
truth, the bus only adds immediacy.

The registry is guarded by a single mutex; ``send`` is called outside the
lock so a slow observer cannot block connects and disconnects.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Set

import structlog
from django.utils import timezone

from modules.notifications.exceptions import (
    ChannelAccessDenied,
    NotificationBusNotRunning,
)
from shared.domain.bus import INotificationBus, INotificationObserver

logger = structlog.get_logger(__name__)

OPERATOR_CHANNEL = "operators"
CUSTOMER_CHANNEL_PREFIX = "customer:"

ROLE_OPERATOR = "operator"
ROLE_SUBSCRIBER = "subscriber"


def customer_channel(customer_id: Any) -> str:
    return f"{CUSTOMER_CHANNEL_PREFIX}{customer_id}"


def _close(observer: INotificationObserver) -> None:
    close = getattr(observer, "close", None)
    if close is not None:
        close()


@dataclass(frozen=True)
class NotificationEvent:
    """Ephemeral event handed to the bus and forgotten after broadcast."""

    channel: str
    type: str
    payload: Dict[str, Any]
    timestamp: datetime = field(default_factory=timezone.now)

    def to_message(self) -> Dict[str, Any]:
        return {**self.payload, "timestamp": self.timestamp.isoformat()}


@dataclass(frozen=True)
class ChannelMembership:
    """Which channel a connection belongs to.

    Always derived from the authenticated identity of the connection,
    never from an id the client sends.
    """

    channel: str
    role: str
    user_id: Optional[int] = None

    @classmethod
    def for_user(cls, user, requested_role: Optional[str] = None) -> ChannelMembership:
        if user is None or not user.is_authenticated:
            raise ChannelAccessDenied("Authentication required.")

        role = requested_role or (ROLE_OPERATOR if user.is_staff else ROLE_SUBSCRIBER)
        if role == ROLE_OPERATOR:
            if not user.is_staff:
                raise ChannelAccessDenied("Only operators may join the operator channel.")
            return cls(channel=OPERATOR_CHANNEL, role=ROLE_OPERATOR, user_id=user.pk)
        if role == ROLE_SUBSCRIBER:
            return cls(
                channel=customer_channel(user.pk), role=ROLE_SUBSCRIBER, user_id=user.pk
            )
        raise ChannelAccessDenied(f"Unknown channel role {role!r}.")


class NotificationBus(INotificationBus):
    """Mutex-guarded channel registry with an explicit init/shutdown lifecycle."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: Dict[str, Set[INotificationObserver]] = {}
        self._memberships: Dict[INotificationObserver, ChannelMembership] = {}
        self._running = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        with self._lock:
            self._running = True
        logger.info("notification_bus.started")

    def shutdown(self) -> None:
        with self._lock:
            observers = list(self._memberships)
            self._channels.clear()
            self._memberships.clear()
            self._running = False

        for observer in observers:
            _close(observer)
        logger.info("notification_bus.stopped", closed_connections=len(observers))

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def connect(
        self, observer: INotificationObserver, membership: ChannelMembership
    ) -> None:
        with self._lock:
            if not self._running:
                raise NotificationBusNotRunning("Notification bus is not running.")
            self._remove(observer)
            self._channels.setdefault(membership.channel, set()).add(observer)
            self._memberships[observer] = membership

        logger.info(
            "notification_bus.connected",
            channel=membership.channel,
            role=membership.role,
            user_id=membership.user_id,
        )

    def disconnect(self, observer: INotificationObserver) -> None:
        with self._lock:
            membership = self._remove(observer)

        if membership is not None:
            logger.info(
                "notification_bus.disconnected",
                channel=membership.channel,
                user_id=membership.user_id,
            )

    def _remove(self, observer: INotificationObserver) -> Optional[ChannelMembership]:
        # Caller holds the lock.
        membership = self._memberships.pop(observer, None)
        if membership is None:
            return None
        members = self._channels.get(membership.channel)
        if members is not None:
            members.discard(observer)
            if not members:
                del self._channels[membership.channel]
        return membership

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def broadcast(self, channel: str, event: NotificationEvent) -> int:
        """Deliver *event* to every observer currently in *channel*.

        Returns the number of observers reached.  Observers whose ``send``
        fails are dropped from the registry and closed, which ends their
        stream so the client reconnects.

        Raises:
            NotificationBusNotRunning: ``init`` was never called or the bus
                has been shut down.
        """
        with self._lock:
            if not self._running:
                raise NotificationBusNotRunning("Notification bus is not running.")
            observers = list(self._channels.get(channel, ()))

        delivered = 0
        dead = []
        for observer in observers:
            try:
                observer.send(event)
            except Exception as exc:
                logger.warning(
                    "notification_bus.delivery_failed",
                    channel=channel,
                    event_type=event.type,
                    error=str(exc),
                )
                dead.append(observer)
            else:
                delivered += 1

        for observer in dead:
            self.disconnect(observer)
            _close(observer)

        logger.debug(
            "notification_bus.broadcast",
            channel=channel,
            event_type=event.type,
            delivered=delivered,
        )
        return delivered

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def connection_count(self, channel: Optional[str] = None) -> int:
        with self._lock:
            if channel is None:
                return len(self._memberships)
            return len(self._channels.get(channel, ()))

    def channel_sizes(self) -> Dict[str, int]:
        with self._lock:
            return {name: len(members) for name, members in self._channels.items()}
