"""Bus interfaces for in-process event handling and realtime fan-out."""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, Protocol, Type, TypeVar

from shared.domain.events import DomainEvent

if TYPE_CHECKING:
    from modules.notifications.bus import ChannelMembership, NotificationEvent

E = TypeVar("E", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol, Generic[E]):
    """Handler interface for domain events."""

    def handle(self, event: E) -> None: ...


class IEventBus(Protocol):
    """Domain event bus interface."""

    def publish(self, event: DomainEvent) -> None: ...

    def subscribe(self, event_class: Type[E], handler: IEventHandler[E]) -> None: ...


class INotificationObserver(Protocol):
    """A connected realtime client (one SSE stream, one socket...)."""

    def send(self, event: NotificationEvent) -> None: ...


class INotificationBus(Protocol):
    """Best-effort realtime broadcaster used by the order and payment services."""

    def connect(
        self, observer: INotificationObserver, membership: ChannelMembership
    ) -> None: ...

    def disconnect(self, observer: INotificationObserver) -> None: ...

    def broadcast(self, channel: str, event: NotificationEvent) -> int: ...
