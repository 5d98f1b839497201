"""Observer implementations and the Server-Sent Events wire format."""

from __future__ import annotations

import json
import queue
from typing import Iterator, Optional

from django.core.serializers.json import DjangoJSONEncoder

from modules.notifications.bus import NotificationEvent
from modules.notifications.exceptions import ObserverOverflow

_CLOSED = object()


class QueueObserver:
    """Observer backed by a bounded in-memory queue.

    The bus thread calls ``send``; the HTTP streaming thread drains the
    queue through ``events``.  A full queue raises ``ObserverOverflow`` so
    the bus drops the connection instead of buffering without bound.
    """

    def __init__(self, maxsize: int = 100) -> None:
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.closed = False

    def send(self, event: NotificationEvent) -> None:
        if self.closed:
            raise ObserverOverflow("Observer is closed.")
        try:
            self._queue.put_nowait(event)
        except queue.Full as exc:
            raise ObserverOverflow("Observer queue is full.") from exc

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except queue.Full:
            # Drop one pending event to make room for the close marker.
            self._queue.get_nowait()
            self._queue.put_nowait(_CLOSED)

    def events(self, timeout: float) -> Iterator[Optional[NotificationEvent]]:
        """Yield events as they arrive, ``None`` after *timeout* seconds idle.

        Stops once ``close`` has been called.
        """
        while True:
            try:
                item = self._queue.get(timeout=timeout)
            except queue.Empty:
                if self.closed:
                    return
                yield None
                continue
            if item is _CLOSED:
                return
            yield item


def encode_sse(event_type: str, data: dict) -> str:
    body = json.dumps(data, cls=DjangoJSONEncoder)
    return f"event: {event_type}\ndata: {body}\n\n"


def encode_keepalive() -> str:
    return ": keep-alive\n\n"
