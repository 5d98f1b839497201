"""Realtime notification stream (Server-Sent Events).

A connection joins exactly one channel, chosen from the authenticated
user: staff join the operator channel, everyone else their own customer
channel.  ``?channel=operator`` / ``?channel=subscriber`` may narrow the
choice but never widen it.
"""

from __future__ import annotations

from typing import Iterator

import structlog
from django.conf import settings
from django.http import StreamingHttpResponse
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.notifications.apps import get_notification_bus
from modules.notifications.bus import ChannelMembership, NotificationBus
from modules.notifications.exceptions import (
    ChannelAccessDenied,
    NotificationBusNotRunning,
)
from modules.notifications.observers import (
    QueueObserver,
    encode_keepalive,
    encode_sse,
)

logger = structlog.get_logger(__name__)


class NotificationStreamView(APIView):
    """GET /api/v1/notifications/stream/"""

    permission_classes = [IsAuthenticated]

    def get(self, request: Request):
        try:
            membership = ChannelMembership.for_user(
                request.user, request.query_params.get("channel")
            )
        except ChannelAccessDenied as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_403_FORBIDDEN)

        bus = get_notification_bus()
        if not bus.is_running:
            return Response(
                {"detail": "Realtime notifications are unavailable."},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        config = settings.NOTIFICATIONS
        observer = QueueObserver(maxsize=config["QUEUE_SIZE"])
        response = StreamingHttpResponse(
            _stream(bus, observer, membership, config["HEARTBEAT_SECONDS"]),
            content_type="text/event-stream",
        )
        response["Cache-Control"] = "no-cache"
        response["X-Accel-Buffering"] = "no"
        return response


def _stream(
    bus: NotificationBus,
    observer: QueueObserver,
    membership: ChannelMembership,
    heartbeat: float,
) -> Iterator[str]:
    try:
        bus.connect(observer, membership)
    except NotificationBusNotRunning:
        logger.warning("notification_stream.bus_stopped", channel=membership.channel)
        return

    try:
        yield encode_sse(
            "connected", {"channel": membership.channel, "role": membership.role}
        )
        for event in observer.events(timeout=heartbeat):
            if event is None:
                yield encode_keepalive()
            else:
                yield encode_sse(event.type, event.to_message())
    finally:
        bus.disconnect(observer)
        observer.close()
