"""Notification bus exceptions."""

from __future__ import annotations


class NotificationBusNotRunning(Exception):
    """The bus was used before ``init`` or after ``shutdown``."""


class ChannelAccessDenied(Exception):
    """The connection may not join the requested channel."""


class ObserverOverflow(Exception):
    """A connected observer is not draining its queue fast enough."""
