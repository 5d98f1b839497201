"""Notification URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.notifications.views import NotificationStreamView

urlpatterns = [
    path(
        "notifications/stream/",
        NotificationStreamView.as_view(),
        name="notification-stream",
    ),
]
