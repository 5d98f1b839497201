"""Derived tracking metrics.

Pure functions over an order's status history; nothing here touches the
database or the clock except through the ``now`` argument.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Sequence

from django.utils import timezone

from modules.orders.constants import PROGRESS_ORDER, OrderStatus


def _minutes_between(start: datetime, end: datetime) -> int:
    return max(int((end - start).total_seconds() // 60), 0)


def total_duration_minutes(history: Sequence, now: Optional[datetime] = None) -> int:
    """Whole minutes since the first history entry."""
    if not history:
        return 0
    return _minutes_between(history[0].created_at, now or timezone.now())


def current_status_duration_minutes(
    history: Sequence, now: Optional[datetime] = None
) -> int:
    """Whole minutes since the latest history entry."""
    if not history:
        return 0
    return _minutes_between(history[-1].created_at, now or timezone.now())


def progress_percentage(status: str) -> int:
    if status not in PROGRESS_ORDER:
        return 0
    return round(PROGRESS_ORDER.index(status) / (len(PROGRESS_ORDER) - 1) * 100)


def estimated_delivery(
    status: str,
    history: Sequence,
    delivery_estimate: Optional[datetime],
    prep_minutes: int,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Delivery estimate if one was set, else acceptance plus prep time.

    Only an ``Accepted`` order gets the computed fallback.
    """
    if delivery_estimate is not None:
        return delivery_estimate
    if status != OrderStatus.ACCEPTED:
        return None
    accepted_at = next(
        (
            entry.created_at
            for entry in reversed(history)
            if entry.status == OrderStatus.ACCEPTED
        ),
        now or timezone.now(),
    )
    return accepted_at + timedelta(minutes=prep_minutes)


def is_delivered(status: str) -> bool:
    return status in (OrderStatus.DELIVERED, OrderStatus.COMPLETED)


def is_cancelled(status: str) -> bool:
    return status == OrderStatus.CANCELLED
