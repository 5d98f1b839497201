"""Asynchronous tasks of the orders module."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail

from modules.orders.repositories.django_repository import OrderDjangoRepository

logger = structlog.get_logger(__name__)


def _operator_recipients() -> list[str]:
    configured = getattr(settings, "ORDERS", {}).get("NOTIFICATION_EMAILS") or []
    if configured:
        return list(configured)
    return list(
        get_user_model()
        .objects.filter(is_staff=True, is_active=True)
        .exclude(email="")
        .values_list("email", flat=True)
    )


def render_new_order_email(order) -> tuple[str, str]:
    lines = [
        f"Order {order.order_number} was placed by {order.customer_name}.",
        f"Type: {order.order_type}",
        "",
    ]
    for item in order.items.all():
        lines.append(f"- {item.quantity} x {item.item_name} @ {item.unit_price}")
    lines += ["", f"Total: {order.total_amount} {order.currency}"]
    if order.special_instructions:
        lines += ["", f"Instructions: {order.special_instructions}"]
    return f"New order {order.order_number}", "\n".join(lines)


@shared_task(name="orders.send_order_placed_email")
def send_order_placed_email(order_id: str) -> dict:
    """Email operators about a newly placed order."""
    order = OrderDjangoRepository().get_by_id(order_id)
    if order is None:
        logger.warning("order_email.order_missing", order_id=order_id)
        return {"sent": 0}

    recipients = _operator_recipients()
    if not recipients:
        logger.info("order_email.no_recipients", order_id=order_id)
        return {"sent": 0}

    subject, body = render_new_order_email(order)
    sent = send_mail(
        subject,
        body,
        settings.DEFAULT_FROM_EMAIL,
        recipients,
        fail_silently=False,
    )
    logger.info("order_email.sent", order_id=order_id, recipients=len(recipients))
    return {"sent": sent}
