"""Unit tests for order event handlers, the in-memory bus and the email task."""

from __future__ import annotations

import logging
from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from django.core import mail

from modules.menu.repositories.django_repository import MenuItemDjangoRepository
from modules.orders.dtos import PlaceOrderDTO, PlaceOrderItemDTO
from modules.orders.events import OrderPlaced, OrderStatusChanged, PaymentCaptured
from modules.orders.handlers import (
    OrderPlacedHandler,
    OrderStatusChangedHandler,
    PaymentOutcomeHandler,
)
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.orders.side_effects import dispatch_on_commit, publish
from modules.orders.tasks import render_new_order_email, send_order_placed_email
from shared.infrastructure.bus import InMemoryEventBus, event_bus

pytestmark = pytest.mark.unit


class TestHandlers:
    def test_order_placed_handler_queues_email(self):
        order_id = uuid4()
        with patch("modules.orders.tasks.send_order_placed_email.delay") as delay:
            OrderPlacedHandler().handle(OrderPlaced(aggregate_id=order_id))
        delay.assert_called_once_with(str(order_id))

    def test_status_changed_handler_logs(self, caplog):
        event = OrderStatusChanged(
            aggregate_id=uuid4(), old_status="Pending", new_status="Accepted"
        )
        with caplog.at_level(logging.INFO, logger="modules.orders.handlers"):
            OrderStatusChangedHandler().handle(event)

        assert any(
            "order_status_changed.handled" in record.getMessage()
            for record in caplog.records
        )

    def test_payment_handler_logs(self, caplog):
        event = PaymentCaptured(aggregate_id=uuid4(), payment_id="pay_1")
        with caplog.at_level(logging.INFO, logger="modules.orders.handlers"):
            PaymentOutcomeHandler().handle(event)

        assert any("PaymentCaptured" in record.getMessage() for record in caplog.records)

    def test_handlers_are_subscribed_on_startup(self):
        subscribed = event_bus._handlers
        assert OrderPlaced in subscribed
        assert OrderStatusChanged in subscribed
        assert PaymentCaptured in subscribed


class TestInMemoryEventBus:
    def test_routes_events_by_type(self):
        bus = InMemoryEventBus()
        handler = MagicMock()
        bus.subscribe(OrderPlaced, handler)

        placed = OrderPlaced(aggregate_id=uuid4())
        bus.publish(placed)
        bus.publish(PaymentCaptured(aggregate_id=uuid4()))

        handler.handle.assert_called_once_with(placed)

    def test_duplicate_subscription_is_ignored(self):
        bus = InMemoryEventBus()
        handler = MagicMock()
        bus.subscribe(OrderPlaced, handler)
        bus.subscribe(OrderPlaced, handler)

        bus.publish(OrderPlaced(aggregate_id=uuid4()))

        assert handler.handle.call_count == 1

    def test_failing_handler_does_not_stop_the_others(self):
        bus = InMemoryEventBus()
        broken = MagicMock()
        broken.handle.side_effect = RuntimeError("boom")
        healthy = MagicMock()
        bus.subscribe(OrderPlaced, broken)
        bus.subscribe(OrderPlaced, healthy)

        bus.publish(OrderPlaced(aggregate_id=uuid4()))

        healthy.handle.assert_called_once()


class TestSideEffects:
    def test_publish_swallows_bus_errors(self):
        bus = MagicMock()
        bus.publish.side_effect = RuntimeError("boom")
        publish(bus, OrderPlaced(aggregate_id=uuid4()))

    def test_dispatch_runs_after_commit(self, recording_bus, django_capture_on_commit_callbacks):
        domain_bus = MagicMock()
        event = OrderPlaced(aggregate_id=uuid4())

        with django_capture_on_commit_callbacks(execute=True):
            dispatch_on_commit(recording_bus, [], domain_bus, [event])

        domain_bus.publish.assert_called_once_with(event)


class TestOrderPlacedEmail:
    def test_email_sent_to_configured_recipients(self, place_order):
        order = place_order(special_instructions="Less spicy")

        result = send_order_placed_email(str(order.id))

        assert result == {"sent": 1}
        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == ["kitchen@example.com"]
        assert order.order_number in message.subject
        assert "2 x Masala Dosa @ 120.00" in message.body
        assert "Less spicy" in message.body

    def test_falls_back_to_staff_emails(self, settings, place_order, operator_user):
        settings.ORDERS = {**settings.ORDERS, "NOTIFICATION_EMAILS": []}
        order = place_order()

        send_order_placed_email(str(order.id))

        assert mail.outbox[0].to == [operator_user.email]

    def test_missing_order_sends_nothing(self):
        assert send_order_placed_email(str(uuid4())) == {"sent": 0}
        assert mail.outbox == []

    def test_render_includes_total(self, place_order):
        order = place_order()
        _, body = render_new_order_email(order)
        assert f"Total: {Decimal('240.00')} INR" in body

    def test_placement_through_event_bus_sends_email(
        self, customer_user, django_capture_on_commit_callbacks
    ):
        service = OrderService(
            OrderDjangoRepository(), MenuItemDjangoRepository(), event_bus=event_bus
        )
        with django_capture_on_commit_callbacks(execute=True):
            service.place_order(
                PlaceOrderDTO(
                    customer_id=customer_user.pk,
                    customer_name="Asha",
                    order_type="Pickup",
                    items=[
                        PlaceOrderItemDTO(
                            name="Filter Coffee", unit_price=Decimal("40.00"), quantity=1
                        )
                    ],
                )
            )

        assert len(mail.outbox) == 1
