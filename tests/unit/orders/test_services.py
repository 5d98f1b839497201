"""Unit tests for OrderService against the real Django repositories.

Covers:
- Placement: catalog snapshot, totals, idempotency, unknown/unavailable items.
- Status changes: history, same-status no-op, strict table, delivery stamp.
- Notifications are emitted after commit and never break the operation.
- Access control on reads; tracking and daily analytics.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from django.utils import timezone

from modules.menu.exceptions import MenuItemNotFound, MenuItemUnavailable
from modules.menu.repositories.django_repository import MenuItemDjangoRepository
from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.dtos import DeliveryDetailsDTO, PlaceOrderDTO, PlaceOrderItemDTO
from modules.orders.exceptions import (
    InvalidOrderStatus,
    InvalidStatusTransition,
    OrderAccessDenied,
    OrderNotFound,
    OrderValidationError,
)
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService

pytestmark = pytest.mark.unit


class TestPlaceOrder:
    def test_new_order_is_pending_with_single_history_entry(self, place_order):
        order = place_order()

        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING
        assert order.total_amount == Decimal("240.00")
        history = list(order.status_history.all())
        assert [(h.sequence, h.status, h.previous_status) for h in history] == [
            (1, OrderStatus.PENDING, None)
        ]

    def test_catalog_price_wins_over_client_price(self, place_order, menu_item):
        order = place_order(
            items=[
                PlaceOrderItemDTO(
                    menu_item_id=menu_item.id,
                    name="Cheap Dosa",
                    unit_price=Decimal("1.00"),
                    quantity=3,
                )
            ]
        )

        item = order.items.get()
        assert item.item_name == "Masala Dosa"
        assert item.unit_price == Decimal("120.00")
        assert item.line_total == Decimal("360.00")
        assert order.total_amount == Decimal("360.00")

    def test_matching_client_total_is_accepted(self, place_order):
        order = place_order(total_amount=Decimal("240.00"))
        assert order.total_amount == Decimal("240.00")

    def test_mismatched_client_total_is_rejected(self, place_order):
        with pytest.raises(OrderValidationError):
            place_order(total_amount=Decimal("239.99"))
        assert Order.objects.count() == 0

    def test_unknown_menu_item(self, place_order):
        with pytest.raises(MenuItemNotFound):
            place_order(items=[PlaceOrderItemDTO(menu_item_id=uuid4(), quantity=1)])

    def test_unavailable_menu_item(self, place_order, unavailable_item):
        with pytest.raises(MenuItemUnavailable):
            place_order(
                items=[PlaceOrderItemDTO(menu_item_id=unavailable_item.id, quantity=1)]
            )

    def test_soft_deleted_menu_item_is_not_found(self, place_order, menu_item):
        menu_item.delete()
        with pytest.raises(MenuItemNotFound):
            place_order(items=[PlaceOrderItemDTO(menu_item_id=menu_item.id, quantity=1)])

    def test_idempotency_key_replays_existing_order(self, place_order):
        first = place_order(idempotency_key="checkout-1")
        second = place_order(idempotency_key="checkout-1")

        assert first.id == second.id
        assert Order.objects.count() == 1

    def test_currency_defaults_and_is_uppercased(self, place_order):
        assert place_order().currency == "INR"
        assert place_order(currency="usd").currency == "USD"

    def test_new_order_notifies_operators_after_commit(
        self, place_order, recording_bus, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            order = place_order()

        assert recording_bus.types() == ["new-order"]
        channel, event = recording_bus.broadcasts[0]
        assert channel == "operators"
        assert event.payload["order"]["orderNumber"] == order.order_number

    def test_nothing_is_broadcast_before_commit(
        self, place_order, recording_bus, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            place_order()

        assert recording_bus.broadcasts == []
        assert len(callbacks) == 1

    def test_bus_failure_does_not_fail_placement(
        self, customer_user, failing_bus, django_capture_on_commit_callbacks
    ):
        service = OrderService(
            OrderDjangoRepository(), MenuItemDjangoRepository(), failing_bus
        )
        with django_capture_on_commit_callbacks(execute=True):
            order = service.place_order(
                PlaceOrderDTO(
                    customer_id=customer_user.pk,
                    customer_name="Asha",
                    order_type="Delivery",
                    items=[
                        PlaceOrderItemDTO(
                            name="Idli", unit_price=Decimal("50.00"), quantity=1
                        )
                    ],
                    delivery=DeliveryDetailsDTO(address="1 Residency Rd"),
                )
            )

        assert Order.objects.filter(pk=order.pk).exists()


class TestSetStatus:
    def test_transition_appends_history(self, order_service, place_order, operator_user):
        order = place_order()

        updated = order_service.set_status(
            order.id, OrderStatus.ACCEPTED, actor_id=operator_user.pk, notes="on it"
        )

        assert updated.status == OrderStatus.ACCEPTED
        last = updated.status_history.last()
        assert last.sequence == 2
        assert last.previous_status == OrderStatus.PENDING
        assert last.actor_id == operator_user.pk
        assert last.notes == "on it"

    def test_history_is_chronological_and_chained(self, order_service, place_order):
        order = place_order()
        for status in (OrderStatus.ACCEPTED, OrderStatus.PREPARING, OrderStatus.ON_THE_WAY):
            order_service.set_status(order.id, status)

        history = list(OrderStatusHistory.objects.filter(order=order))
        assert [h.sequence for h in history] == [1, 2, 3, 4]
        for previous, current in zip(history, history[1:]):
            assert current.previous_status == previous.status
        assert history[-1].status == Order.objects.get(pk=order.pk).status

    def test_same_status_is_a_no_op(
        self, order_service, place_order, recording_bus, django_capture_on_commit_callbacks
    ):
        order = place_order()

        with django_capture_on_commit_callbacks(execute=True):
            order_service.set_status(order.id, OrderStatus.PENDING)

        assert OrderStatusHistory.objects.filter(order=order).count() == 1
        assert recording_bus.broadcasts == []

    def test_unknown_status(self, order_service, place_order):
        order = place_order()
        with pytest.raises(InvalidOrderStatus):
            order_service.set_status(order.id, "Teleported")

    def test_unknown_order(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.set_status(uuid4(), OrderStatus.ACCEPTED)

    def test_permissive_table_allows_backwards_move(self, order_service, place_order):
        order = place_order()
        order_service.set_status(order.id, OrderStatus.COMPLETED)
        reopened = order_service.set_status(order.id, OrderStatus.PREPARING)
        assert reopened.status == OrderStatus.PREPARING

    def test_strict_table_rejects_backwards_move(self, place_order, recording_bus):
        order = place_order()
        strict = OrderService(
            OrderDjangoRepository(),
            MenuItemDjangoRepository(),
            recording_bus,
            strict_transitions=True,
        )
        strict.set_status(order.id, OrderStatus.ACCEPTED)

        with pytest.raises(InvalidStatusTransition):
            strict.set_status(order.id, OrderStatus.PENDING)
        assert Order.objects.get(pk=order.pk).status == OrderStatus.ACCEPTED

    def test_customer_is_notified_after_commit(
        self,
        order_service,
        place_order,
        customer_user,
        recording_bus,
        django_capture_on_commit_callbacks,
    ):
        order = place_order()

        with django_capture_on_commit_callbacks(execute=True):
            order_service.set_status(order.id, OrderStatus.ON_THE_WAY)

        channel, event = recording_bus.broadcasts[-1]
        assert channel == f"customer:{customer_user.pk}"
        assert event.type == "status-update"
        assert event.payload == {
            "orderId": str(order.id),
            "status": OrderStatus.ON_THE_WAY,
            "message": "Your order is on the way!",
        }

    def test_guest_order_emits_no_customer_event(
        self, order_service, place_order, recording_bus, django_capture_on_commit_callbacks
    ):
        order = place_order(customer_id=None)

        with django_capture_on_commit_callbacks(execute=True):
            order_service.set_status(order.id, OrderStatus.ACCEPTED)

        assert recording_bus.types() == []

    def test_bus_failure_does_not_fail_status_change(
        self, place_order, failing_bus, django_capture_on_commit_callbacks
    ):
        order = place_order()
        service = OrderService(
            OrderDjangoRepository(), MenuItemDjangoRepository(), failing_bus
        )

        with django_capture_on_commit_callbacks(execute=True):
            service.set_status(order.id, OrderStatus.ACCEPTED)

        assert Order.objects.get(pk=order.pk).status == OrderStatus.ACCEPTED

    def test_delivery_estimate_and_courier_note_are_saved(self, order_service, place_order):
        order = place_order()
        eta = timezone.now() + timedelta(minutes=40)

        updated = order_service.set_status(
            order.id, OrderStatus.ON_THE_WAY, estimated_delivery_time=eta, courier_note="Gate 2"
        )

        assert updated.delivery_details.estimated_time == eta
        assert updated.delivery_details.courier_note == "Gate 2"

    def test_mark_delivered_stamps_delivery_time(self, order_service, place_order):
        order = place_order()
        delivered = order_service.mark_delivered(order.id)

        assert delivered.status == OrderStatus.DELIVERED
        assert delivered.delivery_details.actual_delivery_time is not None

    def test_version_increments_on_every_write(self, order_service, place_order):
        order = place_order()
        order_service.set_status(order.id, OrderStatus.ACCEPTED)
        order_service.set_status(order.id, OrderStatus.PREPARING)
        assert Order.objects.get(pk=order.pk).version == 2


class TestQueries:
    def test_owner_can_read(self, order_service, place_order, customer_user):
        order = place_order()
        found = order_service.get_order(
            order.id, requester_id=customer_user.pk, is_operator=False
        )
        assert found.id == order.id

    def test_other_customer_is_denied(self, order_service, place_order, other_customer):
        order = place_order()
        with pytest.raises(OrderAccessDenied):
            order_service.get_order(
                order.id, requester_id=other_customer.pk, is_operator=False
            )

    def test_missing_order(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.get_order(uuid4())

    def test_customer_lists_only_own_orders(
        self, order_service, place_order, customer_user, other_customer
    ):
        own = place_order()
        place_order(customer_id=other_customer.pk)

        mine = order_service.list_orders(requester_id=customer_user.pk, is_operator=False)
        everyone = order_service.list_orders(is_operator=True)

        assert [o.id for o in mine] == [own.id]
        assert len(everyone) == 2

    def test_delete_removes_order_and_history(self, order_service, place_order):
        order = place_order()
        order_service.delete_order(order.id)

        assert not Order.objects.filter(pk=order.pk).exists()
        assert not OrderStatusHistory.objects.filter(order_id=order.pk).exists()
        with pytest.raises(OrderNotFound):
            order_service.delete_order(order.id)

    def test_tracking_metrics(self, order_service, place_order, customer_user):
        order = place_order()
        order_service.set_status(order.id, OrderStatus.ACCEPTED)
        now = timezone.now() + timedelta(minutes=12)

        result = order_service.get_tracking(
            order.id, requester_id=customer_user.pk, now=now
        )

        assert result.order.id == order.id
        assert result.total_duration_minutes >= 11
        assert result.progress_percentage == 17
        assert result.estimated_delivery is not None
        assert result.is_delivered is False
        assert result.is_cancelled is False

    def test_daily_analytics(self, order_service, place_order):
        delivered = place_order()
        place_order()
        cancelled = place_order()
        order_service.set_status(delivered.id, OrderStatus.DELIVERED)
        order_service.set_status(cancelled.id, OrderStatus.CANCELLED)

        result = order_service.get_daily_analytics()

        counts = {entry.status: entry.count for entry in result.by_status}
        assert result.total_orders == 3
        assert result.total_amount == Decimal("720.00")
        assert result.revenue == Decimal("240.00")
        assert counts[OrderStatus.PENDING] == 1
        assert counts[OrderStatus.DELIVERED] == 1
        assert counts[OrderStatus.CANCELLED] == 1
        assert counts[OrderStatus.COMPLETED] == 0
