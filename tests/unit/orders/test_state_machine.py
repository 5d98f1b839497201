"""Unit tests for the order state machine.

Covers:
- Completeness of both transition tables.
- The strict table walked through the service (happy path and rejects).
- Terminal states under the strict table.
"""

from __future__ import annotations

import pytest

from modules.menu.repositories.django_repository import MenuItemDjangoRepository
from modules.orders.constants import (
    PERMISSIVE_TRANSITIONS,
    PROGRESS_ORDER,
    STRICT_TRANSITIONS,
    OrderStatus,
)
from modules.orders.exceptions import InvalidStatusTransition
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService

pytestmark = pytest.mark.unit

TERMINAL_STATES = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}


@pytest.fixture()
def strict_service(recording_bus):
    return OrderService(
        order_repository=OrderDjangoRepository(),
        menu_repository=MenuItemDjangoRepository(),
        notification_bus=recording_bus,
        strict_transitions=True,
    )


def _walk(service, order, *statuses):
    for status in statuses:
        order = service.set_status(order.id, status)
    return order


# ===========================================================================
# Transition tables
# ===========================================================================


class TestTransitionTables:
    @pytest.mark.parametrize("table", [PERMISSIVE_TRANSITIONS, STRICT_TRANSITIONS])
    def test_every_status_has_an_entry(self, table):
        assert set(table) == set(OrderStatus.values)

    @pytest.mark.parametrize("table", [PERMISSIVE_TRANSITIONS, STRICT_TRANSITIONS])
    def test_no_self_transitions(self, table):
        for status, targets in table.items():
            assert status not in targets, f"Self-transition listed for {status}"

    def test_strict_terminal_states_are_empty(self):
        for status in TERMINAL_STATES:
            assert STRICT_TRANSITIONS[status] == set()

    def test_strict_table_is_a_subset_of_permissive(self):
        for status, targets in STRICT_TRANSITIONS.items():
            assert targets <= PERMISSIVE_TRANSITIONS[status]

    def test_progress_order_excludes_cancelled(self):
        assert OrderStatus.CANCELLED not in PROGRESS_ORDER
        assert PROGRESS_ORDER[0] == OrderStatus.PENDING
        assert PROGRESS_ORDER[-1] == OrderStatus.COMPLETED


# ===========================================================================
# Strict lifecycle
# ===========================================================================


class TestStrictLifecycle:
    def test_delivery_lifecycle(self, strict_service, place_order):
        order = _walk(
            strict_service,
            place_order(),
            OrderStatus.ACCEPTED,
            OrderStatus.PREPARING,
            OrderStatus.ON_THE_WAY,
            OrderStatus.DELIVERED,
            OrderStatus.COMPLETED,
        )

        assert order.status == OrderStatus.COMPLETED
        assert order.status_history.count() == 6

    def test_pickup_lifecycle(self, strict_service, place_order):
        order = _walk(
            strict_service,
            place_order(order_type="Pickup", delivery=None),
            OrderStatus.ACCEPTED,
            OrderStatus.PREPARING,
            OrderStatus.READY_FOR_PICKUP,
            OrderStatus.COMPLETED,
        )
        assert order.status == OrderStatus.COMPLETED

    @pytest.mark.parametrize(
        "target",
        [OrderStatus.PREPARING, OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED],
    )
    def test_pending_cannot_skip_ahead(self, strict_service, place_order, target):
        order = place_order()

        with pytest.raises(InvalidStatusTransition):
            strict_service.set_status(order.id, target)

        assert Order.objects.get(pk=order.pk).status == OrderStatus.PENDING

    def test_no_cancel_once_on_the_way(self, strict_service, place_order):
        order = _walk(
            strict_service,
            place_order(),
            OrderStatus.ACCEPTED,
            OrderStatus.PREPARING,
            OrderStatus.ON_THE_WAY,
        )

        with pytest.raises(InvalidStatusTransition):
            strict_service.set_status(order.id, OrderStatus.CANCELLED)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATES))
    def test_terminal_states_are_final(self, strict_service, place_order, terminal):
        order = place_order()
        if terminal == OrderStatus.CANCELLED:
            _walk(strict_service, order, OrderStatus.CANCELLED)
        else:
            _walk(
                strict_service,
                order,
                OrderStatus.ACCEPTED,
                OrderStatus.PREPARING,
                OrderStatus.READY_FOR_PICKUP,
                OrderStatus.COMPLETED,
            )

        with pytest.raises(InvalidStatusTransition):
            strict_service.set_status(order.id, OrderStatus.PENDING)

    def test_rejected_move_writes_no_history(self, strict_service, place_order):
        order = place_order()

        with pytest.raises(InvalidStatusTransition):
            strict_service.set_status(order.id, OrderStatus.COMPLETED)

        reloaded = Order.objects.get(pk=order.pk)
        assert reloaded.status_history.count() == 1
        assert reloaded.version == 0
