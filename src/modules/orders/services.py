"""Order service layer (Use Cases).

Orchestrates the order lifecycle: placement, status changes, delivery,
tracking and the operator read models.  All write operations are atomic:
the service defines the unit-of-work boundary, and realtime
notifications plus domain events are only dispatched once that unit of
work has committed.

Business rules enforced:
- An order has at least one item, every quantity is at least 1 and the
  total is the sum of the line totals, captured once.
- A new order starts ``Pending`` with exactly one ``Pending`` history
  entry.
- Setting the current status again is a no-op: no history, no event.
- Every other status change appends one history entry, subject to the
  configured transition table.
- Customers only see their own orders; operators see everything.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.menu.exceptions import MenuItemNotFound, MenuItemUnavailable
from modules.notifications.messages import new_order_event, status_update_event
from modules.orders import tracking
from modules.orders.constants import (
    PERMISSIVE_TRANSITIONS,
    REVENUE_STATUSES,
    STRICT_TRANSITIONS,
    OrderStatus,
    PaymentStatus,
)
from modules.orders.dtos import (
    DailyAnalyticsDTO,
    PlaceOrderDTO,
    PlaceOrderItemDTO,
    StatusCountDTO,
    TrackingDTO,
)
from modules.orders.events import OrderPlaced, OrderStatusChanged
from modules.orders.exceptions import (
    InvalidOrderStatus,
    InvalidStatusTransition,
    OrderAccessDenied,
    OrderNotFound,
    OrderValidationError,
)
from modules.orders.side_effects import dispatch_on_commit

if TYPE_CHECKING:
    from modules.menu.repositories.interfaces import IMenuItemRepository
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from shared.domain.bus import IEventBus, INotificationBus

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


def order_summary(order: Order) -> Dict[str, Any]:
    """Compact JSON-ready view of an order for operator notifications."""
    return {
        "id": str(order.id),
        "orderNumber": order.order_number,
        "customerName": order.customer_name,
        "orderType": order.order_type,
        "status": order.status,
        "totalAmount": str(order.total_amount),
        "currency": order.currency,
    }


class OrderService:
    """Application service for Order use-cases.

    Receives repositories and buses via constructor injection (DIP).
    ``strict_transitions``, ``prep_minutes`` and ``default_currency``
    fall back to ``settings.ORDERS`` / ``settings.PAYMENTS``.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        menu_repository: IMenuItemRepository,
        notification_bus: Optional[INotificationBus] = None,
        event_bus: Optional[IEventBus] = None,
        strict_transitions: Optional[bool] = None,
        prep_minutes: Optional[int] = None,
        default_currency: Optional[str] = None,
    ) -> None:
        self._order_repo = order_repository
        self._menu_repo = menu_repository
        self._bus = notification_bus
        self._event_bus = event_bus

        orders_config = getattr(settings, "ORDERS", {})
        if strict_transitions is None:
            strict_transitions = orders_config.get("STRICT_TRANSITIONS", False)
        self._transitions = (
            STRICT_TRANSITIONS if strict_transitions else PERMISSIVE_TRANSITIONS
        )
        self._prep_minutes = (
            prep_minutes
            if prep_minutes is not None
            else orders_config.get("DEFAULT_PREP_MINUTES", 30)
        )
        self._default_currency = default_currency or getattr(
            settings, "PAYMENTS", {}
        ).get("DEFAULT_CURRENCY", "INR")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def place_order(self, dto: PlaceOrderDTO) -> Order:
        """Persist a new ``Pending`` order.

        Steps:
        1. Replay: an already used idempotency key returns that order.
        2. Resolve every line to a name/price snapshot (catalog or cart).
        3. Compute the total; a client total that disagrees is rejected.
        4. Persist order, items and details; seed the history.
        5. After commit: ``new-order`` to operators, ``OrderPlaced`` on
           the domain bus.

        Raises:
            OrderValidationError: totals disagree.
            MenuItemNotFound: a referenced menu item does not exist.
            MenuItemUnavailable: a referenced menu item is not on sale.
        """
        log = logger.bind(customer_id=dto.customer_id)
        log.info("order.placement_started", item_count=len(dto.items))

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        lines = [self._resolve_line(item) for item in dto.items]
        total = sum(
            (line["unit_price"] * line["quantity"] for line in lines), Decimal("0")
        ).quantize(CENT)

        if dto.total_amount is not None and dto.total_amount.quantize(CENT) != total:
            log.warning(
                "order.total_mismatch",
                submitted=str(dto.total_amount),
                computed=str(total),
            )
            raise OrderValidationError(
                f"Total {dto.total_amount} does not match the items ({total})."
            )

        order = self._order_repo.create(
            {
                "customer_id": dto.customer_id,
                "customer_name": dto.customer_name,
                "customer_email": dto.customer_email,
                "customer_phone": dto.customer_phone,
                "order_type": dto.order_type,
                "status": OrderStatus.PENDING,
                "payment_status": PaymentStatus.PENDING,
                "payment_method": dto.payment_method,
                "total_amount": total,
                "currency": (dto.currency or self._default_currency).upper(),
                "special_instructions": dto.special_instructions,
                "idempotency_key": dto.idempotency_key,
                "items": lines,
                "delivery": dto.delivery.model_dump() if dto.delivery else {},
            }
        )
        self._order_repo.add_history(order, OrderStatus.PENDING, notes="Order placed")

        order.add_domain_event(OrderPlaced(aggregate_id=order.id))
        dispatch_on_commit(
            self._bus,
            [new_order_event(order_summary(order))],
            self._event_bus,
            order.pull_domain_events(),
        )

        log.info("order.placed", order_id=str(order.id), total=str(total))
        return self._order_repo.get_by_id(str(order.id)) or order

    def set_status(
        self,
        order_id: Any,
        new_status: str,
        actor_id: Optional[int] = None,
        notes: str = "",
        estimated_delivery_time: Optional[datetime] = None,
        courier_note: Optional[str] = None,
    ) -> Order:
        """Move an order to *new_status* and record it in the history.

        Setting the status the order already has is a no-op (delivery
        detail updates passed along are still saved).

        Raises:
            InvalidOrderStatus: *new_status* is not a known status.
            OrderNotFound: order does not exist.
            InvalidStatusTransition: forbidden by the strict table.
            ConcurrentOrderUpdate: another writer got there first.
        """
        return self._change_status(
            order_id,
            new_status,
            actor_id=actor_id,
            notes=notes,
            estimated_delivery_time=estimated_delivery_time,
            courier_note=courier_note,
        )

    def mark_delivered(
        self, order_id: Any, actor_id: Optional[int] = None, notes: str = ""
    ) -> Order:
        """``set_status(Delivered)`` that also stamps the delivery time."""
        return self._change_status(
            order_id,
            OrderStatus.DELIVERED,
            actor_id=actor_id,
            notes=notes,
            stamp_delivery=True,
        )

    @transaction.atomic
    def _change_status(
        self,
        order_id: Any,
        new_status: str,
        actor_id: Optional[int] = None,
        notes: str = "",
        estimated_delivery_time: Optional[datetime] = None,
        courier_note: Optional[str] = None,
        stamp_delivery: bool = False,
    ) -> Order:
        if new_status not in OrderStatus.values:
            raise InvalidOrderStatus(f"Unknown order status {new_status!r}.")

        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(
            order_id=str(order.id),
            current_status=order.status,
            new_status=new_status,
            actor_id=actor_id,
        )

        delivery = getattr(order, "delivery_details", None)
        details_changed = False
        if delivery is not None:
            if estimated_delivery_time is not None:
                delivery.estimated_time = estimated_delivery_time
                details_changed = True
            if courier_note is not None:
                delivery.courier_note = courier_note
                details_changed = True

        if order.status == new_status:
            if details_changed:
                self._order_repo.save(order)
            log.info("order.status_unchanged")
            return order

        if not order.can_transition_to(new_status, self._transitions):
            log.warning("order.invalid_transition")
            raise InvalidStatusTransition(
                f"Cannot transition from {order.status} to {new_status}."
            )

        old_status = order.status
        order.status = new_status
        if stamp_delivery and delivery is not None:
            delivery.actual_delivery_time = timezone.now()

        self._order_repo.save(order)
        self._order_repo.add_history(
            order,
            new_status,
            previous_status=old_status,
            actor_id=actor_id,
            notes=notes,
        )

        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id, old_status=old_status, new_status=new_status
            )
        )
        notifications = []
        if order.customer_id is not None:
            notifications.append(
                status_update_event(order.customer_id, order.id, new_status)
            )
        dispatch_on_commit(
            self._bus, notifications, self._event_bus, order.pull_domain_events()
        )

        log.info("order.status_updated")
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def delete_order(self, order_id: Any) -> None:
        """Remove an order and everything it owns.

        Raises:
            OrderNotFound: order does not exist.
        """
        if not self._order_repo.delete(str(order_id)):
            raise OrderNotFound(f"Order {order_id} not found.")
        logger.info("order.removed", order_id=str(order_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(
        self,
        order_id: Any,
        requester_id: Optional[int] = None,
        is_operator: bool = True,
    ) -> Order:
        """Retrieve a single order the requester may see.

        Raises:
            OrderNotFound: the order does not exist.
            OrderAccessDenied: requester is neither owner nor operator.
        """
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        if not is_operator and (
            requester_id is None or order.customer_id != requester_id
        ):
            logger.warning(
                "order.access_denied",
                order_id=str(order_id),
                requester_id=requester_id,
            )
            raise OrderAccessDenied("You do not have access to this order.")
        return order

    def list_orders(
        self,
        requester_id: Optional[int] = None,
        is_operator: bool = True,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Order]:
        """Operators get every order, customers only their own."""
        filters = dict(filters or {})
        if not is_operator:
            filters["customer_id"] = requester_id
        return self._order_repo.list(filters)

    def get_tracking(
        self,
        order_id: Any,
        requester_id: Optional[int] = None,
        is_operator: bool = False,
        now: Optional[datetime] = None,
    ) -> TrackingDTO:
        """Order plus the timing metrics derived from its history.

        Raises:
            OrderNotFound: the order does not exist.
            OrderAccessDenied: requester is neither owner nor operator.
        """
        order = self.get_order(order_id, requester_id, is_operator)
        now = now or timezone.now()
        history = list(order.status_history.all())
        delivery = getattr(order, "delivery_details", None)

        return TrackingDTO(
            order=order,
            total_duration_minutes=tracking.total_duration_minutes(history, now),
            current_status_duration_minutes=tracking.current_status_duration_minutes(
                history, now
            ),
            progress_percentage=tracking.progress_percentage(order.status),
            estimated_delivery=tracking.estimated_delivery(
                order.status,
                history,
                delivery.estimated_time if delivery is not None else None,
                self._prep_minutes,
                now,
            ),
            is_delivered=tracking.is_delivered(order.status),
            is_cancelled=tracking.is_cancelled(order.status),
        )

    def get_daily_analytics(self, day: Optional[date] = None) -> DailyAnalyticsDTO:
        """Count and amount per status for orders created on *day*.

        Revenue only counts ``Delivered`` and ``Completed`` orders.
        """
        day = day or timezone.localdate()
        start = timezone.make_aware(datetime.combine(day, time.min))
        rows = {
            row["status"]: row
            for row in self._order_repo.status_summary(start, start + timedelta(days=1))
        }

        by_status = [
            StatusCountDTO(
                status=status,
                count=rows.get(status, {}).get("count", 0),
                amount=rows.get(status, {}).get("amount") or Decimal("0.00"),
            )
            for status in OrderStatus.values
        ]
        return DailyAnalyticsDTO(
            day=day,
            total_orders=sum(entry.count for entry in by_status),
            total_amount=sum((entry.amount for entry in by_status), Decimal("0.00")),
            revenue=sum(
                (entry.amount for entry in by_status if entry.status in REVENUE_STATUSES),
                Decimal("0.00"),
            ),
            by_status=by_status,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_line(self, item: PlaceOrderItemDTO) -> Dict[str, Any]:
        """Snapshot name and price for one line.

        A catalog reference wins over any name/price the client sent.
        """
        if item.menu_item_id is None:
            return {
                "menu_item_id": None,
                "item_name": item.name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
            }

        menu_item = self._menu_repo.get_by_id(str(item.menu_item_id))
        if not menu_item:
            raise MenuItemNotFound(f"Menu item {item.menu_item_id} not found.")
        if not menu_item.is_available:
            raise MenuItemUnavailable(f"Menu item {menu_item.name} is unavailable.")
        return {
            "menu_item_id": menu_item.id,
            "item_name": menu_item.name,
            "quantity": item.quantity,
            "unit_price": menu_item.price,
        }
